# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : partitioner.py
import numpy as np

from errors import ConfigurationError

MAX_PARTICIPANTS = 8  # Max number of processes in a group


def validate_group(length: int, size: int, max_participants: int = MAX_PARTICIPANTS):
    """
    Check that `size` participants can split `length` elements evenly.

    Every rank calls this with the same arguments before touching the
    communicator. If only some ranks bailed out, the rest would sit in the
    first scatter forever.

    Parameters:
    -----------
    length : int
        Number of elements (or matrix rows) in the dataset.
    size : int
        Number of participants in the group.
    max_participants : int
        Upper bound on the group size.

    Raises:
    -------
    ConfigurationError
        If the group is empty, too large, or does not divide `length`.
    """
    if size < 1:
        raise ConfigurationError(f"group size must be at least 1, got {size}")
    if length < 1:
        raise ConfigurationError(f"dataset length must be at least 1, got {length}")
    if size > max_participants:
        raise ConfigurationError(
            f"group size {size} exceeds the maximum of {max_participants} participants"
        )
    if length % size != 0:
        raise ConfigurationError(
            f"dataset length {length} is not divisible by group size {size}"
        )


def chunk_length(length: int, size: int) -> int:
    """Number of elements each rank owns."""
    return length // size


def partition_bounds(length: int, size: int):
    """
    Return the (start, stop) index pair of every rank's slice.

    Slice i covers [i * (length / size), (i + 1) * (length / size)).
    """
    per = chunk_length(length, size)
    return [(r * per, (r + 1) * per) for r in range(size)]


def partition(dataset, size: int, max_participants: int = MAX_PARTICIPANTS):
    """
    Split a dataset into `size` equal, contiguous, rank-ordered chunks.

    Matrices are split along the first axis, so every rank receives a block
    of whole rows.

    Parameters:
    -----------
    dataset : array-like
        Full dataset owned by the coordinator.
    size : int
        Number of participants.
    max_participants : int
        Upper bound on the group size.

    Returns:
    --------
    list of np.ndarray
        One read-only view per rank, in rank order.
    """
    data = np.asarray(dataset)
    validate_group(data.shape[0], size, max_participants)

    parts = []
    for start, stop in partition_bounds(data.shape[0], size):
        view = data[start:stop]
        view.flags.writeable = False  # local kernels must not touch their input
        parts.append(view)
    return parts
