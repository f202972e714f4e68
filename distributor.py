# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : distributor.py
import logging

import numpy as np

from errors import TransportError
from partitioner import MAX_PARTICIPANTS, chunk_length, partition

logger = logging.getLogger(__name__)


class Distributor:
    """
    Deliver partitions and shared data to every rank of the group.

    Both calls are blocking collectives. Every rank has to issue them in the
    same order and the same number of times, otherwise the group stalls or
    data ends up on the wrong rank.

    Parameters:
    -----------
    ctx : ParticipantContext
        Calling process (rank, group size, transport).
    length : int
        Dataset length (or number of matrix rows), already validated.
    max_participants : int
        Upper bound on the group size used by the partitioner.
    """

    def __init__(self, ctx, length: int, max_participants: int = MAX_PARTICIPANTS):
        self.ctx = ctx
        self.length = length
        self.max_participants = max_participants
        self.chunk = chunk_length(length, ctx.size)

    def scatter(self, dataset, dtype, row_shape=()) -> np.ndarray:
        """
        Scatter `dataset` from the coordinator; returns this rank's partition.

        Parameters:
        -----------
        dataset : array-like or None
            Full dataset on the coordinator, None elsewhere.
        dtype : np.dtype
            Element type on the wire.
        row_shape : tuple
            Trailing shape of one dataset row, () for plain vectors.

        Returns:
        --------
        np.ndarray
            Partition i on rank i, shape (length / size,) + row_shape.
        """
        recv_shape = (self.chunk,) + tuple(row_shape)
        parts = None
        if self.ctx.is_coordinator:
            data = np.asarray(dataset, dtype=dtype)
            expected = (self.length,) + tuple(row_shape)
            if data.shape != expected:
                raise TransportError(f"dataset has shape {data.shape}, expected {expected}")
            parts = partition(data, self.ctx.size, self.max_participants)
            logger.debug("scattering %d slices of shape %s", len(parts), recv_shape)

        local = self.ctx.manager.scatter(parts, recv_shape, dtype, root=self.ctx.root)
        # Partitions are read only for the local kernel
        local.flags.writeable = False
        return local

    def broadcast(self, payload, shape, dtype) -> np.ndarray:
        """Replicate `payload` from the coordinator; every rank gets its own copy."""
        shared = self.ctx.manager.broadcast(
            payload if self.ctx.is_coordinator else None, shape, dtype, root=self.ctx.root
        )
        shared.flags.writeable = False
        return shared
