# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : kernels.py
import numpy as np

from errors import ConfigurationError


# ------------------ Vector Add (CPU) ------------------
def vector_add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Elementwise sum of two equally sized partitions.

    Parameters:
    -----------
    a, b : np.ndarray
        Local slices of the two scattered vectors.

    Returns:
    --------
    np.ndarray
        New array with a[i] + b[i], same length as the inputs.
    """
    if a.shape != b.shape:
        raise ValueError(f"vector_add: shape mismatch {a.shape} vs {b.shape}")
    return a + b


# ------------------ Vector Add (GPU) ------------------
def vector_add_gpu(a, b) -> np.ndarray:
    """CuPy version of vector_add. The result is copied back to host memory for MPI."""
    import cupy as cp

    if a.shape != b.shape:
        raise ValueError(f"vector_add_gpu: shape mismatch {a.shape} vs {b.shape}")
    out = cp.asarray(a) + cp.asarray(b)
    return cp.asnumpy(out)


# ------------------ Matrix-Vector Product (CPU) ------------------
def matvec(block: np.ndarray, x: np.ndarray) -> np.ndarray:
    """
    Multiply a block of matrix rows by a vector: one scalar per row.

    Parameters:
    -----------
    block : np.ndarray
        Rows owned by this rank, shape (rows, n).
    x : np.ndarray
        Broadcast vector, shape (n,).

    Returns:
    --------
    np.ndarray
        Shape (rows,).
    """
    if block.ndim != 2 or x.ndim != 1 or block.shape[1] != x.shape[0]:
        raise ValueError(f"matvec: cannot multiply {block.shape} by {x.shape}")
    return block.dot(x)


# ------------------ Matrix-Vector Product (GPU) ------------------
def matvec_gpu(block, x) -> np.ndarray:
    import cupy as cp

    if block.ndim != 2 or x.ndim != 1 or block.shape[1] != x.shape[0]:
        raise ValueError(f"matvec_gpu: cannot multiply {block.shape} by {x.shape}")
    # (rows, n) @ (n,) -> (rows,)
    out = cp.asarray(block) @ cp.asarray(x)
    return cp.asnumpy(out)


def select_gpu(rank: int) -> int:
    """Pin this rank to a GPU, round robin over the visible devices."""
    import cupy as cp

    try:
        num_gpus = cp.cuda.runtime.getDeviceCount()
    except cp.cuda.runtime.CUDARuntimeError as exc:
        # raised instead of returning 0 when there is no driver or device
        raise ConfigurationError(f"--gpu requested but CUDA is unavailable: {exc}") from exc
    if num_gpus == 0:
        raise ConfigurationError("--gpu requested but no CUDA device is visible")
    device = rank % num_gpus
    cp.cuda.Device(device).use()
    return device
