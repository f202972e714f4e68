# Author      : Tyson Limato
# Date        : 2025-7-4
# File Name   : workloads.py
import numpy as np

from errors import ConfigurationError
from example_data_generator import (DEFAULT_LENGTH, DEFAULT_ORDER, load_matrix_csv,
                                    load_vector_csv, make_matrix, make_vector, make_vectors)
from kernels import matvec, matvec_gpu, vector_add, vector_add_gpu


class Workload:
    """
    A distributable payload: what the coordinator builds and what every rank computes.

    The local kernel must be partition-distributive: running it on every
    rank's slice and concatenating the results in rank order gives the same
    answer as running it once on the whole dataset.

    Attributes:
    -----------
    name : str
        Name used on the command line.
    dtype : np.dtype
        Element type of datasets, broadcast payload and results.
    inputs : tuple of str
        Labels of the scattered arrays, in scatter order.
    result_label : str
        Label of the local result in the per-rank report.
    title : str
        Heading of the coordinator's final report.
    shape_from_root : bool
        True when only the coordinator knows the dataset shape (input files),
        in which case the shape is broadcast before validation.
    """
    name = None
    dtype = None
    inputs = ()
    result_label = "Result"
    title = "Result"
    shape_from_root = False

    def __init__(self, length: int, use_gpu: bool = False):
        self.length = length
        self.use_gpu = use_gpu

    def row_shape(self) -> tuple:
        """Trailing shape of one dataset row, () for plain vectors."""
        return ()

    def payload_shape(self):
        """Shape of the broadcast payload, None when nothing is broadcast."""
        return None

    def load(self) -> tuple:
        """Read input files on the coordinator and return the dataset (rows, cols)."""
        raise NotImplementedError

    def resolve_shape(self, shape: tuple):
        """Adopt the dataset shape broadcast by the coordinator."""
        raise NotImplementedError

    def build(self):
        """
        Build the full datasets and the broadcast payload (coordinator only).

        Returns:
        --------
        tuple (list of np.ndarray, np.ndarray or None)
        """
        raise NotImplementedError

    def compute(self, partitions, payload=None) -> np.ndarray:
        """
        Run the local kernel on this rank's partitions.

        Parameters:
        -----------
        partitions : list of np.ndarray
            One slice per entry of `inputs`, in the same order.
        payload : np.ndarray, optional
            Broadcast data, when the workload has any.

        Returns:
        --------
        np.ndarray
            One value per partition row.
        """
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(length={self.length}, use_gpu={self.use_gpu})"


# ------------------ Scatter Add ------------------
class VectorAdd(Workload):
    """Scatter A and B, add the local slices elementwise."""
    name = "add"
    dtype = np.dtype(np.int64)
    inputs = ("A", "B")
    result_label = "Sum"
    title = "Sum of A and B"

    def __init__(self, length: int = DEFAULT_LENGTH, use_gpu: bool = False):
        super().__init__(length, use_gpu)

    def build(self):
        a, b = make_vectors(self.length)
        return [a, b], None

    def compute(self, partitions, payload=None) -> np.ndarray:
        a, b = partitions
        kernel = vector_add_gpu if self.use_gpu else vector_add
        return kernel(a, b)


# ------------------ Matrix-Vector Product ------------------
class MatVec(Workload):
    """
    Scatter row blocks of A, broadcast X, multiply locally.

    Parameters:
    -----------
    order : int
        Matrix size N (ignored when `matrix_path` is given).
    use_gpu : bool
        Run the local product with CuPy.
    matrix_path : str, optional
        Header-less CSV holding a square matrix.
    vector_path : str, optional
        CSV holding X; defaults to X[i] = i + 1 when omitted.
    """
    name = "matvec"
    dtype = np.dtype(np.float64)
    inputs = ("A",)
    result_label = "Result"
    title = "Matrix-Vector Multiplication Result (A * X)"

    def __init__(self, order: int = DEFAULT_ORDER, use_gpu: bool = False,
                 matrix_path=None, vector_path=None):
        super().__init__(order, use_gpu)
        self.matrix_path = matrix_path
        self.vector_path = vector_path
        self.shape_from_root = matrix_path is not None
        self._matrix = None
        self._vector = None

    def row_shape(self) -> tuple:
        return (self.length,)

    def payload_shape(self):
        return (self.length,)

    def load(self) -> tuple:
        self._matrix = load_matrix_csv(self.matrix_path)
        order = self._matrix.shape[0]
        if self.vector_path is not None:
            self._vector = load_vector_csv(self.vector_path, order)
        else:
            self._vector = make_vector(order)
        return self._matrix.shape

    def resolve_shape(self, shape: tuple):
        rows, cols = shape
        if rows != cols:
            raise ConfigurationError(f"matrix must be square, got {rows}x{cols}")
        self.length = rows

    def build(self):
        if self.shape_from_root:
            return [self._matrix], self._vector
        return [make_matrix(self.length)], make_vector(self.length)

    def compute(self, partitions, payload=None) -> np.ndarray:
        (block,) = partitions
        if payload is None:
            raise ValueError("matvec needs the broadcast vector X")
        kernel = matvec_gpu if self.use_gpu else matvec
        return kernel(block, payload)


WORKLOADS = {VectorAdd.name: VectorAdd, MatVec.name: MatVec}


def get_workload(name: str, length=None, use_gpu: bool = False, matrix_path=None, vector_path=None) -> Workload:
    """Build a workload from command line settings."""
    match name:
        case "add":
            return VectorAdd(DEFAULT_LENGTH if length is None else length, use_gpu=use_gpu)
        case "matvec":
            return MatVec(DEFAULT_ORDER if length is None else length, use_gpu=use_gpu,
                          matrix_path=matrix_path, vector_path=vector_path)
        case _:
            raise ConfigurationError(f"unknown workload {name!r}, choose from {sorted(WORKLOADS)}")
