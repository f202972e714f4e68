# Author      : Tyson Limato
# Date        : 2025-6-1
# File Name   : example_data_generator.py
import numpy as np
import pandas as pd

from errors import ConfigurationError

DEFAULT_LENGTH = 48  # Length of vectors A and B
DEFAULT_ORDER = 16   # Matrix size N x N


def make_vectors(length: int = DEFAULT_LENGTH):
    """
    Vectors for the scatter-add example: A = [0 .. L-1], B = [L .. 2L-1].
    """
    a = np.arange(length, dtype=np.int64)
    b = np.arange(length, 2 * length, dtype=np.int64)
    return a, b


def make_matrix(order: int = DEFAULT_ORDER) -> np.ndarray:
    """Matrix for the matrix-vector example: A[i][j] = i * N + j."""
    return np.arange(order * order, dtype=np.float64).reshape(order, order)


def make_vector(order: int = DEFAULT_ORDER) -> np.ndarray:
    """Vector for the matrix-vector example: X[i] = i + 1."""
    return np.arange(1, order + 1, dtype=np.float64)


def _read_numeric_csv(path: str) -> np.ndarray:
    try:
        df = pd.read_csv(path, header=None)
    except (OSError, UnicodeDecodeError, pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise ConfigurationError(f"cannot read {path}: {exc}") from exc
    try:
        values = df.to_numpy(dtype=np.float64)
    except ValueError as exc:
        raise ConfigurationError(f"{path} contains non-numeric values") from exc
    # ragged rows come back padded with NaN
    if np.isnan(values).any():
        raise ConfigurationError(f"{path} has missing or ragged entries")
    return values


def load_matrix_csv(path: str) -> np.ndarray:
    """
    Load a square matrix from a header-less CSV file, one matrix row per line.

    Raises:
    -------
    ConfigurationError
        If the file is unreadable, non-numeric, ragged, or not square.
    """
    matrix = _read_numeric_csv(path)
    if matrix.shape[0] != matrix.shape[1]:
        raise ConfigurationError(f"{path} holds a {matrix.shape[0]}x{matrix.shape[1]} matrix, expected a square one")
    return matrix


def load_vector_csv(path: str, order: int) -> np.ndarray:
    """Load a vector of length `order` stored as one column (or one row) of a CSV file."""
    values = _read_numeric_csv(path)
    if 1 not in values.shape:
        raise ConfigurationError(f"{path} holds a {values.shape[0]}x{values.shape[1]} table, expected a single row or column")
    vector = values.ravel()
    if vector.size != order:
        raise ConfigurationError(f"{path} has {vector.size} entries, the matrix needs {order}")
    return vector


def generate_matvec_data(order: int = DEFAULT_ORDER, matrix_path="matrix.csv", vector_path="vector.csv"):
    """
    Write the example matrix and vector as CSV files for `main.py --matrix/--vector`.
    """
    pd.DataFrame(make_matrix(order)).to_csv(matrix_path, index=False, header=False)
    pd.DataFrame(make_vector(order)).to_csv(vector_path, index=False, header=False)

    print(f"{order}x{order} matrix saved as '{matrix_path}', vector saved as '{vector_path}'")

# Run the function
if __name__ == "__main__":
    generate_matvec_data()
