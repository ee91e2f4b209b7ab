"""
Small dense linear algebra helpers for least-squares fitting.

Matrices are accepted as nested sequences or numpy arrays and returned as
float64 numpy arrays. Every function signals failure by returning None
(and logging why) instead of raising, so the estimator can report a
structured failure to its caller.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

# Pivots smaller than this (after partial pivoting) mark the system as singular
DEFAULT_PIVOT_EPSILON = 1e-10

MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]
VectorLike = Union[np.ndarray, Sequence[float]]


def _as_matrix(matrix: Optional[MatrixLike]) -> Optional[np.ndarray]:
    """Convert input to a non-empty 2D float array, or None if ragged/empty."""
    if matrix is None:
        return None
    if isinstance(matrix, np.ndarray):
        array = matrix.astype(np.float64, copy=False)
    else:
        rows = list(matrix)
        if not rows:
            return None
        try:
            widths = {len(row) for row in rows}
        except TypeError:
            return None
        if len(widths) != 1:
            return None
        array = np.asarray(rows, dtype=np.float64)

    if array.ndim != 2 or array.shape[0] == 0 or array.shape[1] == 0:
        return None
    return array


def _as_vector(vector: Optional[VectorLike]) -> Optional[np.ndarray]:
    if vector is None:
        return None
    array = np.asarray(vector, dtype=np.float64)
    if array.ndim != 1 or array.size == 0:
        return None
    return array


def transpose(matrix: MatrixLike) -> Optional[np.ndarray]:
    """Return a new transposed matrix, or None for ragged/empty input."""
    array = _as_matrix(matrix)
    if array is None:
        logger.error("transpose: matrix is empty or ragged")
        return None
    return array.T.copy()


def multiply(a: MatrixLike, b: MatrixLike) -> Optional[np.ndarray]:
    """Standard matrix product a @ b, or None if inner dimensions mismatch."""
    left = _as_matrix(a)
    right = _as_matrix(b)
    if left is None or right is None or left.shape[1] != right.shape[0]:
        logger.error("multiply: incompatible matrix dimensions")
        return None
    return left @ right


def multiply_vector(matrix: MatrixLike, vector: VectorLike) -> Optional[np.ndarray]:
    """Matrix-vector product, or None if column count differs from vector length."""
    array = _as_matrix(matrix)
    vec = _as_vector(vector)
    if array is None or vec is None or array.shape[1] != vec.shape[0]:
        logger.error("multiply_vector: incompatible matrix/vector dimensions")
        return None
    return array @ vec


def gauss_jordan(
    A: MatrixLike,
    B: VectorLike,
    pivot_epsilon: float = DEFAULT_PIVOT_EPSILON,
) -> Optional[np.ndarray]:
    """
    Solve A @ x = B by Gauss-Jordan elimination with partial pivoting.

    At each step the remaining row with the largest absolute value in the
    pivot column is swapped into place. If that pivot is still smaller than
    ``pivot_epsilon`` the matrix is treated as singular and no solution is
    returned; an unstable solution is never produced.

    Args:
        A: Square coefficient matrix (n x n)
        B: Right-hand side vector (length n)
        pivot_epsilon: Minimum acceptable absolute pivot value

    Returns:
        Solution vector of length n, or None if dimensions mismatch or the
        system is (near-)singular.

    Example:
        >>> gauss_jordan([[2, 1], [1, 3]], [3, 5])
        array([0.8, 1.4])
    """
    matrix = _as_matrix(A)
    rhs = _as_vector(B)
    if matrix is None or rhs is None or matrix.shape[0] != rhs.shape[0]:
        logger.error("gauss_jordan: coefficient matrix and constant vector sizes differ")
        return None

    n = matrix.shape[0]
    if matrix.shape[1] != n:
        logger.error(f"gauss_jordan: coefficient matrix must be square, got {matrix.shape}")
        return None

    augmented = np.hstack([matrix, rhs.reshape(-1, 1)])

    for i in range(n):
        # Partial pivoting: largest |value| in column i among rows i..n-1
        max_row = i + int(np.argmax(np.abs(augmented[i:, i])))
        if max_row != i:
            augmented[[i, max_row]] = augmented[[max_row, i]]

        pivot = augmented[i, i]
        if abs(pivot) < pivot_epsilon:
            logger.warning(f"gauss_jordan: singular matrix (pivot {pivot:.3e} at column {i})")
            return None

        augmented[i, i:] /= pivot

        for k in range(n):
            if k != i:
                factor = augmented[k, i]
                if factor != 0.0:
                    augmented[k, i:] -= factor * augmented[i, i:]

    solution = augmented[:, n].copy()
    if not np.all(np.isfinite(solution)):
        logger.warning("gauss_jordan: solution contains non-finite values")
        return None
    return solution
