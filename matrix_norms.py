"""
Norms and fill ratios of a SparseMatrix.

All functions are read-only. In compressed mode they reduce over the flat
values array, which numpy evaluates in vectorised passes.
"""

import numpy as np

from matrix_storage import CooStorage
from matrix_types import Norm, Order


def _absolute_sums(matrix, axis: int) -> np.ndarray:
    """Sums of magnitudes per physical first (axis=0) or second (axis=1) index."""
    storage = matrix.storage
    length = matrix.first if axis == 0 else matrix.second

    if isinstance(storage, CooStorage):
        sums = np.zeros(length, dtype=np.float64)
        for key, value in storage.elements.items():
            sums[key[axis]] += abs(value)
        return sums

    ids = storage.segment_ids() if axis == 0 else storage.outer
    return np.bincount(ids, weights=np.abs(storage.values).astype(np.float64), minlength=length)


def one_norm(matrix) -> float:
    """Maximum absolute column sum."""
    axis = 1 if matrix.order is Order.ROW else 0
    return float(_absolute_sums(matrix, axis).max())


def infinity_norm(matrix) -> float:
    """Maximum absolute row sum."""
    axis = 0 if matrix.order is Order.ROW else 1
    return float(_absolute_sums(matrix, axis).max())


def frobenius_norm(matrix) -> float:
    storage = matrix.storage
    if isinstance(storage, CooStorage):
        total = 0.0
        for value in storage.elements.values():
            total += float(abs(value)) ** 2
        return float(np.sqrt(total))
    return float(np.sqrt(np.sum(np.abs(storage.values).astype(np.float64) ** 2)))


_NORMS = {
    Norm.ONE: one_norm,
    Norm.INFINITY: infinity_norm,
    Norm.FROBENIUS: frobenius_norm,
}


def norm(matrix, kind: Norm = Norm.FROBENIUS) -> float:
    """
    Compute a matrix norm.

    Args:
        matrix: SparseMatrix
        kind: Norm.ONE, Norm.INFINITY or Norm.FROBENIUS (or their values)

    Returns:
        The norm as a float
    """
    return _NORMS[Norm(kind)](matrix)


def sparsity(matrix) -> float:
    """Fraction of the matrix that is stored: size / (rows * columns)."""
    return matrix.size() / (matrix.first * matrix.second)


def density(matrix) -> float:
    return 1.0 - sparsity(matrix)
