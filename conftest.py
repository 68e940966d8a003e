"""
Shared fixtures for the sparse matrix tests.
"""

import numpy as np
import pytest
import scipy.sparse as sparse

from matrix_types import Order
from sparse_matrix import SparseMatrix


def generate_sparse_matrix(rows, columns, density, challenging=False, seed=0):
    """
    Generate a sparse test matrix with optional challenging patterns.

    Args:
        rows: Number of rows
        columns: Number of columns
        density: Target density
        challenging: Whether to mix in diagonal entries and extreme values
        seed: Random seed

    Returns:
        A scipy.sparse.csr_matrix
    """
    rng = np.random.default_rng(seed)
    nnz = max(1, int(rows * columns * density))

    if not challenging:
        row_ids = rng.integers(0, rows, nnz)
        col_ids = rng.integers(0, columns, nnz)
        data = rng.random(nnz) + 0.1
        return sparse.csr_matrix((data, (row_ids, col_ids)), shape=(rows, columns))

    # Base random entries (80% of non-zeros)
    base_nnz = int(nnz * 0.8)
    row_ids = rng.integers(0, rows, base_nnz)
    col_ids = rng.integers(0, columns, base_nnz)
    data = rng.random(base_nnz) + 0.1

    # Diagonal entries (10% of non-zeros)
    diag_nnz = min(int(nnz * 0.1), rows, columns)
    diag = rng.choice(min(rows, columns), diag_nnz, replace=False)

    # Mix of very large and very small values
    extreme_nnz = nnz - base_nnz - diag_nnz
    extreme_rows = rng.integers(0, rows, extreme_nnz)
    extreme_cols = rng.integers(0, columns, extreme_nnz)
    extreme_data = np.concatenate([
        rng.uniform(1e6, 1e9, extreme_nnz // 2),
        rng.uniform(1e-6, 1e-3, extreme_nnz - extreme_nnz // 2)
    ])

    all_rows = np.concatenate([row_ids, diag, extreme_rows])
    all_cols = np.concatenate([col_ids, diag, extreme_cols])
    all_data = np.concatenate([data, rng.random(diag_nnz) + 0.1, extreme_data])

    return sparse.csr_matrix((all_data, (all_rows, all_cols)), shape=(rows, columns))


def build(dense, order, compressed):
    """SparseMatrix from a dense array in the requested ordering and mode."""
    matrix = SparseMatrix.from_dense(dense, order=order)
    if compressed:
        matrix.compress()
    return matrix


@pytest.fixture(params=[Order.ROW, Order.COLUMN], ids=["row", "column"])
def order(request):
    return request.param


@pytest.fixture(params=[False, True], ids=["sparse", "compressed"])
def compressed(request):
    return request.param


@pytest.fixture
def rectangular():
    return np.array([
        [1.0, 0.0, 2.0, 0.0],
        [0.0, 0.0, 3.0, 0.0],
        [4.0, 5.0, 0.0, 6.0],
    ])
