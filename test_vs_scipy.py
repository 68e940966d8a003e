"""
Compare SparseMatrix products and norms with SciPy on random matrices.
"""

import numpy as np
import pytest
import scipy.sparse as sparse
import scipy.sparse.linalg as splinalg

from conftest import generate_sparse_matrix
from matrix_types import Norm, Order
from sparse_matrix import SparseMatrix


@pytest.mark.parametrize("challenging", [False, True], ids=["simple", "challenging"])
@pytest.mark.parametrize("size,density", [(50, 0.05), (200, 0.01)])
def test_matrix_vector_matches_scipy(order, compressed, size, density, challenging):
    reference = generate_sparse_matrix(size, size, density, challenging, seed=size)
    vector = np.random.default_rng(1).random(size)

    matrix = SparseMatrix.from_scipy(reference, order=order)
    if not compressed:
        matrix.uncompress()

    expected = reference @ vector
    np.testing.assert_allclose(matrix * vector, expected, rtol=1e-10, atol=1e-10)
    np.testing.assert_allclose(vector * matrix, reference.T @ vector, rtol=1e-10, atol=1e-10)


@pytest.mark.parametrize("left_compressed", [False, True])
@pytest.mark.parametrize("right_compressed", [False, True])
def test_matrix_matrix_matches_scipy(order, left_compressed, right_compressed):
    left_reference = generate_sparse_matrix(30, 20, 0.1, seed=3)
    right_reference = generate_sparse_matrix(20, 25, 0.1, seed=4)

    left = SparseMatrix.from_scipy(left_reference, order=order)
    right = SparseMatrix.from_scipy(right_reference, order=order)
    if not left_compressed:
        left.uncompress()
    if not right_compressed:
        right.uncompress()

    product = left * right
    expected = (left_reference @ right_reference).toarray()

    assert product.shape() == expected.shape
    np.testing.assert_allclose(product.to_dense(), expected, rtol=1e-10, atol=1e-10)


def test_norms_match_scipy(order, compressed):
    reference = generate_sparse_matrix(40, 60, 0.05, challenging=True, seed=7)
    matrix = SparseMatrix.from_scipy(reference, order=order)
    if not compressed:
        matrix.uncompress()

    assert matrix.norm(Norm.ONE) == pytest.approx(splinalg.norm(reference, 1))
    assert matrix.norm(Norm.INFINITY) == pytest.approx(splinalg.norm(reference, np.inf))
    assert matrix.norm(Norm.FROBENIUS) == pytest.approx(splinalg.norm(reference, "fro"))


def test_scipy_round_trip(order):
    reference = generate_sparse_matrix(15, 12, 0.2, seed=11)
    matrix = SparseMatrix.from_scipy(reference, order=order)

    converted = matrix.to_scipy()
    if order is Order.ROW:
        assert converted.format == "csr"
    else:
        assert converted.format == "csc"
    np.testing.assert_array_equal(converted.toarray(), reference.toarray())

    matrix.uncompress()
    np.testing.assert_array_equal(matrix.to_scipy().toarray(), reference.toarray())


def test_from_scipy_rejects_dense():
    with pytest.raises(TypeError):
        SparseMatrix.from_scipy(np.eye(3))


def test_from_scipy_drops_entries_within_tolerance(order):
    # Explicitly stored zero and a value below the default tolerance
    reference = sparse.csr_matrix((np.array([1e-12, 0.0, 1.0]),
                                   np.array([0, 1, 1]),
                                   np.array([0, 2, 3])), shape=(2, 2))
    assert reference.nnz == 3

    matrix = SparseMatrix.from_scipy(reference, order=order)
    assert matrix.is_compressed()
    assert matrix.size() == 1
    assert matrix.at(1, 1) == 1.0
    assert matrix.at(0, 0) == 0.0
    assert matrix.sparsity() == pytest.approx(0.25)

    sizes = matrix.size(), matrix.density()
    matrix.uncompress()
    matrix.compress()
    assert (matrix.size(), matrix.density()) == sizes


def test_from_scipy_uses_instance_tolerance():
    reference = sparse.csr_matrix(np.array([[0.5, 2.0], [0.0, 0.1]]))
    matrix = SparseMatrix.from_scipy(reference, tolerance=1.0)
    assert matrix.size() == 1
    assert matrix.at(0, 1) == 2.0
