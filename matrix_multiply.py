"""
Products involving SparseMatrix: matrix x vector, vector x matrix,
matrix x matrix and matrix x scalar.

Every product has a path per storage mode and per ordering; compressed
storage is the fast path.
"""

from itertools import groupby
from typing import Iterator, Tuple

import numpy as np

from logging_config import get_logger
from matrix_errors import DimensionError
from matrix_storage import CompressedStorage, CooStorage, drop_small
from matrix_types import Order, check_matrix_type, check_scalar

logger = get_logger(__name__)


def _as_vector(vector, length: int, role: str) -> np.ndarray:
    vector = np.asarray(vector)
    if vector.ndim != 1:
        raise DimensionError(f"Expected a 1-D vector, got shape {vector.shape}")
    if vector.shape[0] != length:
        raise DimensionError(f"Vector length {vector.shape[0]} does not match matrix {role} {length}")
    check_matrix_type(vector.dtype)
    return vector


def matrix_vector_multiply(matrix, vector) -> np.ndarray:
    """
    Multiply a matrix with a vector.

    Args:
        matrix: SparseMatrix with columns() == len(vector)
        vector: Vector to multiply with

    Returns:
        Result vector of length matrix.rows()

    Raises:
        DimensionError: If the vector length does not match
    """
    vector = _as_vector(vector, matrix.columns(), "columns")
    result = np.zeros(matrix.rows(), dtype=np.result_type(matrix.dtype, vector.dtype))
    storage = matrix.storage

    if isinstance(storage, CooStorage):
        # Full iteration on the nonzero elements
        if matrix.order is Order.ROW:
            for (j, k), value in storage.elements.items():
                result[j] += value * vector[k]
        else:
            for (j, k), value in storage.elements.items():
                result[k] += value * vector[j]
        return result

    if matrix.order is Order.ROW:
        # Standard product
        for j in range(storage.segments):
            start, end = storage.inner[j], storage.inner[j + 1]
            if start == end:
                continue
            result[j] = np.dot(storage.values[start:end], vector[storage.outer[start:end]])
    else:
        # Linear combination of columns
        for j in range(storage.segments):
            start, end = storage.inner[j], storage.inner[j + 1]
            if start == end:
                continue
            result[storage.outer[start:end]] += storage.values[start:end] * vector[j]

    return result


def vector_matrix_multiply(vector, matrix) -> np.ndarray:
    """
    Multiply a (row) vector with a matrix.

    Args:
        vector: Vector of length matrix.rows()
        matrix: SparseMatrix

    Returns:
        Result vector of length matrix.columns()

    Raises:
        DimensionError: If the vector length does not match
    """
    vector = _as_vector(vector, matrix.rows(), "rows")
    result = np.zeros(matrix.columns(), dtype=np.result_type(matrix.dtype, vector.dtype))
    storage = matrix.storage

    if isinstance(storage, CooStorage):
        if matrix.order is Order.ROW:
            for (j, k), value in storage.elements.items():
                result[k] += vector[j] * value
        else:
            for (j, k), value in storage.elements.items():
                result[j] += vector[k] * value
        return result

    if matrix.order is Order.COLUMN:
        # Standard product, one column per segment
        for j in range(storage.segments):
            start, end = storage.inner[j], storage.inner[j + 1]
            if start == end:
                continue
            result[j] = np.dot(vector[storage.outer[start:end]], storage.values[start:end])
    else:
        # Linear combination of rows
        for j in range(storage.segments):
            start, end = storage.inner[j], storage.inner[j + 1]
            if start == end:
                continue
            result[storage.outer[start:end]] += vector[j] * storage.values[start:end]

    return result


def _dense_segments(storage, width: int, dtype) -> Iterator[Tuple[int, np.ndarray]]:
    """Yield (index, dense buffer) for every nonempty physical segment."""
    if isinstance(storage, CompressedStorage):
        for j in range(storage.segments):
            start, end = storage.inner[j], storage.inner[j + 1]
            if start == end:
                continue
            row = np.zeros(width, dtype=dtype)
            row[storage.outer[start:end]] = storage.values[start:end]
            yield j, row
        return

    for j, group in groupby(storage.sorted_items(), key=lambda item: item[0][0]):
        row = np.zeros(width, dtype=dtype)
        for (_, k), value in group:
            row[k] = value
        yield j, row


def _segment_product(left, right, width: int, length: int, dtype, tolerance: float) -> dict:
    """
    Row-oriented product of two physical representations.

    Each segment of left is expanded to a dense buffer and combined with
    the segments of right; results within tolerance are omitted.
    """
    elements = {}
    for j, row in _dense_segments(left, width, dtype):
        product = np.zeros(length, dtype=dtype)

        if isinstance(right, CompressedStorage):
            # Linear combination of the right operand's segments
            for k in np.flatnonzero(row):
                start, end = right.inner[k], right.inner[k + 1]
                product[right.outer[start:end]] += row[k] * right.values[start:end]
        else:
            # Full iteration on the right operand's nonzero elements
            for (k, h), value in right.elements.items():
                product[h] += row[k] * value

        for h in np.flatnonzero(np.abs(product) > tolerance):
            elements[(j, int(h))] = product[h]

    return elements


def matrix_matrix_multiply(left, right):
    """
    Multiply two matrices with the same ordering.

    The result is compressed when either operand is compressed and left in
    coordinate-map mode otherwise. Entries within the left operand's
    tolerance are omitted.

    Args:
        left: SparseMatrix
        right: SparseMatrix with right.rows() == left.columns()

    Returns:
        A new SparseMatrix of shape (left.rows(), right.columns())

    Raises:
        DimensionError: If orderings or inner dimensions differ
    """
    if left.order is not right.order:
        raise DimensionError(f"Cannot multiply a {left.order.value}-ordered matrix "
                             f"with a {right.order.value}-ordered one")
    if left.columns() != right.rows():
        raise DimensionError(f"Cannot multiply shapes {left.shape()} and {right.shape()}")

    dtype = np.result_type(left.dtype, right.dtype)

    if left.order is Order.ROW:
        elements = _segment_product(left.storage, right.storage,
                                    left.columns(), right.columns(), dtype, left.tolerance)
        result = left.with_elements(left.rows(), right.columns(), elements, dtype=dtype)
    else:
        # Column storage holds the transposes: (AB)^T = B^T A^T
        elements = _segment_product(right.storage, left.storage,
                                    left.columns(), left.rows(), dtype, left.tolerance)
        result = left.with_elements(right.columns(), left.rows(), elements, dtype=dtype)

    logger.debug("Multiplied %s by %s, result nnz: %d", left.shape(), right.shape(), result.size())

    if left.is_compressed() or right.is_compressed():
        result.compress()
    return result


def _map_values(matrix, func, dtype):
    storage = matrix.storage

    if isinstance(storage, CooStorage):
        logger.debug("Rescaling %d entries in coordinate-map mode; compressed mode "
                     "rescales the values array in one pass", storage.nnz)
        keys = list(storage.elements)
        values = func(np.array([storage.elements[key] for key in keys], dtype=matrix.dtype))
        return matrix.with_elements(matrix.first, matrix.second,
                                    dict(zip(keys, values.astype(dtype))), dtype=dtype)

    values = func(storage.values).astype(dtype)
    compressed = CompressedStorage(storage.inner.copy(), storage.outer.copy(), values)
    return matrix.with_storage(drop_small(compressed, matrix.tolerance), dtype=dtype)


def scale(matrix, scalar):
    """
    Multiply every entry of a matrix by a scalar.

    Returns:
        A new SparseMatrix in the same storage mode. Compressed results drop
        entries that fall within tolerance.
    """
    scalar = check_scalar(scalar)
    dtype = np.result_type(matrix.dtype, scalar)
    return _map_values(matrix, lambda values: values * scalar, dtype)


def divide(matrix, scalar):
    """
    Divide every entry of a matrix by a scalar.

    Integer matrices divided by integers truncate toward zero.

    Raises:
        ZeroDivisionError: If scalar is zero
    """
    scalar = check_scalar(scalar)
    if scalar == 0:
        raise ZeroDivisionError("Matrix division by zero")

    dtype = np.result_type(matrix.dtype, scalar)
    if dtype.kind in "iu":
        return _map_values(matrix, lambda values: np.trunc(values / scalar), dtype)
    return _map_values(matrix, lambda values: values / scalar, dtype)
