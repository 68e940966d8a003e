import importlib
import logging

import numpy as np
import pytest

from logging_config import get_logger, setup_logging
from matrix_config import (DEFAULT_CONFIG, DEFAULT_TOLERANCE, FILTER_ON_INSERT_ENV, TOLERANCE_ENV,
                           MatrixConfig, config_from_env)
from matrix_types import MatrixType, Order, check_matrix_type, check_scalar
from sparse_matrix import SparseMatrix


def test_default_config():
    assert DEFAULT_CONFIG.tolerance == DEFAULT_TOLERANCE == 1e-8
    assert DEFAULT_CONFIG.filter_on_insert
    assert DEFAULT_CONFIG.dtype == np.float64


@pytest.mark.parametrize("tolerance", [-1.0, float("nan"), float("inf")])
def test_invalid_tolerance(tolerance):
    with pytest.raises(ValueError):
        MatrixConfig(tolerance=tolerance)
    with pytest.raises(ValueError):
        SparseMatrix(2, 2, tolerance=tolerance)


def test_config_is_threaded_into_matrix():
    config = MatrixConfig(tolerance=1e-3, dtype=np.complex128)
    matrix = SparseMatrix(2, 2, config=config)
    assert matrix.tolerance == 1e-3
    assert matrix.dtype == np.complex128

    override = SparseMatrix(2, 2, tolerance=0.5, config=config)
    assert override.tolerance == 0.5
    assert config.with_tolerance(0.1).tolerance == 0.1


def test_derived_matrices_keep_settings():
    matrix = SparseMatrix(2, 2, {(0, 0): 1.0}, order=Order.COLUMN, tolerance=1e-3)
    for derived in (matrix.copy(), matrix * 2.0, matrix * matrix, matrix.reshape(2, 3)):
        assert derived.tolerance == 1e-3
        assert derived.order is Order.COLUMN


def test_config_from_env():
    config = config_from_env({TOLERANCE_ENV: "1e-6", FILTER_ON_INSERT_ENV: "false"})
    assert config.tolerance == 1e-6
    assert not config.filter_on_insert
    assert config_from_env({}) == DEFAULT_CONFIG


def test_config_from_env_rejects_bad_tolerance():
    with pytest.raises(ValueError):
        config_from_env({TOLERANCE_ENV: "-3"})


@pytest.mark.parametrize("dtype", [np.int32, np.uint8, np.float32, np.float64, np.complex64])
def test_supported_dtypes(dtype):
    assert check_matrix_type(dtype) == np.dtype(dtype)


@pytest.mark.parametrize("dtype", [bool, object, str, "datetime64[s]"])
def test_unsupported_dtypes(dtype):
    with pytest.raises(TypeError):
        check_matrix_type(dtype)


def test_scalars():
    for value in (2, 2.5, 1j, np.float32(3), np.int64(4)):
        assert check_scalar(value) == value
        assert isinstance(value, MatrixType)
    for value in ("2", None, [1], np.bool_(True), False):
        with pytest.raises(TypeError):
            check_scalar(value)


def test_setup_logging(tmp_path):
    log_file = tmp_path / "matrix.log"
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    try:
        setup_logging(logging.DEBUG, str(log_file))
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        matrix = SparseMatrix(2, 2, {(0, 0): 1.0})
        matrix.compress()
        for handler in root.handlers:
            handler.flush()
        assert "Compressed 2x2 matrix" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_get_logger_level():
    logger = get_logger("sparse_matrix.test", logging.WARNING)
    assert logger.level == logging.WARNING
    assert get_logger("sparse_matrix.other").level == logging.NOTSET


@pytest.mark.parametrize("module", ["sparse_matrix", "matrix_storage", "matrix_multiply"])
def test_module_loggers_come_from_get_logger(module):
    imported = importlib.import_module(module)
    assert imported.logger is get_logger(module)
    assert imported.logger.level == logging.NOTSET
