"""
Per-matrix configuration: zero tolerance and insertion policy.
"""

import math
import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

import numpy as np

from matrix_types import check_matrix_type

DEFAULT_TOLERANCE = 1e-8

TOLERANCE_ENV = "SPARSE_MATRIX_TOLERANCE"
FILTER_ON_INSERT_ENV = "SPARSE_MATRIX_FILTER_ON_INSERT"


def check_tolerance(tolerance: float) -> float:
    tolerance = float(tolerance)
    if not math.isfinite(tolerance) or tolerance < 0.0:
        raise ValueError(f"Zero tolerance must be a finite non-negative number, got {tolerance}")
    return tolerance


@dataclass(frozen=True)
class MatrixConfig:
    """
    Settings threaded into a matrix at construction.

    Attributes:
        tolerance: Magnitudes <= tolerance are structural zeros
        filter_on_insert: Whether insert() drops values within tolerance
        dtype: Default element dtype
    """
    tolerance: float = DEFAULT_TOLERANCE
    filter_on_insert: bool = True
    dtype: np.dtype = field(default=np.dtype(np.float64))

    def __post_init__(self):
        object.__setattr__(self, "tolerance", check_tolerance(self.tolerance))
        object.__setattr__(self, "dtype", check_matrix_type(self.dtype))

    def with_tolerance(self, tolerance: float) -> "MatrixConfig":
        return replace(self, tolerance=tolerance)


DEFAULT_CONFIG = MatrixConfig()


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> MatrixConfig:
    """
    Build a MatrixConfig from environment variables.

    Args:
        environ: Mapping to read from, os.environ by default

    Returns:
        A MatrixConfig with unset variables left at their defaults
    """
    if environ is None:
        environ = os.environ

    kwargs = {}
    if environ.get(TOLERANCE_ENV):
        kwargs["tolerance"] = float(environ[TOLERANCE_ENV])
    if environ.get(FILTER_ON_INSERT_ENV):
        kwargs["filter_on_insert"] = environ[FILTER_ON_INSERT_ENV].strip().lower() in ("1", "true", "yes", "on")

    return MatrixConfig(**kwargs)
