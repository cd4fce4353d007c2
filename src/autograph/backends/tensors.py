"""
2-D tensor kernels on numpy float64.

Inputs may be nested lists (values handed between nodes are plain JSON)
or arrays; results are arrays, which the engine normalises to lists.
"""

from __future__ import annotations

from typing import Any, List

import numpy as np


def as_matrix(value: Any) -> np.ndarray:
    """Coerce a value to a 2-D float64 array."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"expected a 2-D tensor, got {arr.ndim} dimension(s)")
    return arr


def _same_shape(op: str, a: np.ndarray, b: np.ndarray) -> None:
    if a.shape != b.shape:
        raise ValueError(f"{op}: shape mismatch {a.shape} vs {b.shape}")


def create(rows: int, cols: int, values: List[float]) -> np.ndarray:
    if len(values) != rows * cols:
        raise ValueError(f"expected {rows * cols} values, got {len(values)}")
    return np.asarray(values, dtype=np.float64).reshape(rows, cols)


def dot(a: Any, b: Any) -> np.ndarray:
    a, b = as_matrix(a), as_matrix(b)
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"dot: inner dimensions differ {a.shape} x {b.shape}")
    return a @ b


def add(a: Any, b: Any) -> np.ndarray:
    a, b = as_matrix(a), as_matrix(b)
    _same_shape("add", a, b)
    return a + b


def subtract(a: Any, b: Any) -> np.ndarray:
    a, b = as_matrix(a), as_matrix(b)
    _same_shape("subtract", a, b)
    return a - b


def multiply(a: Any, b: Any) -> np.ndarray:
    """Element-wise product."""
    a, b = as_matrix(a), as_matrix(b)
    _same_shape("multiply", a, b)
    return a * b


def transpose(a: Any) -> np.ndarray:
    return as_matrix(a).T.copy()
