"""
Dense vector primitives shared by the Krylov solvers.

All functions are pure: inputs are never modified and at most one new
vector is allocated. The only error condition is a length mismatch.
"""

import torch
from torch import Tensor

from .check import DimensionMismatch


def _check_same_length(u: Tensor, v: Tensor, name: str = "v"):
    if u.shape != v.shape or u.ndim != 1:
        raise DimensionMismatch(name, tuple(v.shape), f"{list(u.shape)} (1D)")


def dot(u: Tensor, v: Tensor) -> Tensor:
    """Inner product ``u . v`` as a 0-dim tensor."""
    _check_same_length(u, v)
    return torch.dot(u, v)


def norm(v: Tensor) -> Tensor:
    """Euclidean norm ``sqrt(v . v)``."""
    if v.ndim != 1:
        raise DimensionMismatch("v", tuple(v.shape), "[n]")
    return torch.sqrt(torch.dot(v, v))


def axpy(a, x: Tensor, y: Tensor) -> Tensor:
    """Return ``a * x + y`` elementwise. ``a`` may be a python scalar or 0-dim tensor."""
    _check_same_length(x, y, "y")
    return y + a * x


def subtract(u: Tensor, v: Tensor) -> Tensor:
    """Return ``u - v``."""
    _check_same_length(u, v)
    return u - v
