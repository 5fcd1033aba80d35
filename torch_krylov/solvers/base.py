"""
Shared pieces of the Krylov solvers: result type, defaults, system setup
and the breakdown test.
"""

import math
import torch
from torch import Tensor
from typing import Callable, NamedTuple, Optional, Tuple

from ..check import Breakdown, InvalidInput, check_vector
from ..sparse_matrix import SparseMatrix
from ..vector_ops import norm


DEFAULT_ATOL = 1e-10

# maxiter=None resolves to MAXITER_FACTOR * n. CG needs at most n steps in
# exact arithmetic, rounding can need more.
MAXITER_FACTOR = 10

Preconditioner = Callable[[Tensor], Tensor]
Callback = Callable[[int, float], None]


class SolveResult(NamedTuple):
    """Result of a converged iterative solve."""
    x: Tensor
    num_iters: int
    residual: float


def default_maxiter(n: int) -> int:
    """Iteration cap used when none is given: ``MAXITER_FACTOR * n``."""
    return MAXITER_FACTOR * n


def identity(r: Tensor) -> Tensor:
    return r


def prepare_system(
    A: SparseMatrix,
    b,
    x0=None,
    atol: float = DEFAULT_ATOL,
    rtol: float = 0.0,
    maxiter: Optional[int] = None,
) -> Tuple[Tensor, Tensor, Tensor, float, int]:
    """
    Validate a square system and build the starting iterate.

    Returns
    -------
    b : Tensor
        right-hand side as a tensor of the matrix dtype/device
    x : Tensor
        initial iterate (copy of ``x0`` or zeros)
    r : Tensor
        initial residual ``b - A x``
    tol : float
        ``max(atol, rtol * ||b||)``
    maxiter : int
        resolved iteration cap
    """
    if not isinstance(A, SparseMatrix):
        raise InvalidInput(f"A must be a SparseMatrix, got {type(A).__name__}")
    if not A.is_square:
        raise InvalidInput(f"A must be square, got shape {A.shape}")
    if not atol > 0:
        raise InvalidInput(f"atol must be positive, got {atol}")
    if not rtol >= 0:
        raise InvalidInput(f"rtol must be non-negative, got {rtol}")
    n = A.rows
    if maxiter is None:
        maxiter = default_maxiter(n)
    if maxiter < 0:
        raise InvalidInput(f"maxiter must be non-negative, got {maxiter}")

    b = A._as_operand(b)
    check_vector("b", b, n)

    if x0 is None:
        x = torch.zeros(n, dtype=A.dtype, device=A.device)
        r = b.clone()
    else:
        x = A._as_operand(x0).clone()
        check_vector("x0", x, n)
        r = b - A.multiply(x)

    tol = max(atol, rtol * norm(b).item())
    return b, x, r, tol, int(maxiter)


def check_breakdown(value: Tensor, u: Tensor, v: Tensor, breakdown_tol: float,
                    iteration: int, quantity: str) -> float:
    """
    Raise ``Breakdown`` when the inner product ``value = u . v`` is not
    finite or ``|u . v| <= breakdown_tol * ||u|| * ||v||``.

    Returns the inner product as a python float otherwise.
    """
    val = value.item()
    if not math.isfinite(val):
        raise Breakdown(iteration, quantity)
    if breakdown_tol == 0:
        if val == 0:
            raise Breakdown(iteration, quantity)
    elif abs(val) <= breakdown_tol * (norm(u) * norm(v)).item():
        raise Breakdown(iteration, quantity)
    return val
