"""
Krylov solvers for sparse square systems.

Methods:
- 'cg': Conjugate Gradient (symmetric positive-definite matrices)
- 'bicg': Biconjugate Gradient (general matrices, uses A^T)

Every solver shares the signature::

    solver(A, b, x0=None, atol=1e-10, rtol=0.0, maxiter=None,
           preconditioner=None, callback=None, breakdown_tol=None) -> SolveResult

A preconditioner is any callable ``z = M(r)`` applied to the residual each
iteration; leaving it out runs the plain recurrences.
"""

from typing import Callable, Dict, List, Literal

from ..check import InvalidInput
from .base import (
    DEFAULT_ATOL,
    MAXITER_FACTOR,
    SolveResult,
    default_maxiter,
)
from .bicg import bicg_solve
from .cg import cg_solve

# Type aliases
MethodType = Literal['cg', 'bicg']

# Method -> solver mapping
METHODS: Dict[str, Callable[..., SolveResult]] = {
    'cg': cg_solve,
    'bicg': bicg_solve,
}


def get_available_methods() -> List[str]:
    """Names accepted by ``spsolve(method=...)``."""
    return list(METHODS)


def get_solver(method: str) -> Callable[..., SolveResult]:
    """Look up the solver function for ``method``."""
    try:
        return METHODS[method]
    except (KeyError, TypeError):
        raise InvalidInput(
            f"Unknown method: {method!r}. Available: {', '.join(METHODS)}"
        ) from None


__all__ = [
    "DEFAULT_ATOL",
    "MAXITER_FACTOR",
    "METHODS",
    "MethodType",
    "SolveResult",
    "bicg_solve",
    "cg_solve",
    "default_maxiter",
    "get_available_methods",
    "get_solver",
]
