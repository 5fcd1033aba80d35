import dataclasses
import warnings
import torch
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .check import InvalidInput
from .sparse_matrix import SparseMatrix
from .solvers import DEFAULT_ATOL, METHODS, MethodType, SolveResult, get_solver
from .solvers.base import Callback, Preconditioner


def spsolve(A,
            b,
            method:MethodType="cg",
            atol:float=DEFAULT_ATOL,
            rtol:float=0.0,
            maxiter:Optional[int]=None,
            x0=None,
            preconditioner:Optional[Preconditioner]=None,
            callback:Optional[Callback]=None,
            breakdown_tol:Optional[float]=None,
            check_symmetric:bool=False)->SolveResult:
    """Solve the sparse linear system with an iterative Krylov method

    .. math::
        Ax = b

    Each call is a complete, independent run: no state is kept between
    calls, so concurrent calls on the same matrix are safe.

    Parameters
    ----------
    A : SparseMatrix or array-like
        [n, n] matrix; dense input is converted with ``SparseMatrix.from_dense``
    b : array-like
        [n]
    method : str, optional
        {'cg', 'bicg'}, by default "cg"
    atol : float, optional
        absolute residual tolerance, by default 1e-10
    rtol : float, optional
        relative tolerance w.r.t. ``||b||``, by default 0
    maxiter : int, optional
        iteration cap, by default ``10 * n``
    x0 : array-like, optional
        [n] initial guess, by default zeros
    preconditioner : callable, optional
        ``z = M(r)`` applied to the residual each iteration
    callback : callable, optional
        ``callback(iteration, residual)`` after each iteration
    breakdown_tol : float, optional
        see ``cg_solve`` / ``bicg_solve``
    check_symmetric : bool, optional
        for 'cg', verify ``A == A^T`` first, by default False

    Returns
    -------
    SolveResult
        ``(x, num_iters, residual)``

    Raises
    ------
    DimensionMismatch
        ``b`` or ``x0`` has the wrong length
    InvalidInput
        non-square ``A``, unknown method, bad tolerance or iteration cap,
        or a non-symmetric ``A`` with ``check_symmetric``
    NotConverged
        tolerance not reached within ``maxiter`` iterations
    Breakdown
        a divisor vanished during the iteration
    """

    if not isinstance(A, SparseMatrix):
        A = SparseMatrix.from_dense(A)
    solver = get_solver(method)
    if not A.is_square:
        raise InvalidInput(f"A must be square, got shape {A.shape}")
    if A.dtype != torch.float64:
        warnings.warn("You'd better use float64 to maintain good precision")
    if check_symmetric and method == "cg" and not A.is_symmetric():
        raise InvalidInput("cg requires a symmetric matrix, A != A^T")

    return solver(A, b, x0=x0, atol=atol, rtol=rtol, maxiter=maxiter,
                  preconditioner=preconditioner, callback=callback,
                  breakdown_tol=breakdown_tol)


@dataclass(frozen=True)
class SolverConfig:
    """
    Options shared by every solve of a ``SparseSolver``.

    Attributes
    ----------
    method : str
        'cg' or 'bicg'
    atol : float
        absolute residual tolerance
    rtol : float
        relative residual tolerance
    maxiter : int, optional
        iteration cap, ``None`` for ``10 * n``
    x0 : array-like, optional
        initial guess
    preconditioner : callable, optional
        ``z = M(r)``
    breakdown_tol : float, optional
        breakdown threshold, ``None`` for the method default
    """
    method: str = "cg"
    atol: float = DEFAULT_ATOL
    rtol: float = 0.0
    maxiter: Optional[int] = None
    x0: Any = field(default=None, compare=False)
    preconditioner: Optional[Preconditioner] = field(default=None, compare=False)
    breakdown_tol: Optional[float] = None

    def __post_init__(self):
        if self.method not in METHODS:
            raise InvalidInput(f"Unknown method: {self.method!r}. Available: {', '.join(METHODS)}")
        if not self.atol > 0:
            raise InvalidInput(f"atol must be positive, got {self.atol}")
        if not self.rtol >= 0:
            raise InvalidInput(f"rtol must be non-negative, got {self.rtol}")
        if self.maxiter is not None and self.maxiter < 0:
            raise InvalidInput(f"maxiter must be non-negative, got {self.maxiter}")

    def as_kwargs(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}


class SparseSolver:
    """
    Reusable solver front end holding a ``SolverConfig``.

    Examples
    --------
    >>> solver = SparseSolver(method="bicg", maxiter=1000)
    >>> result = solver.solve(A, b)
    >>> result = solver.solve(A, b, atol=1e-6)  # per-call override
    """

    def __init__(self, config: Optional[SolverConfig] = None, **overrides):
        config = config if config is not None else SolverConfig()
        self.config = dataclasses.replace(config, **overrides) if overrides else config

    def solve(self, A, b, **overrides) -> SolveResult:
        kwargs = self.config.as_kwargs()
        kwargs.update(overrides)
        return spsolve(A, b, **kwargs)

    def __repr__(self) -> str:
        return f"SparseSolver({self.config})"
