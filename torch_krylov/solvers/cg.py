"""
Conjugate Gradient for symmetric positive-definite systems.

Standard recurrence (with ``M`` the identity unless a preconditioner is
given)::

    r0 = b - A x0,  z0 = M r0,  p0 = z0
    alpha = (r . z) / (p . A p)
    x    += alpha p
    r    -= alpha A p
    beta  = (r' . z') / (r . z)
    p     = z' + beta p

Symmetry and positive definiteness of ``A`` are not verified; the search
directions are only A-conjugate when they hold.
"""

import warnings
from typing import Optional

from ..check import NotConverged
from ..sparse_matrix import SparseMatrix
from ..vector_ops import axpy, dot, norm
from .base import (
    DEFAULT_ATOL,
    Callback,
    Preconditioner,
    SolveResult,
    check_breakdown,
    identity,
    prepare_system,
)


def cg_solve(
    A: SparseMatrix,
    b,
    x0=None,
    atol: float = DEFAULT_ATOL,
    rtol: float = 0.0,
    maxiter: Optional[int] = None,
    preconditioner: Optional[Preconditioner] = None,
    callback: Optional[Callback] = None,
    breakdown_tol: Optional[float] = None,
) -> SolveResult:
    """
    Solve ``A x = b`` with (preconditioned) Conjugate Gradient.

    Parameters
    ----------
    A : SparseMatrix
        [n, n] symmetric positive-definite matrix.
    b : array-like
        [n] right-hand side.
    x0 : array-like, optional
        Initial guess. Default: zeros.
    atol : float
        Absolute residual tolerance, default 1e-10.
    rtol : float
        Relative tolerance w.r.t. ``||b||``, default 0.
        Converged when ``||r|| < max(atol, rtol * ||b||)``.
    maxiter : int, optional
        Iteration cap. Default: ``10 * n``.
    preconditioner : callable, optional
        ``z = M(r)``; must be symmetric positive-definite.
    callback : callable, optional
        ``callback(iteration, residual)`` after every iteration.
    breakdown_tol : float, optional
        Relative threshold for a vanishing ``p . A p`` or ``r . z``.
        Default 0, i.e. only exact zeros and non-finite values.

    Returns
    -------
    SolveResult
        ``(x, num_iters, residual)``. ``num_iters`` is 0 when ``x0``
        already satisfies the tolerance.

    Raises
    ------
    NotConverged
        If ``maxiter`` iterations did not reach the tolerance.
    Breakdown
        If ``p . A p`` or ``r . z`` vanished or stopped being finite.
    """
    _, x, r, tol, maxiter = prepare_system(A, b, x0, atol, rtol, maxiter)
    if breakdown_tol is None:
        breakdown_tol = 0.0

    residual = norm(r).item()
    if residual < tol:
        return SolveResult(x, 0, residual)

    M = identity if preconditioner is None else preconditioner
    z = M(r)
    p = z.clone()
    rz_old = dot(r, z)
    warned = False

    for i in range(maxiter):
        if preconditioner is not None:
            check_breakdown(rz_old, r, z, breakdown_tol, i, "r'z")

        Ap = A.multiply(p)
        pAp = dot(p, Ap)
        pAp_val = check_breakdown(pAp, p, Ap, breakdown_tol, i, "p'Ap")
        if pAp_val < 0 and not warned:
            warnings.warn(f"CG: matrix not positive definite (p'Ap = {pAp_val:.2e})")
            warned = True

        alpha = rz_old / pAp
        x = axpy(alpha, p, x)
        r = axpy(-alpha, Ap, r)

        residual = norm(r).item()
        if callback is not None:
            callback(i + 1, residual)
        if residual < tol:
            return SolveResult(x, i + 1, residual)

        z = M(r)
        rz_new = dot(r, z)
        beta = rz_new / rz_old
        p = axpy(beta, p, z)
        rz_old = rz_new

    raise NotConverged(maxiter, residual)
