"""
Biconjugate Gradient for general square systems.

BiCG runs two coupled sequences, one with ``A`` and a shadow sequence with
``A^T``::

    r0 = b - A x0,  r0_hat = r0,  p0 = r0,  p0_hat = r0_hat
    alpha   = (r_hat . r) / (p_hat . A p)
    x      += alpha p
    r      -= alpha A p
    r_hat  -= alpha A^T p_hat
    beta    = (r_hat' . r') / (r_hat . r)
    p       = r' + beta p
    p_hat   = r_hat' + beta p_hat

Both inner products are divisors. When one of them becomes negligible
relative to the norms of its factors the method has broken down and the
next iterate is undefined, so ``Breakdown`` is raised instead.
"""

import torch
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


def bicg_solve(
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
    Solve ``A x = b`` with (preconditioned) Biconjugate Gradient.

    Parameters
    ----------
    A : SparseMatrix
        [n, n] matrix, symmetry not required.
    b : array-like
        [n] right-hand side.
    x0 : array-like, optional
        Initial guess. Default: zeros.
    atol, rtol : float
        Converged when ``||r|| < max(atol, rtol * ||b||)``.
    maxiter : int, optional
        Iteration cap. Default: ``10 * n``.
    preconditioner : callable, optional
        ``z = M(r)``. It is applied to the shadow residual as well, so it
        must be symmetric (``M^T = M``), e.g. a diagonal scaling.
    callback : callable, optional
        ``callback(iteration, residual)`` after every iteration.
    breakdown_tol : float, optional
        Breakdown is declared when ``|u . v| <= breakdown_tol * ||u|| ||v||``
        for ``rho = r_hat . z`` or ``p_hat . A p``.
        Default: machine epsilon of the matrix dtype.

    Returns
    -------
    SolveResult

    Raises
    ------
    NotConverged
        If ``maxiter`` iterations did not reach the tolerance.
    Breakdown
        If a divisor vanished; ``iteration`` is the 0-based iteration that
        detected it. The partial iterate is discarded.
    """
    _, x, r, tol, maxiter = prepare_system(A, b, x0, atol, rtol, maxiter)
    if breakdown_tol is None:
        breakdown_tol = torch.finfo(A.dtype).eps

    residual = norm(r).item()
    if residual < tol:
        return SolveResult(x, 0, residual)

    AT = A.transposed()
    M = identity if preconditioner is None else preconditioner

    r_hat = r.clone()
    z = M(r)
    z_hat = M(r_hat)
    p = z.clone()
    p_hat = z_hat.clone()
    rho = dot(r_hat, z)

    for i in range(maxiter):
        check_breakdown(rho, r_hat, z, breakdown_tol, i, "r_hat'z")

        q = A.multiply(p)
        q_hat = AT.multiply(p_hat)
        denom = dot(p_hat, q)
        check_breakdown(denom, p_hat, q, breakdown_tol, i, "p_hat'Ap")

        alpha = rho / denom
        x = axpy(alpha, p, x)
        r = axpy(-alpha, q, r)
        r_hat = axpy(-alpha, q_hat, r_hat)

        residual = norm(r).item()
        if callback is not None:
            callback(i + 1, residual)
        if residual < tol:
            return SolveResult(x, i + 1, residual)

        z = M(r)
        z_hat = M(r_hat)
        rho_new = dot(r_hat, z)
        beta = rho_new / rho
        p = axpy(beta, p, z)
        p_hat = axpy(beta, p_hat, z_hat)
        rho = rho_new

    raise NotConverged(maxiter, residual)
