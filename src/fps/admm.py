"""Projection and selection ADMM.

The solver computes

    max_{X in C}  <input, X> - R(X)

for a convex set ``C`` with Euclidean projection ``P`` and a regulariser
``R`` with proximal operator ``S``.  One iteration reads

    x = z - u + input / rho;   P(x)
    z = x + u;                 S(z, 1 / rho)
    u = u + x - z

and the penalty ``rho`` is rescaled when the primal and dual residuals are
out of balance (Boyd et al., 2010, section 3.4.1).

The iterates may be dense arrays or :class:`~fps.blockmat.BlockMatrix`
instances; the same code path serves both.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math

import numpy as np

from .blockmat import BlockMatrix, frobenius_norm
from .operators import Projection, Selection

logger = logging.getLogger(__name__)

NOT_CONVERGED = -1
ADMM_ADJUST = 2.0
DEFAULT_MAXITER = 100
DEFAULT_TOLERANCE = 1e-3

_BALANCE = 10.0


@dataclass
class ADMMState:
    """Working memory of the solver, reused as warm start along a path.

    Attributes
    ----------
    z : :class:`numpy.ndarray` or :class:`~fps.blockmat.BlockMatrix`
        Current solution.
    u : :class:`numpy.ndarray` or :class:`~fps.blockmat.BlockMatrix`
        Scaled dual variable, shaped like ``z``.
    penalty : float
        ADMM penalty parameter ``rho``.  Updated by :func:`admm`.
    """

    z: np.ndarray | BlockMatrix
    u: np.ndarray | BlockMatrix
    penalty: float


def admm(
    projection: Projection,
    selection: Selection,
    input: np.ndarray | BlockMatrix,
    state: ADMMState,
    adjust: float = ADMM_ADJUST,
    maxiter: int = DEFAULT_MAXITER,
    tolerance: float = DEFAULT_TOLERANCE,
) -> int:
    """Run ADMM from ``state`` until convergence or ``maxiter`` iterations.

    Parameters
    ----------
    projection : :class:`~fps.operators.Projection`
        Projection onto the constraint set, applied in place.
    selection : :class:`~fps.operators.Selection`
        Proximal operator of the regulariser, called with scale ``1 / rho``.
    input : array or block matrix
        Input matrix, never modified.
    state : :class:`ADMMState`
        Initial ``z``, ``u`` and penalty; holds the last iterate on return.
    adjust : float
        Factor by which the penalty is increased or decreased.
    maxiter : int
        Maximum number of iterations.
    tolerance : float
        Threshold for both the primal and the dual residual norms.

    Returns
    -------
    int
        Number of iterations performed, or :data:`NOT_CONVERGED` if the
        residuals were still above ``tolerance`` after ``maxiter``
        iterations.
    """

    if adjust <= 1.0:
        raise ValueError("'adjust' must be greater than 1")
    if maxiter < 1:
        raise ValueError("Expected maxiter > 0")
    if tolerance <= 0.0:
        raise ValueError("Expected tolerance > 0")
    if not state.penalty > 0.0:
        raise ValueError("ADMM penalty must be positive")

    for niter in range(1, maxiter + 1):
        z_old = state.z

        # Projection
        x = state.z - state.u + input / state.penalty
        projection(x)

        # Selection
        z = x + state.u
        selection(z, 1.0 / state.penalty)

        # Dual variable update
        state.u = state.u + x - z
        state.z = z

        rr = frobenius_norm(x - z)
        ss = state.penalty * frobenius_norm(z - z_old)
        logger.debug("iteration %d: primal %.3e, dual %.3e, penalty %.3e", niter, rr, ss, state.penalty)

        if rr < tolerance and ss < tolerance:
            return niter

        if rr > _BALANCE * ss:
            state.penalty *= adjust
            state.u = state.u / adjust
        elif ss > _BALANCE * rr:
            state.penalty /= adjust
            state.u = state.u * adjust

    logger.debug("no convergence after %d iterations", maxiter)
    return NOT_CONVERGED


def initial_penalty(x: np.ndarray) -> float:
    """Default starting penalty: the largest absolute entry of ``x``."""

    value = float(np.max(np.abs(x))) if x.size else 0.0
    if not math.isfinite(value) or value <= 0.0:
        return 1.0
    return value


__all__ = [
    "ADMMState",
    "ADMM_ADJUST",
    "DEFAULT_MAXITER",
    "DEFAULT_TOLERANCE",
    "NOT_CONVERGED",
    "admm",
    "initial_penalty",
]
