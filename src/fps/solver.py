"""Solution paths of the SVPS and FPS estimators."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Sequence
import warnings

import numpy as np

from .admm import (
    ADMM_ADJUST,
    DEFAULT_MAXITER,
    DEFAULT_TOLERANCE,
    NOT_CONVERGED,
    ADMMState,
    admm,
    initial_penalty,
)
from .blockmat import BlockMap, SymBlockMap
from .graphseq import BiGraphSequence, GraphSequence, _BaseGraphSequence
from .operators import EntrywiseSoftThreshold, FantopeProjection, SingularValueProjection

logger = logging.getLogger(__name__)


@dataclass
class SvpsResult:
    """Solution path of :func:`svps`, one column or entry per ``lambda``."""

    ndim: float
    lambda_: np.ndarray
    projection: list[np.ndarray]
    leverage_row: np.ndarray
    leverage_col: np.ndarray
    l1: np.ndarray
    var_row: np.ndarray
    var_col: np.ndarray
    var_total: float
    niter: np.ndarray
    row_permutation: np.ndarray | None = None
    col_permutation: np.ndarray | None = None

    @property
    def converged(self) -> np.ndarray:
        return self.niter != NOT_CONVERGED

    def as_dict(self) -> dict[str, object]:
        """Return a dictionary using the names of the R ``svps`` object."""

        result: dict[str, object] = {
            "ndim": self.ndim,
            "lambda": self.lambda_,
            "projection": self.projection,
            "leverage.row": self.leverage_row,
            "leverage.col": self.leverage_col,
            "L1": self.l1,
            "var.row": self.var_row,
            "var.col": self.var_col,
            "var.total": self.var_total,
            "niter": self.niter,
        }
        if self.row_permutation is not None:
            result["rowperm"] = self.row_permutation
            result["colperm"] = self.col_permutation
        return result


@dataclass
class FpsResult:
    """Solution path of :func:`fps`, one column or entry per ``lambda``."""

    ndim: float
    lambda_: np.ndarray
    projection: list[np.ndarray]
    leverage: np.ndarray
    l1: np.ndarray
    var_explained: np.ndarray
    var_total: float
    niter: np.ndarray
    permutation: np.ndarray | None = None

    @property
    def converged(self) -> np.ndarray:
        return self.niter != NOT_CONVERGED

    def as_dict(self) -> dict[str, object]:
        """Return a dictionary using the names of the R ``fps`` object."""

        result: dict[str, object] = {
            "ndim": self.ndim,
            "lambda": self.lambda_,
            "projection": self.projection,
            "leverage": self.leverage,
            "L1": self.l1,
            "var.explained": self.var_explained,
            "var.total": self.var_total,
            "niter": self.niter,
        }
        if self.permutation is not None:
            result["perm"] = self.permutation
        return result


def loglinear_sequence(lambdamin: float, lambdamax: float, n: int) -> np.ndarray:
    """``n`` values from ``lambdamax`` down to ``lambdamin``, equally spaced on a log scale."""

    if n < 1:
        raise ValueError("Expected nsol > 0")
    if lambdamin <= 0.0 or lambdamax <= 0.0:
        raise ValueError("Log-linear sequence requires positive end points")
    if n == 1:
        return np.array([lambdamax], dtype=float)
    return np.exp(np.linspace(math.log(lambdamax), math.log(lambdamin), n))


def compute_lambda_range(
    gs: _BaseGraphSequence,
    lambdamin: float | None = None,
    lambdaminratio: float | None = None,
) -> tuple[float, float]:
    """Default ``(lambdamin, lambdamax)`` of a solution path.

    ``lambdamax`` is the largest entry magnitude of the input of ``gs``.
    ``lambdamin`` is, in order of precedence: the last knot of ``gs`` when
    the sequence was truncated by its block-size bound, the explicit
    ``lambdamin``, ``lambdaminratio`` times ``lambdamax``, or the last knot
    of ``gs``.
    """

    lambdamax = gs.weight_max
    if lambdamax <= 0.0:
        raise ValueError("Expected x to have at least one nonzero entry")
    if lambdamin is not None and lambdamin > lambdamax:
        raise ValueError(f"Expected lambdamin <= max(abs(x)) = {lambdamax:.4g}")

    last = min(gs[len(gs) - 1][0], lambdamax)
    if gs.truncated:
        return last, lambdamax
    if lambdamin is not None:
        return float(lambdamin), lambdamax
    if lambdaminratio is not None:
        return lambdamax * lambdaminratio, lambdamax
    return last, lambdamax


def _check_common(ndim: float, upper: int, nsol: int, maxiter: int, tolerance: float) -> None:
    if not 0.0 < ndim < upper:
        raise ValueError("Expected 0 < ndim < min(dim(x))")
    if nsol < 1:
        raise ValueError("Expected nsol > 0")
    if maxiter < 1:
        raise ValueError("Expected maxiter > 0")
    if tolerance <= 0.0:
        raise ValueError("Expected tolerance > 0")


def _check_lambda_args(
    lambda_: Sequence[float] | float | None,
    lambdamin: float | None,
    lambdaminratio: float | None,
) -> np.ndarray | None:
    if lambdamin is not None and not lambdamin > 0.0:
        raise ValueError("'lambdamin' must be positive")
    if lambdaminratio is not None and not 0.0 < lambdaminratio <= 1.0:
        raise ValueError("'lambdaminratio' must lie in (0, 1]")
    if lambda_ is None:
        return None

    lam = np.atleast_1d(np.asarray(lambda_, dtype=float))
    if lam.ndim != 1 or lam.size == 0:
        raise ValueError("'lambda_' must be a non-empty one-dimensional sequence")
    if not np.all(np.isfinite(lam)) or np.any(lam < 0.0):
        raise ValueError("'lambda_' must contain finite non-negative values")
    return np.unique(lam)[::-1].copy()


def _lambda_grid(
    gs: _BaseGraphSequence,
    explicit: np.ndarray | None,
    nsol: int,
    lambdamin: float | None,
    lambdaminratio: float | None,
) -> np.ndarray:
    if explicit is not None:
        return explicit
    lo, hi = compute_lambda_range(gs, lambdamin, lambdaminratio)
    return loglinear_sequence(min(lo, hi), hi, nsol)


def _permutation(partition: Sequence[np.ndarray], n: int) -> np.ndarray:
    """1-based ordering listing the block indices first, then the rest."""

    if partition:
        first = np.concatenate([np.asarray(p, dtype=int) for p in partition])
    else:
        first = np.zeros(0, dtype=int)
    rest = np.setdiff1d(np.arange(n), first, assume_unique=True)
    return np.concatenate((first, rest)) + 1


def _warn_not_converged(niter: np.ndarray, maxiter: int) -> None:
    failed = int(np.count_nonzero(niter == NOT_CONVERGED))
    if failed:
        warnings.warn(
            f"ADMM did not converge within {maxiter} iterations for {failed} of "
            f"{niter.size} lambda values; consider increasing 'maxiter'",
            RuntimeWarning,
        )


def _log_truncation(gs: _BaseGraphSequence) -> None:
    if gs.truncated:
        logger.info(
            "block size bound %d reached at lambda %.4g; path stops at lambda %.4g",
            gs.max_block_size, gs.lambda_floor, gs[len(gs) - 1][0],
        )


def _log_progress(verbose: int, i: int, lam: float, niter: int, penalty: float) -> None:
    if verbose <= 0:
        return
    message = "solution %d, lambda %.4g"
    args: list[object] = [i + 1, lam]
    if verbose > 1:
        message += ", niter %d"
        args.append(niter)
    if verbose > 2:
        message += ", penalty %.4g"
        args.append(penalty)
    logger.info(message, *args)


def svps(
    x: np.ndarray,
    ndim: float,
    nsol: int = 50,
    maxnvar: int | None = None,
    lambdaminratio: float | None = None,
    lambdamin: float | None = None,
    lambda_: Sequence[float] | float | None = None,
    maxiter: int = DEFAULT_MAXITER,
    tolerance: float = DEFAULT_TOLERANCE,
    verbose: int = 0,
    use_blocks: bool = True,
) -> SvpsResult:
    """Singular Value Projection and Selection solution path.

    Parameters
    ----------
    x : :class:`numpy.ndarray`
        Input matrix with at least two rows and two columns.
    ndim : float
        Target subspace dimension, possibly fractional,
        ``0 < ndim < min(x.shape)``.
    nsol : int
        Number of solutions when ``lambda_`` is not given.
    maxnvar : int, optional
        Suggested maximum number of rows and columns in a block; bounds the
        default ``lambdamin``.
    lambdaminratio : float, optional
        Default ``lambdamin`` as a fraction of the automatic ``lambdamax``.
    lambdamin : float, optional
        Smallest regularisation parameter.
    lambda_ : sequence of float, optional
        Explicit regularisation parameters; sorted in decreasing order and
        deduplicated.
    maxiter : int
        Maximum number of ADMM iterations for each solution.
    tolerance : float
        Convergence threshold, scaled by ``sqrt(ndim)``.
    verbose : int
        Progress is logged at ``INFO`` when positive; larger values add the
        iteration count and the ADMM penalty.
    use_blocks : bool
        Restrict each ADMM run to the active blocks of the bipartite graph
        sequence of ``x``.  With ``False`` every iteration works on the
        full dense matrix.

    Returns
    -------
    :class:`SvpsResult`
        Solutions sorted by decreasing ``lambda``.  ``niter`` is ``-1`` for
        solutions where ADMM did not converge.
    """

    x = np.asarray(x, dtype=float)
    if x.ndim != 2 or x.shape[0] < 2 or x.shape[1] < 2:
        raise ValueError("Expected x to be a matrix")
    _check_common(ndim, min(x.shape), nsol, maxiter, tolerance)
    explicit = _check_lambda_args(lambda_, lambdamin, lambdaminratio)

    minval = explicit[-1] if explicit is not None else (lambdamin or 0.0)
    size_limit = 2 * maxnvar if maxnvar is not None and maxnvar > 0 else None
    gs = BiGraphSequence(x, minval, size_limit if explicit is None else None)
    _log_truncation(gs)
    lam = _lambda_grid(gs, explicit, nsol, lambdamin, lambdaminratio)
    nsol = lam.size

    n_rows, n_cols = x.shape
    projection: list[np.ndarray] = []
    niter = np.zeros(nsol, dtype=int)
    l1 = np.zeros(nsol)
    var_row = np.zeros(nsol)
    var_col = np.zeros(nsol)
    leverage_row = np.zeros((n_rows, nsol))
    leverage_col = np.zeros((n_cols, nsol))

    z = np.zeros_like(x)
    u = np.zeros_like(x)
    penalty = initial_penalty(x)
    tolerance_abs = math.sqrt(ndim) * tolerance
    select = SingularValueProjection(ndim)
    active = ()

    for i, lam_i in enumerate(lam):
        if use_blocks:
            active = gs.get_active(lam_i)
            block_x = BlockMap(x, active)
            state = ADMMState(BlockMap(z, active), BlockMap(u, active), penalty)
            niter[i] = admm(
                select, EntrywiseSoftThreshold(lam_i), block_x, state,
                ADMM_ADJUST, maxiter, tolerance_abs,
            )
            penalty = state.penalty
            state.z.copy_to(z)
            state.u.copy_to(u)
            p = state.z.copy_to(np.zeros_like(x))
            l1[i] = state.z.sum_abs()
        else:
            state = ADMMState(z, u, penalty)
            niter[i] = admm(
                select, EntrywiseSoftThreshold(lam_i), x, state,
                ADMM_ADJUST, maxiter, tolerance_abs,
            )
            z, u, penalty = state.z, state.u, state.penalty
            p = z.copy()
            l1[i] = float(np.sum(np.abs(p)))

        projection.append(p)
        var_row[i] = float(np.sum(np.square(x.T @ p)))  # trace(xx' pp')
        var_col[i] = float(np.sum(np.square(x @ p.T)))  # trace(x'x p'p)
        leverage_row[:, i] = np.sum(np.square(p), axis=1)
        leverage_col[:, i] = np.sum(np.square(p), axis=0)
        _log_progress(verbose, i, lam_i, niter[i], penalty)

    _warn_not_converged(niter, maxiter)

    row_perm = col_perm = None
    if use_blocks:
        row_perm = _permutation([b.rows for b in active], n_rows)
        col_perm = _permutation([b.cols for b in active], n_cols)

    return SvpsResult(
        ndim=ndim,
        lambda_=lam,
        projection=projection,
        leverage_row=leverage_row,
        leverage_col=leverage_col,
        l1=l1,
        var_row=var_row,
        var_col=var_col,
        var_total=float(np.sum(np.square(x))),
        niter=niter,
        row_permutation=row_perm,
        col_permutation=col_perm,
    )


def fps(
    s: np.ndarray,
    ndim: float,
    nsol: int = 50,
    maxnvar: int | None = None,
    lambdaminratio: float | None = None,
    lambdamin: float | None = None,
    lambda_: Sequence[float] | float | None = None,
    maxiter: int = DEFAULT_MAXITER,
    tolerance: float = DEFAULT_TOLERANCE,
    verbose: int = 0,
    use_blocks: bool = True,
) -> FpsResult:
    """Fantope Projection and Selection solution path.

    Takes a symmetric matrix ``s`` (typically a covariance or correlation
    matrix) and returns sparse estimates of the projection onto its
    ``ndim``-dimensional principal subspace.  The arguments mirror
    :func:`svps`; ``maxnvar`` bounds the number of variables in a block.
    """

    s = np.asarray(s, dtype=float)
    if s.ndim != 2 or s.shape[0] != s.shape[1] or s.shape[0] < 2:
        raise ValueError("Expected s to be a square matrix")
    if not np.allclose(s, s.T, rtol=1e-8, atol=1e-8):
        raise ValueError("Expected s to be symmetric")
    _check_common(ndim, s.shape[0], nsol, maxiter, tolerance)
    explicit = _check_lambda_args(lambda_, lambdamin, lambdaminratio)

    minval = explicit[-1] if explicit is not None else (lambdamin or 0.0)
    size_limit = maxnvar if maxnvar is not None and maxnvar > 0 else None
    gs = GraphSequence(s, minval, size_limit if explicit is None else None)
    _log_truncation(gs)
    lam = _lambda_grid(gs, explicit, nsol, lambdamin, lambdaminratio)
    nsol = lam.size

    p_dim = s.shape[0]
    projection: list[np.ndarray] = []
    niter = np.zeros(nsol, dtype=int)
    l1 = np.zeros(nsol)
    var_explained = np.zeros(nsol)
    leverage = np.zeros((p_dim, nsol))

    z = np.zeros_like(s)
    u = np.zeros_like(s)
    penalty = initial_penalty(s)
    tolerance_abs = math.sqrt(ndim) * tolerance
    select = FantopeProjection(ndim)
    active = ()

    for i, lam_i in enumerate(lam):
        if use_blocks:
            active = gs.get_active(lam_i)
            block_s = SymBlockMap(s, active)
            state = ADMMState(SymBlockMap(z, active), SymBlockMap(u, active), penalty)
            niter[i] = admm(
                select, EntrywiseSoftThreshold(lam_i), block_s, state,
                ADMM_ADJUST, maxiter, tolerance_abs,
            )
            penalty = state.penalty
            state.z.copy_to(z)
            state.u.copy_to(u)
            p = state.z.copy_to(np.zeros_like(s))
            l1[i] = state.z.sum_abs()
            var_explained[i] = block_s.inner(state.z)
        else:
            state = ADMMState(z, u, penalty)
            niter[i] = admm(
                select, EntrywiseSoftThreshold(lam_i), s, state,
                ADMM_ADJUST, maxiter, tolerance_abs,
            )
            z, u, penalty = state.z, state.u, state.penalty
            p = z.copy()
            l1[i] = float(np.sum(np.abs(p)))
            var_explained[i] = float(np.sum(s * p))

        projection.append(p)
        leverage[:, i] = np.diag(p)
        _log_progress(verbose, i, lam_i, niter[i], penalty)

    _warn_not_converged(niter, maxiter)

    perm = _permutation(list(active), p_dim) if use_blocks else None

    return FpsResult(
        ndim=ndim,
        lambda_=lam,
        projection=projection,
        leverage=leverage,
        l1=l1,
        var_explained=var_explained,
        var_total=float(np.trace(s)),
        niter=niter,
        permutation=perm,
    )


__all__ = [
    "FpsResult",
    "SvpsResult",
    "compute_lambda_range",
    "fps",
    "loglinear_sequence",
    "svps",
]
