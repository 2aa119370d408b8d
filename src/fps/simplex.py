"""Euclidean projection onto the capped simplex.

The capped simplex of dimension ``d`` is the set

    { z : 0 <= z_i <= 1, sum(z) = d }.

Projecting the spectrum of a matrix onto this set is how the Fantope and
singular value projections enforce a fractional rank constraint.  The
projection is computed exactly: ``z = clip(x - theta, 0, 1)`` where
``theta`` solves the piecewise linear equation ``f(theta) = d`` with

    f(theta) = sum_i clip(x_i - theta, 0, 1).

``f`` is non-increasing with breakpoints at ``x_i`` and ``x_i - 1``, so the
interval containing ``theta`` is located by a binary search over the sorted
breakpoints and ``theta`` is recovered by linear interpolation.
"""
from __future__ import annotations

from typing import List, Sequence

import numpy as np


def simplex_sum(x: np.ndarray, theta: float) -> float:
    """Evaluate ``f(theta) = sum(clip(x - theta, 0, 1))``."""

    return float(np.sum(np.clip(x - theta, 0.0, 1.0)))


def _clip_in_place(x: np.ndarray, theta: float = 0.0) -> int:
    if theta != 0.0:
        x -= theta
    np.clip(x, 0.0, 1.0, out=x)
    return int(np.count_nonzero(x > 0.0))


def _solve_theta(x: np.ndarray, d: float) -> float:
    # Knots are deduplicated so that a bracketing interval never has zero
    # width.
    knots = np.unique(np.concatenate((x - 1.0, x)))

    # Left-most knot whose function value is below d.  It exists and is not
    # the first knot because f(min(x) - 1) = n > d and f(max(x)) = 0 < d.
    lo, hi = 0, knots.size
    while lo < hi:
        mid = (lo + hi) // 2
        if simplex_sum(x, knots[mid]) >= d:
            lo = mid + 1
        else:
            hi = mid

    a = knots[lo - 1]
    b = knots[lo]
    fa = simplex_sum(x, a)
    fb = simplex_sum(x, b)
    return float(a + (b - a) * (d - fa) / (fb - fa))


def simplex(x: np.ndarray, d: float, interior: bool = False) -> int:
    """Project ``x`` in place onto the capped simplex.

    Parameters
    ----------
    x : :class:`numpy.ndarray`
        One dimensional float array.  It is overwritten with its
        projection.
    d : float
        Target sum.  Values ``d <= 0`` project onto the zero vector and
        values ``d >= len(x)`` onto the vector of ones, the closest points
        of the box when the sum constraint cannot be met.
    interior : bool, optional
        When ``True`` the interior of the simplex is included, i.e. the
        constraint becomes ``sum(z) <= d``.  If clipping ``x`` to ``[0, 1]``
        already satisfies it no search is performed.

    Returns
    -------
    int
        Number of nonzero entries of the projection.
    """

    if x.ndim != 1:
        raise ValueError("'x' must be a one-dimensional array")
    n = x.size
    if n == 0:
        return 0
    if d <= 0.0:
        x[:] = 0.0
        return 0
    if interior and simplex_sum(x, 0.0) <= d:
        return _clip_in_place(x)
    if d >= n:
        x[:] = 1.0
        return n

    theta = _solve_theta(x, d)
    return _clip_in_place(x, theta)


def simplex_list(x: Sequence[np.ndarray], d: float, interior: bool = False) -> np.ndarray:
    """Jointly project several vectors onto one capped simplex.

    The vectors are concatenated, projected with :func:`simplex` and the
    result is written back into each of them in place.

    Returns
    -------
    :class:`numpy.ndarray`
        Number of nonzero entries of each projected vector.
    """

    if len(x) == 0:
        return np.zeros(0, dtype=int)

    sizes = [v.size for v in x]
    joint = np.concatenate([np.ravel(v) for v in x]).astype(float)
    simplex(joint, d, interior)

    ranks: List[int] = []
    start = 0
    for v, size in zip(x, sizes):
        piece = joint[start : start + size]
        v[...] = piece.reshape(v.shape)
        ranks.append(int(np.count_nonzero(piece > 0.0)))
        start += size
    return np.array(ranks, dtype=int)


__all__ = ["simplex", "simplex_list", "simplex_sum"]
