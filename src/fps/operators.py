"""Projection and selection operators used by the ADMM solver.

The set of operators is fixed by the estimators in this package:

* :class:`SingularValueProjection` projects onto matrices whose singular
  values lie in ``[0, 1]`` and sum to ``ndim`` (SVPS).
* :class:`FantopeProjection` projects a symmetric matrix onto the Fantope,
  the symmetric matrices whose eigenvalues lie in ``[0, 1]`` and sum to
  ``ndim`` (FPS).
* :class:`CappedSimplexProjection` projects the entries themselves onto
  the capped simplex.
* :class:`EntrywiseSoftThreshold` is the proximal operator of the scaled
  entrywise L1 norm.

Projections are called as ``op(m)`` and selections as ``op(m, scale)``.
Both modify ``m`` in place, where ``m`` is a dense array or a
:class:`~fps.blockmat.BlockMatrix`.  For a block matrix the spectral
projections treat the blocks as the diagonal blocks of one block diagonal
matrix, so the spectra of all blocks share one capped simplex.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .blockmat import BlockMatrix, blocks_of
from .simplex import simplex_list


class Projection:
    """Euclidean projection onto a convex set, applied in place."""

    def __call__(self, m: np.ndarray | BlockMatrix) -> None:
        raise NotImplementedError


class Selection:
    """Proximal operator of a scaled regulariser, applied in place."""

    def __call__(self, m: np.ndarray | BlockMatrix, scale: float) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class SingularValueProjection(Projection):
    """Projection onto ``{X : 0 <= sigma_i(X) <= 1, sum(sigma(X)) = ndim}``."""

    ndim: float
    interior: bool = False

    def __call__(self, m: np.ndarray | BlockMatrix) -> None:
        pieces = [b for b in blocks_of(m) if b.size > 0]
        if not pieces:
            return
        factors = [np.linalg.svd(b, full_matrices=False) for b in pieces]
        spectra = [sigma for _, sigma, _ in factors]
        simplex_list(spectra, self.ndim, self.interior)
        for b, (u, sigma, vt) in zip(pieces, factors):
            b[...] = (u * sigma) @ vt


@dataclass(frozen=True)
class FantopeProjection(Projection):
    """Projection onto ``{X = X^T : 0 <= lambda_i(X) <= 1, tr(X) = ndim}``."""

    ndim: float
    interior: bool = False

    def __call__(self, m: np.ndarray | BlockMatrix) -> None:
        pieces = [b for b in blocks_of(m) if b.size > 0]
        if not pieces:
            return
        factors = [np.linalg.eigh((b + b.T) / 2.0) for b in pieces]
        spectra = [values for values, _ in factors]
        simplex_list(spectra, self.ndim, self.interior)
        for b, (values, vectors) in zip(pieces, factors):
            b[...] = (vectors * values) @ vectors.T


@dataclass(frozen=True)
class CappedSimplexProjection(Projection):
    """Projection of all entries jointly onto ``{0 <= z <= 1, sum(z) = d}``."""

    d: float
    interior: bool = False

    def __call__(self, m: np.ndarray | BlockMatrix) -> None:
        simplex_list(blocks_of(m), self.d, self.interior)


@dataclass(frozen=True)
class EntrywiseSoftThreshold(Selection):
    """Soft-thresholding ``sign(v) * max(|v| - lam * scale, 0)``."""

    lam: float

    def __call__(self, m: np.ndarray | BlockMatrix, scale: float) -> None:
        tau = self.lam * scale
        for b in blocks_of(m):
            np.copyto(b, np.sign(b) * np.maximum(np.abs(b) - tau, 0.0))


__all__ = [
    "CappedSimplexProjection",
    "EntrywiseSoftThreshold",
    "FantopeProjection",
    "Projection",
    "Selection",
    "SingularValueProjection",
]
