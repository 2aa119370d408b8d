"""Python implementation of Fantope and Singular Value Projection and Selection.

This package computes regularisation paths of the FPS and SVPS
estimators (Vu, Cho, Lei and Rohe, "Fantope Projection and Selection: A
near-optimal convex relaxation of sparse PCA", NIPS 2013).  The solutions
are obtained with an ADMM algorithm that alternates a spectral projection
onto a capped simplex with entrywise soft-thresholding and that, for each
penalty level, only works on the blocks of rows and columns that can be
active.
"""

from .admm import (
    ADMMState,
    NOT_CONVERGED,
    admm,
)
from .blockmat import (
    Block,
    BlockMap,
    BlockMatrix,
    SymBlockMap,
)
from .graphseq import BiGraphSequence, GraphSequence
from .operators import (
    CappedSimplexProjection,
    EntrywiseSoftThreshold,
    FantopeProjection,
    SingularValueProjection,
)
from .simplex import simplex, simplex_list, simplex_sum
from .solver import (
    FpsResult,
    SvpsResult,
    compute_lambda_range,
    fps,
    loglinear_sequence,
    svps,
)

__all__ = [
    "ADMMState",
    "NOT_CONVERGED",
    "admm",
    "Block",
    "BlockMap",
    "BlockMatrix",
    "SymBlockMap",
    "BiGraphSequence",
    "GraphSequence",
    "CappedSimplexProjection",
    "EntrywiseSoftThreshold",
    "FantopeProjection",
    "SingularValueProjection",
    "simplex",
    "simplex_list",
    "simplex_sum",
    "FpsResult",
    "SvpsResult",
    "compute_lambda_range",
    "fps",
    "loglinear_sequence",
    "svps",
]
