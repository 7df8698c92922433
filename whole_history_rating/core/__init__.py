"""Numerical core: match likelihood terms, per-player Newton solver, tridiagonal algebra."""

from ._numba_core import LN10_400
from .match import (
    HANDICAP_STRATEGIES,
    FixedHandicap,
    Handicap,
    MatchRecord,
    Outcome,
    RatingDependentHandicap,
    as_handicap,
)
from .rating_point import DEFAULT_UNCERTAINTY, MIN_CURVATURE, LikelihoodTerm, RatingPoint
from .trajectory import (
    DEFAULT_REGULARIZATION,
    MAX_NATURAL_RATING,
    PlayerTrajectory,
    RatingEstimate,
)
from .tridiagonal import TridiagonalSolver

__all__ = [
    "LN10_400",
    "DEFAULT_UNCERTAINTY",
    "DEFAULT_REGULARIZATION",
    "MAX_NATURAL_RATING",
    "MIN_CURVATURE",
    "Outcome",
    "FixedHandicap",
    "RatingDependentHandicap",
    "Handicap",
    "HANDICAP_STRATEGIES",
    "as_handicap",
    "MatchRecord",
    "LikelihoodTerm",
    "RatingPoint",
    "PlayerTrajectory",
    "RatingEstimate",
    "TridiagonalSolver",
]
