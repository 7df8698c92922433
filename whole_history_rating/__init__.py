"""
Whole History Rating - Bayesian ratings for players of time-varying strength.

Every player's strength is a Wiener process over time and every game a
Bradley-Terry observation. Ratings for all days of all players are fitted
jointly by per-player Newton steps over a tridiagonal Hessian, and each day
gets an uncertainty from the posterior covariance.

Quick Start:
    from whole_history_rating import WholeHistoryRating, GameDataset

    whr = WholeHistoryRating(w2=300.0)

    # Add games one by one (winner is 'W' or 'B')
    whr.create_game("shusaku", "shusai", "B", 1)
    whr.create_game("shusaku", "shusai", "W", 2)

    # ... or load a Parquet/CSV file
    whr.load_dataset(GameDataset.from_path("games.parquet"))

    whr.iterate_until_converged()

    print(whr.ratings_for_player("shusai"))   # [(day, elo, uncertainty*100), ...]
    print(whr.rating_at("shusai", 1.5))       # interpolated between days
    print(whr.predict("shusai", "shusaku"))   # P(shusai wins as white)

    fitted = whr.get_fitted_ratings()
    print(fitted.top(10))

Command-line interface:
    python -m whole_history_rating fit games.parquet --top 20
    python -m whole_history_rating history games.csv shusai
    python -m whole_history_rating predict games.csv shusai shusaku
"""

from .core import (
    FixedHandicap,
    MatchRecord,
    Outcome,
    PlayerTrajectory,
    RatingDependentHandicap,
    RatingEstimate,
    RatingPoint,
    TridiagonalSolver,
)
from .data import GameDataset, GameResult, PlayerRating, RatingHistory
from .evaluation import accuracy, brier_score, evaluate_matches, log_loss
from .exceptions import InstabilityError, InvalidInputError, WHRError
from .results import FittedWHRRatings
from .whr import WHRConfig, WholeHistoryRating

__version__ = "0.1.0"

__all__ = [
    # System
    "WholeHistoryRating",
    "WHRConfig",
    # Core
    "Outcome",
    "FixedHandicap",
    "RatingDependentHandicap",
    "MatchRecord",
    "RatingPoint",
    "PlayerTrajectory",
    "RatingEstimate",
    "TridiagonalSolver",
    # Data
    "GameDataset",
    "GameResult",
    "PlayerRating",
    "RatingHistory",
    # Results
    "FittedWHRRatings",
    # Evaluation
    "brier_score",
    "log_loss",
    "accuracy",
    "evaluate_matches",
    # Errors
    "WHRError",
    "InstabilityError",
    "InvalidInputError",
]
