"""
Fitted ratings object for querying without refitting.

Wraps a snapshot of a fitted WholeHistoryRating and provides table-style
queries as Polars DataFrames.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import polars as pl


def _compute_ranks(ratings: np.ndarray) -> np.ndarray:
    """
    Compute ranks for all players in O(n log n).

    Returns array where ranks[i] = rank of player i (1 = highest).
    """
    n = len(ratings)
    sorted_indices = np.argsort(-ratings, kind="stable")
    ranks = np.empty(n, dtype=np.int32)
    ranks[sorted_indices] = np.arange(1, n + 1)
    return ranks


@dataclass
class FittedWHRRatings:
    """
    Queryable fitted WHR (Whole History Rating) ratings.

    Provides access to:
    - Current Elo rating and natural-scale uncertainty for every player
    - Full rating history over time for each player
    - Bradley-Terry predictions between players
    - Top/bottom player queries

    Players are addressed by name.
    """

    names: List[str]
    ratings: np.ndarray  # Current (most recent) Elo rating per player
    uncertainties: np.ndarray  # Current uncertainty per player
    last_days: np.ndarray  # Day of the most recent rating
    w2: float = 300.0  # Wiener variance parameter (Elo² per day)
    num_games_fitted: int = 0
    num_iterations: int = 0
    rating_history: Optional[Dict[str, Dict]] = None  # name -> {days, ratings, uncertainties}

    _ranks: Optional[np.ndarray] = field(default=None, repr=False)
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.ratings = np.ascontiguousarray(self.ratings, dtype=np.float64)
        self.uncertainties = np.ascontiguousarray(self.uncertainties, dtype=np.float64)
        self.last_days = np.ascontiguousarray(self.last_days, dtype=np.int64)
        self._ranks = None
        self._index = {name: i for i, name in enumerate(self.names)}

    @property
    def num_players(self) -> int:
        return len(self.ratings)

    @property
    def ranks(self) -> np.ndarray:
        """Lazily computed ranks array."""
        if self._ranks is None:
            self._ranks = _compute_ranks(self.ratings)
        return self._ranks

    def _idx(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"Unknown player: {name!r}") from None

    def get_rating(self, name: str) -> Tuple[float, float]:
        """(Elo rating, uncertainty) of a player."""
        i = self._idx(name)
        return float(self.ratings[i]), float(self.uncertainties[i])

    def rank(self, name: str) -> int:
        return int(self.ranks[self._idx(name)])

    def predict(self, player1: str, player2: str) -> float:
        """Probability that player1 beats player2 at current ratings."""
        diff = self.ratings[self._idx(player2)] - self.ratings[self._idx(player1)]
        return 1.0 / (1.0 + math.pow(10.0, float(diff) / 400.0))

    def top(self, n: int = 10) -> pl.DataFrame:
        """Top N rated players."""
        indices = np.argsort(-self.ratings, kind="stable")[: min(n, self.num_players)]
        return self._indices_to_dataframe(indices)

    def bottom(self, n: int = 10) -> pl.DataFrame:
        """Bottom N rated players."""
        indices = np.argsort(self.ratings, kind="stable")[: min(n, self.num_players)]
        return self._indices_to_dataframe(indices)

    def _indices_to_dataframe(self, indices: np.ndarray) -> pl.DataFrame:
        return pl.DataFrame({
            "rank": self.ranks[indices],
            "name": [self.names[i] for i in indices],
            "rating": self.ratings[indices],
            "uncertainty": self.uncertainties[indices],
            "last_day": self.last_days[indices],
        })

    def matchup(self, player1: str, player2: str) -> pl.DataFrame:
        """Side-by-side ratings and win probabilities."""
        r1, u1 = self.get_rating(player1)
        r2, u2 = self.get_rating(player2)
        p1_wins = self.predict(player1, player2)

        return pl.DataFrame({
            "name": [player1, player2],
            "rating": [r1, r2],
            "uncertainty": [u1, u2],
            "win_prob": [p1_wins, 1.0 - p1_wins],
        })

    def get_history(self, name: str) -> Optional[Dict]:
        """Dict with 'days', 'ratings', 'uncertainties', or None."""
        if self.rating_history is None:
            return None
        return self.rating_history.get(name)

    def history_to_dataframe(self, name: str) -> Optional[pl.DataFrame]:
        """Export a player's rating history to DataFrame."""
        history = self.get_history(name)
        if history is None:
            return None

        return pl.DataFrame({
            "day": history["days"],
            "rating": history["ratings"],
            "uncertainty": history["uncertainties"],
        })

    def to_dataframe(self, include_rank: bool = True) -> pl.DataFrame:
        """Export all current ratings, best first."""
        data = {
            "name": self.names,
            "rating": self.ratings,
            "uncertainty": self.uncertainties,
            "last_day": self.last_days,
        }
        if include_rank:
            data["rank"] = self.ranks

        return pl.DataFrame(data).sort("rating", descending=True)

    def __repr__(self) -> str:
        return (
            f"FittedWHRRatings(players={self.num_players:,}, "
            f"games={self.num_games_fitted:,}, iterations={self.num_iterations}, "
            f"w2={self.w2})"
        )

    def __str__(self) -> str:
        lines = [repr(self)]
        if self.num_players:
            lines.append(
                f"  Rating range: [{self.ratings.min():.1f}, {self.ratings.max():.1f}]"
            )
            lines.append(f"  Mean uncertainty: {self.uncertainties.mean():.4f}")
        return "\n".join(lines)
