"""
Whole History Rating (WHR) - registry and iteration driver.

Based on:
- Rémi Coulom, "Whole-History Rating: A Bayesian Rating System for Players
  of Time-Varying Strength" (2008)
- https://www.remi-coulom.fr/WHR/WHR.pdf

WHR models player ratings as a Wiener process (Brownian motion) over time,
using all historical game data to estimate ratings at any point in time.

The registry owns players and games. Fitting is block coordinate ascent:
every pass runs one Newton step per player (see PlayerTrajectory), reading
opponents' ratings as they stand at that moment.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from .core.match import Handicap, MatchRecord, Outcome
from .core.rating_point import DEFAULT_UNCERTAINTY
from .core.trajectory import DEFAULT_REGULARIZATION, PlayerTrajectory, RatingEstimate
from .data.dataset import GameDataset
from .data.types import GameResult, PlayerRating, RatingHistory
from .exceptions import InvalidInputError
from .results.fitted_ratings import FittedWHRRatings

logger = logging.getLogger(__name__)


@dataclass
class WHRConfig:
    """Configuration for the WHR rating system."""

    w2: float = 300.0  # Wiener variance per time unit (Elo² per day)
    max_iterations: int = 50  # Maximum passes for iterate_until_converged
    tolerance: float = 1e-3  # Stop when |change in log-likelihood| < tolerance
    debug: bool = False  # Log per-player Newton details
    hessian_regularization: float = DEFAULT_REGULARIZATION

    def __post_init__(self):
        if self.w2 <= 0:
            raise ValueError(f"w2 must be positive, got {self.w2}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.hessian_regularization < 0:
            raise ValueError(
                f"hessian_regularization must be non-negative, got {self.hessian_regularization}"
            )


class WholeHistoryRating:
    """
    Whole History Rating system.

    WHR is a Bayesian rating system that:
    1. Models player strength as a Wiener process (random walk) over time
    2. Uses Bradley-Terry model for game outcomes
    3. Finds MAP estimates via Newton-Raphson optimization
    4. Computes uncertainty from the Hessian

    Parameters:
        config: WHRConfig (defaults used if None)
        **overrides: Individual WHRConfig fields, e.g. ``w2=17``

    Example:
        >>> whr = WholeHistoryRating(w2=300.0)
        >>> whr.create_game("shusaku", "shusai", "B", 1)
        >>> whr.create_game("shusaku", "shusai", "W", 2)
        >>> whr.iterate(50)
        >>> whr.ratings_for_player("shusai")
    """

    def __init__(self, config: Optional[WHRConfig] = None, **overrides: Any):
        if config is None:
            config = WHRConfig(**overrides)
        elif overrides:
            raise TypeError("Pass either a WHRConfig or keyword overrides, not both")
        self.config = config

        self._players: Dict[str, PlayerTrajectory] = {}
        self._games: List[MatchRecord] = []
        self._num_iterations = 0

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def player(self, name: str) -> PlayerTrajectory:
        """Get or create a player by name."""
        player = self._players.get(name)
        if player is None:
            player = PlayerTrajectory(
                name,
                w2=self.config.w2,
                regularization=self.config.hessian_regularization,
                debug=self.config.debug,
            )
            self._players[name] = player
        return player

    def has_player(self, name: str) -> bool:
        return name in self._players

    @property
    def players(self) -> List[PlayerTrajectory]:
        return list(self._players.values())

    @property
    def games(self) -> List[MatchRecord]:
        return list(self._games)

    @property
    def player_count(self) -> int:
        return len(self._players)

    @property
    def game_count(self) -> int:
        return len(self._games)

    @property
    def num_iterations(self) -> int:
        """Passes run since the registry was created or cleared."""
        return self._num_iterations

    def setup_game(
        self,
        black: str,
        white: str,
        winner: Union[Outcome, str],
        day: int,
        handicap: Union[Handicap, float] = 0.0,
        extras: Optional[Dict[str, Any]] = None,
    ) -> MatchRecord:
        """Create a match record without attaching it to the players."""
        if black == white:
            raise InvalidInputError(f"Invalid game (black player == white player): {black!r}")

        white_player = self.player(white)
        black_player = self.player(black)
        return MatchRecord(black_player, white_player, winner, day, handicap, extras)

    def add_game(self, game: MatchRecord) -> MatchRecord:
        """Attach a match to both players' trajectories and register it."""
        game.white.add_match(game)
        game.black.add_match(game)
        self._games.append(game)
        return game

    def create_game(
        self,
        black: str,
        white: str,
        winner: Union[Outcome, str],
        day: int,
        handicap: Union[Handicap, float] = 0.0,
        extras: Optional[Dict[str, Any]] = None,
    ) -> MatchRecord:
        """Create a match and add it to the system."""
        game = self.setup_game(black, white, winner, day, handicap, extras)
        return self.add_game(game)

    def setup_games(self, results: Iterable[GameResult]) -> List[MatchRecord]:
        """Create and add a match for every GameResult."""
        return [
            self.create_game(
                result.black,
                result.white,
                result.winner,
                result.day,
                result.handicap,
                result.extras,
            )
            for result in results
        ]

    create_games = setup_games

    def load_dataset(self, dataset: GameDataset) -> List[MatchRecord]:
        """Add every game of a GameDataset, in day order."""
        games = self.setup_games(dataset.iter_games())
        logger.info("Loaded %d games for %d players", len(games), self.player_count)
        return games

    def clear(self) -> None:
        self._players.clear()
        self._games = []
        self._num_iterations = 0

    # ------------------------------------------------------------------
    # Optimisation
    # ------------------------------------------------------------------

    @property
    def log_likelihood(self) -> float:
        """Total log-posterior over all players with at least one day."""
        score = 0.0
        for player in self._players.values():
            if player.points:
                score += player.log_likelihood
        return score

    def run_one_iteration(self) -> float:
        """
        One Newton step for every player, in registration order.

        Returns the largest rating change (natural scale) of the pass.
        """
        max_change = 0.0
        for player in self._players.values():
            change = player.newton_step()
            if change > max_change:
                max_change = change
        self._num_iterations += 1
        return max_change

    def update_uncertainty(self) -> None:
        for player in self._players.values():
            player.update_uncertainty()

    def iterate(self, count: int) -> None:
        """Run ``count`` passes, then refresh uncertainties."""
        for _ in range(count):
            self.run_one_iteration()
        self.update_uncertainty()

    def iterate_until_converged(
        self,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
    ) -> int:
        """
        Iterate until the total log-likelihood stops changing.

        Args:
            max_iterations: Override config.max_iterations
            tolerance: Override config.tolerance

        Returns:
            Number of passes run
        """
        if max_iterations is None:
            max_iterations = self.config.max_iterations
        if tolerance is None:
            tolerance = self.config.tolerance

        previous = -np.inf
        passes = 0
        converged = False

        for i in range(max_iterations):
            self.run_one_iteration()
            passes = i + 1

            current = self.log_likelihood
            change = abs(current - previous)
            logger.debug("Iteration %d: likelihood = %f, change = %f", passes, current, change)

            if change < tolerance:
                logger.info("Converged after %d iterations (change: %g)", passes, change)
                converged = True
                break
            previous = current

        if not converged:
            logger.warning("Did not converge after %d iterations", max_iterations)

        self.update_uncertainty()
        return passes

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ratings_for_player(self, name: str) -> RatingHistory:
        """Rating history of a player (creates an empty player if unknown)."""
        return RatingHistory(name=name, ratings=self.player(name).rating_history())

    def current_ratings(self) -> List[PlayerRating]:
        """Most recent rating of every player with games, best first."""
        ratings = [
            PlayerRating(
                name=player.name,
                day=player.points[-1].day,
                elo=player.points[-1].elo,
                uncertainty=player.points[-1].uncertainty,
            )
            for player in self._players.values()
            if player.points
        ]
        ratings.sort(key=lambda rating: rating.elo, reverse=True)
        return ratings

    def rating_at(self, name: str, day: float) -> RatingEstimate:
        """Rating of a player at any time point (interpolated if needed)."""
        player = self._players.get(name)
        if player is None:
            return RatingEstimate(day, 0.0, DEFAULT_UNCERTAINTY)
        return player.rating_at(day)

    def ratings_at(self, day: float) -> Dict[str, RatingEstimate]:
        """Ratings of all players at a time point, best first."""
        estimates = [(name, player.rating_at(day)) for name, player in self._players.items()]
        estimates.sort(key=lambda item: item[1].elo, reverse=True)
        return dict(estimates)

    def predict(
        self,
        white: str,
        black: str,
        day: Optional[float] = None,
        handicap: float = 0.0,
    ) -> float:
        """
        Probability that ``white`` beats ``black``.

        Uses current ratings, or ratings interpolated at ``day``. ``handicap``
        is black's Elo advantage.
        """
        if day is None:
            white_elo = self._players[white].current_rating if white in self._players else 0.0
            black_elo = self._players[black].current_rating if black in self._players else 0.0
        else:
            white_elo = self.rating_at(white, day).elo
            black_elo = self.rating_at(black, day).elo

        return 1.0 / (1.0 + 10.0 ** ((black_elo + handicap - white_elo) / 400.0))

    def get_fitted_ratings(self) -> FittedWHRRatings:
        """Snapshot of current ratings and histories for querying."""
        players = [player for player in self._players.values() if player.points]
        return FittedWHRRatings(
            names=[player.name for player in players],
            ratings=np.array([player.current_rating for player in players], dtype=np.float64),
            uncertainties=np.array(
                [player.current_uncertainty for player in players], dtype=np.float64
            ),
            last_days=np.array([player.points[-1].day for player in players], dtype=np.int64),
            w2=self.config.w2,
            num_games_fitted=self.game_count,
            num_iterations=self._num_iterations,
            rating_history={
                player.name: {
                    "days": [point.day for point in player.points],
                    "ratings": [point.elo for point in player.points],
                    "uncertainties": [point.uncertainty for point in player.points],
                }
                for player in players
            },
        )

    def __repr__(self) -> str:
        return (
            f"WholeHistoryRating(w2={self.config.w2}, players={self.player_count}, "
            f"games={self.game_count}, iterations={self._num_iterations})"
        )
