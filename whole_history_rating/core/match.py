"""
Match records and handicaps for the Bradley-Terry likelihood.

A MatchRecord is one outcome between a white and a black player on a given
day. Both players' trajectories attach the RatingPoint of that day to the
record, after which the record can evaluate the opponent's handicap-adjusted
strength and the Bradley-Terry win probabilities from live ratings.

Handicaps are Elo-point advantages given to black. They are either fixed or
a closed set of rating-dependent strategies:

- proportional: scale * (white_elo - black_elo)
- clamped:      proportional value clipped to [-limit, +limit]
- offset:       base + scale * (white_elo - black_elo)
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from ..exceptions import InstabilityError, InvalidInputError

if TYPE_CHECKING:
    from .rating_point import RatingPoint
    from .trajectory import PlayerTrajectory


class Outcome(str, Enum):
    """Result code of a match."""

    WHITE_WINS = "W"
    BLACK_WINS = "B"
    DRAW = "D"  # Placeholder: counted as a loss for both sides

    @classmethod
    def parse(cls, value: Union["Outcome", str]) -> "Outcome":
        """Accept an Outcome or its one-letter code (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidInputError(f"Unknown outcome {value!r} (expected 'W', 'B' or 'D')")


@dataclass(frozen=True)
class FixedHandicap:
    """Constant Elo advantage for black."""

    value: float = 0.0

    def evaluate(self, match: "MatchRecord") -> float:
        return self.value


# strategy -> required parameters
HANDICAP_STRATEGIES = {
    "proportional": ("scale",),
    "clamped": ("scale", "limit"),
    "offset": ("base", "scale"),
}


@dataclass(frozen=True)
class RatingDependentHandicap:
    """
    Elo advantage for black computed from both players' current ratings.

    Parameters:
        strategy: One of HANDICAP_STRATEGIES
        params: Strategy parameters (see module docstring)
    """

    strategy: str
    params: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        required = HANDICAP_STRATEGIES.get(self.strategy)
        if required is None:
            raise InvalidInputError(
                f"Unknown handicap strategy {self.strategy!r}; "
                f"available: {', '.join(HANDICAP_STRATEGIES)}"
            )
        missing = [name for name in required if name not in self.params]
        if missing:
            raise InvalidInputError(
                f"Handicap strategy {self.strategy!r} is missing parameters: {missing}"
            )

    def evaluate(self, match: "MatchRecord") -> float:
        white = match.point_of(match.white)
        black = match.point_of(match.black)
        gap = white.elo - black.elo
        scale = float(self.params["scale"])

        if self.strategy == "proportional":
            return scale * gap
        if self.strategy == "clamped":
            limit = abs(float(self.params["limit"]))
            return min(limit, max(-limit, scale * gap))
        # offset
        return float(self.params["base"]) + scale * gap


Handicap = Union[FixedHandicap, RatingDependentHandicap]


def as_handicap(value: Union[Handicap, float, int, None]) -> Handicap:
    """Wrap plain numbers in a FixedHandicap."""
    if value is None:
        return FixedHandicap(0.0)
    if isinstance(value, (FixedHandicap, RatingDependentHandicap)):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return FixedHandicap(float(value))
    raise InvalidInputError(f"Unsupported handicap {value!r}")


class MatchRecord:
    """
    One outcome between two players on one day.

    The record references both players' trajectories and, once attached,
    the RatingPoint of each side for that day. It is owned by the registry
    that created it.
    """

    def __init__(
        self,
        black: "PlayerTrajectory",
        white: "PlayerTrajectory",
        winner: Union[Outcome, str],
        day: int,
        handicap: Union[Handicap, float, int, None] = 0.0,
        extras: Optional[Dict[str, Any]] = None,
    ):
        if black is white:
            raise InvalidInputError(f"Invalid game (black player == white player): {black!r}")

        self.day = day
        self.black = black
        self.white = white
        self.outcome = Outcome.parse(winner)
        self.handicap = as_handicap(handicap)
        self.extras: Dict[str, Any] = dict(extras) if extras else {}

        self.white_point: Optional["RatingPoint"] = None
        self.black_point: Optional["RatingPoint"] = None

    def involves(self, player: "PlayerTrajectory") -> bool:
        return player is self.white or player is self.black

    def opponent(self, player: "PlayerTrajectory") -> Optional["PlayerTrajectory"]:
        """The other side of the match, or None if ``player`` did not play."""
        if player is self.white:
            return self.black
        if player is self.black:
            return self.white
        return None

    def is_won_by(self, player: "PlayerTrajectory") -> bool:
        return (self.outcome is Outcome.WHITE_WINS and player is self.white) or (
            self.outcome is Outcome.BLACK_WINS and player is self.black
        )

    def attach(self, player: "PlayerTrajectory", point: "RatingPoint") -> None:
        """Bind the RatingPoint of ``player`` for this match's day."""
        if player is self.white:
            self.white_point = point
        elif player is self.black:
            self.black_point = point
        else:
            raise InvalidInputError(f"{player!r} is not part of {self!r}")

    def point_of(self, player: "PlayerTrajectory") -> "RatingPoint":
        """The attached RatingPoint of one side; fails if not attached yet."""
        if player is self.white:
            point, side = self.white_point, "white"
        elif player is self.black:
            point, side = self.black_point, "black"
        else:
            raise InvalidInputError(f"{player!r} is not part of {self!r}")

        if point is None:
            raise InvalidInputError(f"No {side} player day found for game: {self!r}")
        return point

    @property
    def handicap_value(self) -> float:
        """Black's Elo advantage at the current ratings."""
        return self.handicap.evaluate(self)

    def adjusted_opponent_strength(self, player: "PlayerTrajectory") -> float:
        """
        Opponent's gamma after the handicap, 10^((opponent_elo +/- handicap) / 400).

        Raises InstabilityError if the result is zero or not finite.
        """
        black_advantage = self.handicap.evaluate(self)

        if player is self.white:
            opponent_elo = self.point_of(self.black).elo + black_advantage
        elif player is self.black:
            opponent_elo = self.point_of(self.white).elo - black_advantage
        else:
            raise InvalidInputError(
                f"No opponent for {player!r}, since they're not in this game: {self!r}"
            )

        try:
            strength = 10.0 ** (opponent_elo / 400.0)
        except OverflowError as exc:
            raise InstabilityError(f"Bad adjusted gamma: {self!r}") from exc

        if strength == 0.0 or not math.isfinite(strength):
            raise InstabilityError(f"Bad adjusted gamma ({strength}): {self!r}")
        return strength

    @property
    def white_win_probability(self) -> float:
        gamma = self.point_of(self.white).gamma
        return gamma / (gamma + self.adjusted_opponent_strength(self.white))

    @property
    def black_win_probability(self) -> float:
        gamma = self.point_of(self.black).gamma
        return gamma / (gamma + self.adjusted_opponent_strength(self.black))

    @property
    def prediction_score(self) -> float:
        """1.0 if the favoured side won, 0.0 if not, 0.5 for an even prediction."""
        p_white = self.white_win_probability
        if p_white == 0.5:
            return 0.5
        if (self.outcome is Outcome.WHITE_WINS and p_white > 0.5) or (
            self.outcome is Outcome.BLACK_WINS and p_white < 0.5
        ):
            return 1.0
        return 0.0

    def __repr__(self) -> str:
        white_r = f"{self.white_point.r:.2f}" if self.white_point is not None else "?"
        black_r = f"{self.black_point.r:.2f}" if self.black_point is not None else "?"
        return (
            f"MatchRecord(day={self.day}, W:{self.white.name}(r={white_r}) "
            f"B:{self.black.name}(r={black_r}) winner={self.outcome.value}, "
            f"handicap={self.handicap})"
        )
