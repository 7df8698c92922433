"""Plain record types exchanged with the rating registry."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from ..core.match import Handicap


@dataclass
class GameResult:
    """One game as supplied by an input source."""

    black: str
    white: str
    winner: str  # 'W', 'B' or 'D'
    day: int
    handicap: Union[Handicap, float] = 0.0
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlayerRating:
    """A player's most recent rating."""

    name: str
    day: int
    elo: float
    uncertainty: float


@dataclass
class RatingHistory:
    """A player's rating history as (day, elo, uncertainty x 100) tuples."""

    name: str
    ratings: List[Tuple[int, int, int]]

    def __len__(self) -> int:
        return len(self.ratings)
