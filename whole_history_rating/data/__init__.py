"""Data loading and record types."""

from .dataset import GameDataset
from .types import GameResult, PlayerRating, RatingHistory

__all__ = ["GameDataset", "GameResult", "PlayerRating", "RatingHistory"]
