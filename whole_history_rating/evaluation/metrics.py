"""Scores for white win probabilities against decisive game outcomes (numpy-based)."""

from typing import Dict, Iterable

import numpy as np

from ..core.match import MatchRecord, Outcome


def brier_score(p_white: np.ndarray, white_won: np.ndarray) -> float:
    """
    Mean squared error of the white win probabilities.

    Lower is better. Range: [0, 1]; a constant 0.5 forecast scores 0.25.

    Args:
        p_white: (N,) Predicted probability that white wins
        white_won: (N,) 1.0 where white won, 0.0 where black won
    """
    errors = p_white - white_won
    return float(np.dot(errors, errors) / len(errors))


def log_loss(
    p_white: np.ndarray,
    white_won: np.ndarray,
    eps: float = 1e-15,
) -> float:
    """
    Mean negative log-probability given to the side that actually won.

    Lower is better; a constant 0.5 forecast scores ln 2.
    """
    p_winner = np.where(white_won > 0.5, p_white, 1.0 - p_white)
    return float(-np.mean(np.log(np.clip(p_winner, eps, 1.0))))


def accuracy(p_white: np.ndarray, white_won: np.ndarray) -> float:
    """Share of games where the favoured side won (white favoured above 0.5)."""
    white_favoured = p_white > 0.5
    return float(np.mean(white_favoured == (white_won > 0.5)))


def evaluate_matches(matches: Iterable[MatchRecord]) -> Dict[str, float]:
    """
    Score the model's white win probabilities against decisive outcomes.

    Draws are skipped. Returns num_matches, brier_score, log_loss, accuracy
    and mean prediction_score (NaN metrics when there is nothing to score).
    """
    predictions = []
    actuals = []
    prediction_scores = []

    for match in matches:
        if match.outcome is Outcome.DRAW:
            continue
        predictions.append(match.white_win_probability)
        actuals.append(1.0 if match.outcome is Outcome.WHITE_WINS else 0.0)
        prediction_scores.append(match.prediction_score)

    if not predictions:
        return {
            "num_matches": 0,
            "brier_score": float("nan"),
            "log_loss": float("nan"),
            "accuracy": float("nan"),
            "prediction_score": float("nan"),
        }

    p = np.asarray(predictions, dtype=np.float64)
    y = np.asarray(actuals, dtype=np.float64)
    return {
        "num_matches": len(predictions),
        "brier_score": brier_score(p, y),
        "log_loss": log_loss(p, y),
        "accuracy": accuracy(p, y),
        "prediction_score": float(np.mean(prediction_scores)),
    }
