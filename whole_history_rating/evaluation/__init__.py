from .metrics import accuracy, brier_score, evaluate_matches, log_loss

__all__ = [
    "brier_score",
    "log_loss",
    "accuracy",
    "evaluate_matches",
]
