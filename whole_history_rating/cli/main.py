"""
Command-line interface for Whole History Rating.

Usage:
    python -m whole_history_rating fit <games.parquet|games.csv> [options]
    python -m whole_history_rating history <games> <player> [options]
    python -m whole_history_rating rating-at <games> <player> <day> [options]
    python -m whole_history_rating predict <games> <white> <black> [options]
    python -m whole_history_rating evaluate <games> [options]

Games files need columns black, white, winner ('W'/'B'/'D'), day and
optionally handicap.
"""

import argparse
import logging
import sys
from typing import List, Optional

import polars as pl

from ..data import GameDataset
from ..exceptions import InstabilityError
from ..whr import WholeHistoryRating, WHRConfig

logger = logging.getLogger(__name__)


def fit_system(args) -> WholeHistoryRating:
    """Load the games file and iterate to convergence."""
    dataset = GameDataset.from_path(args.data)
    print(f"Loaded {dataset}")

    config = WHRConfig(
        w2=args.w2,
        max_iterations=args.iterations,
        tolerance=args.tolerance,
        debug=args.debug,
    )
    whr = WholeHistoryRating(config)
    whr.load_dataset(dataset)
    passes = whr.iterate_until_converged()
    print(f"Fitted {whr.player_count} players on {whr.game_count} games ({passes} iterations)")
    return whr


def _require_player(whr: WholeHistoryRating, name: str) -> bool:
    if whr.has_player(name):
        return True
    print(f"Unknown player: {name}")
    return False


def cmd_fit(args):
    """Fit and show the top N players."""
    whr = fit_system(args)
    fitted = whr.get_fitted_ratings()

    print(f"\n{fitted}")
    print(f"\nTop {args.top} players:")
    print(fitted.top(args.top))
    return 0


def cmd_history(args):
    """Show a player's rating history."""
    whr = fit_system(args)
    if not _require_player(whr, args.player):
        return 1

    fitted = whr.get_fitted_ratings()
    print(f"\nRating history for {args.player}:")
    print(fitted.history_to_dataframe(args.player))
    return 0


def cmd_rating_at(args):
    """Show a player's (interpolated) rating at a given day."""
    whr = fit_system(args)
    if not _require_player(whr, args.player):
        return 1

    estimate = whr.rating_at(args.player, args.day)
    print(f"\n{args.player} on day {args.day:g}:")
    print(f"  Elo         = {estimate.elo:.1f}")
    print(f"  Uncertainty = {estimate.uncertainty:.4f} (natural scale)")
    return 0


def cmd_predict(args):
    """Predict the outcome of a game between two players."""
    whr = fit_system(args)
    for name in (args.white, args.black):
        if not _require_player(whr, name):
            return 1

    prob = whr.predict(args.white, args.black, day=args.day, handicap=args.handicap)
    print("\nMatchup Prediction (WHR):")
    print(f"  {args.white} (white) vs {args.black} (black)")
    print(f"  P({args.white} wins) = {prob:.1%}")
    print(f"  P({args.black} wins) = {1 - prob:.1%}")
    return 0


def cmd_evaluate(args):
    """In-sample prediction metrics of the fitted model."""
    from ..evaluation import evaluate_matches

    whr = fit_system(args)
    metrics = evaluate_matches(whr.games)
    print("\nIn-sample metrics:")
    print(pl.DataFrame({"metric": list(metrics), "value": [float(v) for v in metrics.values()]}))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="whole_history_rating",
        description="Whole History Rating CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_common_args(p):
        p.add_argument("data", help="Path to games file (.parquet or .csv)")
        p.add_argument("--w2", type=float, default=300.0,
                       help="Wiener variance per day in Elo² (default: 300)")
        p.add_argument("--iterations", "-i", type=int, default=50,
                       help="Maximum iterations (default: 50)")
        p.add_argument("--tolerance", type=float, default=1e-3,
                       help="Log-likelihood convergence tolerance (default: 1e-3)")
        p.add_argument("--debug", action="store_true",
                       help="Log per-player Newton details")

    fit_parser = subparsers.add_parser("fit", help="Fit ratings and show the top players")
    add_common_args(fit_parser)
    fit_parser.add_argument("--top", "-t", type=int, default=10,
                            help="Show top N players (default: 10)")

    history_parser = subparsers.add_parser("history", help="Rating history of a player")
    add_common_args(history_parser)
    history_parser.add_argument("player", help="Player name")

    rating_at_parser = subparsers.add_parser("rating-at", help="Rating of a player on a day")
    add_common_args(rating_at_parser)
    rating_at_parser.add_argument("player", help="Player name")
    rating_at_parser.add_argument("day", type=float, help="Day (may fall between games)")

    predict_parser = subparsers.add_parser("predict", help="Predict a game outcome")
    add_common_args(predict_parser)
    predict_parser.add_argument("white", help="White player name")
    predict_parser.add_argument("black", help="Black player name")
    predict_parser.add_argument("--day", type=float, default=None,
                                help="Use ratings interpolated at this day")
    predict_parser.add_argument("--handicap", type=float, default=0.0,
                                help="Elo advantage given to black (default: 0)")

    evaluate_parser = subparsers.add_parser("evaluate", help="In-sample prediction metrics")
    add_common_args(evaluate_parser)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "fit": cmd_fit,
        "history": cmd_history,
        "rating-at": cmd_rating_at,
        "predict": cmd_predict,
        "evaluate": cmd_evaluate,
    }

    try:
        return commands[args.command](args)
    except InstabilityError as exc:
        logger.error("Ratings diverged: %s", exc)
        print("Ratings diverged; try a larger --w2 or fewer iterations.")
        return 2
    except (OSError, ValueError, pl.exceptions.PolarsError) as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
