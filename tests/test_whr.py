"""Tests for the WholeHistoryRating registry and iteration driver."""

import logging
import math

import numpy as np
import pytest

from whole_history_rating import (
    GameResult,
    InstabilityError,
    InvalidInputError,
    WHRConfig,
    WholeHistoryRating,
)


def canonical_system() -> WholeHistoryRating:
    """shusai (white) beats shusaku (black) four times after losing on day 1."""
    whr = WholeHistoryRating()
    whr.create_game("shusaku", "shusai", "B", 1, 0)
    whr.create_game("shusaku", "shusai", "W", 2, 0)
    whr.create_game("shusaku", "shusai", "W", 3, 0)
    whr.create_game("shusaku", "shusai", "W", 4, 0)
    whr.create_game("shusaku", "shusai", "W", 4, 0)
    return whr


def generate_test_results(
    num_players: int = 12,
    num_games: int = 300,
    num_days: int = 20,
    seed: int = 42,
):
    """Synthetic GameResults with skill-based outcomes."""
    rng = np.random.RandomState(seed)
    true_skill = np.linspace(-1, 1, num_players)

    results = []
    for day in np.sort(rng.randint(0, num_days, num_games)):
        black, white = rng.choice(num_players, 2, replace=False)
        p_white = 1 / (1 + np.exp(-(true_skill[white] - true_skill[black]) * 3))
        winner = "W" if rng.random_sample() < p_white else "B"
        results.append(GameResult(f"p{black}", f"p{white}", winner, int(day)))
    return results


def test_empty_system():
    whr = WholeHistoryRating()
    assert whr.player_count == 0
    assert whr.game_count == 0
    assert whr.log_likelihood == 0.0


def test_configuration():
    whr = WholeHistoryRating(w2=17, max_iterations=20, tolerance=1e-4)
    assert whr.config.w2 == 17
    assert whr.config.max_iterations == 20

    config = WHRConfig(w2=50)
    assert WholeHistoryRating(config).config is config

    with pytest.raises(TypeError):
        WholeHistoryRating(config, w2=1)


@pytest.mark.parametrize("overrides", [
    {"w2": 0},
    {"w2": -3},
    {"max_iterations": 0},
    {"tolerance": 0},
    {"hessian_regularization": -1e-3},
])
def test_invalid_configuration(overrides):
    with pytest.raises(ValueError):
        WHRConfig(**overrides)


def test_canonical_game_sequence():
    whr = canonical_system()
    whr.iterate(50)

    shusaku = whr.ratings_for_player("shusaku")
    shusai = whr.ratings_for_player("shusai")

    assert len(shusaku) == 4
    assert len(shusai) == 4

    assert shusaku.ratings[0][1] < 0
    assert shusai.ratings[0][1] > 0
    assert shusai.ratings[-1][1] > shusaku.ratings[-1][1]

    # both sides are anchored the same way, so the fit is antisymmetric
    for (_, black_elo, _), (_, white_elo, _) in zip(shusaku.ratings, shusai.ratings):
        assert abs(black_elo + white_elo) <= 1

    for day, elo, uncertainty in shusai.ratings:
        assert isinstance(day, int)
        assert isinstance(elo, int)
        assert uncertainty > 0


def test_player_who_always_loses():
    whr = WholeHistoryRating()
    for day in (1, 2, 3, 4, 4):
        whr.create_game("loser", "winner", "W", day)
    whr.iterate(50)

    loser = whr.player("loser")
    winner = whr.player("winner")
    assert loser.points[0].r < 0
    assert winner.points[0].r > 0
    assert winner.current_rating > loser.current_rating


def test_unstable_ratings_raise():
    whr = WholeHistoryRating()
    for _ in range(10):
        whr.create_game("anchor", "player", "B", 1, 0)
        whr.create_game("anchor", "player", "W", 1, 0)

    for _ in range(10):
        whr.create_game("anchor", "player", "B", 180, 600)
        whr.create_game("anchor", "player", "W", 180, 600)

    with pytest.raises(InstabilityError):
        whr.iterate(10)


def test_players_created_on_demand():
    whr = WholeHistoryRating()
    whr.create_game("Alice", "Bob", "B", 1)
    assert whr.player_count == 2
    assert whr.player("Alice") is whr.player("Alice")
    # white is registered first
    assert [player.name for player in whr.players] == ["Bob", "Alice"]


def test_self_play_rejected():
    whr = WholeHistoryRating()
    with pytest.raises(InvalidInputError, match="Invalid game"):
        whr.create_game("Alice", "Alice", "B", 1)


def test_setup_game_does_not_attach():
    whr = WholeHistoryRating()
    game = whr.setup_game("Alice", "Bob", "B", 1)
    assert whr.game_count == 0
    assert game.white_point is None

    whr.add_game(game)
    assert whr.game_count == 1
    assert game.white_point is whr.player("Bob").points[0]
    assert game.black_point is whr.player("Alice").points[0]


def test_rating_queries():
    whr = WholeHistoryRating()
    whr.create_game("Alice", "Bob", "B", 1)
    whr.create_game("Alice", "Charlie", "B", 2)
    whr.create_game("Bob", "Charlie", "W", 3)
    whr.iterate(10)

    alice = whr.ratings_for_player("Alice")
    assert alice.name == "Alice"
    assert len(alice) > 0
    for rating in alice.ratings:
        assert len(rating) == 3

    current = whr.current_ratings()
    assert len(current) == 3
    elos = [rating.elo for rating in current]
    assert elos == sorted(elos, reverse=True)
    assert current[0].name == "Alice"


def test_rating_at_and_ratings_at():
    whr = canonical_system()
    whr.iterate(20)

    unknown = whr.rating_at("nobody", 3)
    assert unknown.elo == 0.0
    assert unknown.uncertainty == pytest.approx(math.sqrt(5))

    estimate = whr.rating_at("shusai", 2.5)
    shusai = whr.player("shusai")
    low, high = sorted([shusai.points[1].elo, shusai.points[2].elo])
    assert low <= estimate.elo <= high

    snapshot = whr.ratings_at(4)
    assert list(snapshot) == ["shusai", "shusaku"]
    assert snapshot["shusai"].elo == shusai.current_rating


def test_predict():
    whr = canonical_system()
    whr.iterate(20)

    p = whr.predict("shusai", "shusaku")
    assert 0.5 < p < 1.0
    assert whr.predict("shusaku", "shusai") == pytest.approx(1 - p)
    assert whr.predict("shusai", "shusaku", handicap=400) < p
    assert 0.0 < whr.predict("shusai", "shusaku", day=2.5) < 1.0
    assert whr.predict("nobody", "anybody") == 0.5


def test_log_likelihood_is_finite():
    whr = WholeHistoryRating()
    whr.create_game("Alice", "Bob", "B", 1)
    whr.create_game("Alice", "Bob", "W", 2)
    assert math.isfinite(whr.log_likelihood)


def test_iterate_until_converged(caplog):
    whr = WholeHistoryRating()
    whr.setup_games(generate_test_results())

    with caplog.at_level(logging.INFO, logger="whole_history_rating"):
        passes = whr.iterate_until_converged(max_iterations=200, tolerance=1e-3)

    assert 1 <= passes < 200
    assert whr.num_iterations == passes
    assert "Converged" in caplog.text

    # one more pass barely moves anything
    assert whr.run_one_iteration() < 0.05


def test_iterate_until_converged_warns_when_capped(caplog):
    whr = WholeHistoryRating()
    whr.setup_games(generate_test_results())

    with caplog.at_level(logging.WARNING, logger="whole_history_rating"):
        passes = whr.iterate_until_converged(max_iterations=1, tolerance=1e-12)

    assert passes == 1
    assert "Did not converge" in caplog.text


def test_iteration_increases_likelihood():
    whr = WholeHistoryRating()
    whr.setup_games(generate_test_results(seed=3))

    before = whr.log_likelihood
    whr.iterate(5)
    assert whr.log_likelihood > before


def test_stronger_players_rank_higher():
    whr = WholeHistoryRating()
    whr.setup_games(generate_test_results(num_games=1500))
    whr.iterate_until_converged()

    current = {rating.name: rating.elo for rating in whr.current_ratings()}
    assert current["p11"] > current["p0"]


def test_setup_games_from_results():
    games = [
        GameResult(black="Alice", white="Bob", winner="B", day=1),
        GameResult(black="Alice", white="Charlie", winner="B", day=2),
        GameResult(black="Bob", white="Charlie", winner="W", day=3, extras={"event": "final"}),
    ]

    whr = WholeHistoryRating()
    matches = whr.create_games(games)
    assert whr.game_count == 3
    assert whr.player_count == 3
    assert matches[2].extras == {"event": "final"}


def test_debug_trace_is_per_instance(caplog):
    package_logger = logging.getLogger("whole_history_rating")
    level = package_logger.level

    quiet = WholeHistoryRating(debug=False)
    verbose = WholeHistoryRating(debug=True)
    assert package_logger.level == level

    for whr in (quiet, verbose):
        whr.create_game("Alice", "Bob", "B", 1)
        whr.create_game("Alice", "Bob", "W", 2)

    with caplog.at_level(logging.DEBUG, logger="whole_history_rating"):
        quiet.run_one_iteration()
        assert "Updating" not in caplog.text

        verbose.run_one_iteration()
        assert "Updating Alice" in caplog.text


def test_clear():
    whr = canonical_system()
    whr.iterate(2)
    whr.clear()
    assert whr.player_count == 0
    assert whr.game_count == 0
    assert whr.num_iterations == 0
