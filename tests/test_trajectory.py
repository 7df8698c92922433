"""Tests for a player's rating trajectory: timeline, Newton step, covariance, interpolation."""

import math

import numpy as np
import pytest

from whole_history_rating import MatchRecord, PlayerTrajectory, WholeHistoryRating
from whole_history_rating.core import DEFAULT_UNCERTAINTY, LN10_400


def play(player: PlayerTrajectory, other: PlayerTrajectory, winner: str, day: int) -> MatchRecord:
    """Attach a game with ``player`` as black to both trajectories."""
    game = MatchRecord(player, other, winner, day)
    player.add_match(game)
    other.add_match(game)
    return game


def test_w2_stored_on_natural_scale():
    player = PlayerTrajectory("p", w2=300)
    assert player.w2 == pytest.approx((math.sqrt(300) * math.log(10) / 400) ** 2)


def test_points_sorted_and_unique():
    player = PlayerTrajectory("p")
    other = PlayerTrajectory("o")
    play(player, other, "B", 3)
    play(player, other, "W", 1)
    play(player, other, "W", 3)

    assert player.days == [1, 3]
    assert len(player) == 2
    assert len(player.points[1].won_matches) == 1
    assert len(player.points[1].lost_matches) == 1


def test_anchor_moves_to_earliest_day():
    player = PlayerTrajectory("p")
    later = player.point_for_day(5)
    later.r = 0.4
    assert later.is_anchor

    earlier = player.point_for_day(2)
    assert player.points[0] is earlier
    assert earlier.is_anchor
    assert not later.is_anchor
    # a new earliest point starts from the old first rating
    assert earlier.r == 0.4

    middle = player.point_for_day(3)
    assert middle.r == earlier.r
    assert not middle.is_anchor
    assert sum(point.is_anchor for point in player.points) == 1


def test_point_for_day_returns_existing():
    player = PlayerTrajectory("p")
    assert player.point_for_day(4) is player.point_for_day(4)


def test_empty_trajectory():
    player = PlayerTrajectory("p")
    assert player.newton_step() == 0.0
    assert player.current_rating == 0.0
    assert player.current_uncertainty == DEFAULT_UNCERTAINTY
    assert player.covariance().shape == (0, 0)

    estimate = player.rating_at(10)
    assert estimate.elo == 0.0
    assert estimate.uncertainty == pytest.approx(math.sqrt(5))


def test_log_likelihood_is_finite():
    player = PlayerTrajectory("p")
    other = PlayerTrajectory("o")
    play(player, other, "B", 1)
    play(player, other, "W", 2)

    assert math.isfinite(player.log_likelihood)


def test_newton_step_reports_change():
    player = PlayerTrajectory("p")
    other = PlayerTrajectory("o")
    for day in (1, 2, 3):
        play(player, other, "B", day)

    change = player.newton_step()
    assert change > 0
    assert np.all(player.ratings > 0)
    assert change == pytest.approx(np.max(np.abs(player.ratings)))


def test_newton_step_matches_dense_solve():
    player = PlayerTrajectory("p", w2=50, regularization=0.001)
    other = PlayerTrajectory("o")
    play(player, other, "B", 1)
    play(player, other, "W", 3)
    play(player, other, "B", 4)
    play(player, other, "B", 4)
    for point, elo in zip(other.points, (120.0, -30.0, 60.0)):
        point.elo = elo
    for point, elo in zip(player.points, (10.0, 80.0, -40.0)):
        point.elo = elo

    r = player.ratings.copy()
    for point in player.points:
        point.refresh_terms()
    sigma2 = np.diff(np.array(player.days, dtype=float)) * player.w2

    n = len(r)
    hessian = np.zeros((n, n))
    gradient = np.zeros(n)
    for i, point in enumerate(player.points):
        hessian[i, i] = point.log_likelihood_second_derivative() - 0.001
        gradient[i] = point.log_likelihood_derivative()
    for i in range(n - 1):
        hessian[i, i] -= 1 / sigma2[i]
        hessian[i + 1, i + 1] -= 1 / sigma2[i]
        hessian[i, i + 1] = hessian[i + 1, i] = 1 / sigma2[i]
        gradient[i] -= (r[i] - r[i + 1]) / sigma2[i]
        gradient[i + 1] -= (r[i + 1] - r[i]) / sigma2[i]

    step = np.linalg.solve(hessian, gradient)
    change = player.newton_step()

    np.testing.assert_allclose(player.ratings, r - step, rtol=1e-9, atol=1e-12)
    assert change == pytest.approx(np.max(np.abs(step)))


def test_covariance_matrix():
    player = PlayerTrajectory("p")
    other = PlayerTrajectory("o")
    play(player, other, "B", 1)
    play(player, other, "W", 2)

    cov = player.covariance()
    assert cov.shape == (2, 2)
    assert cov[0, 0] > 0
    assert cov[1, 1] > 0
    assert cov[0, 1] == cov[1, 0]


def test_uncertainty_positive_and_consistent_with_covariance():
    whr = WholeHistoryRating()
    whr.create_game("Alice", "Bob", "B", 1)
    whr.create_game("Alice", "Bob", "W", 4)
    whr.create_game("Alice", "Carol", "B", 9)
    whr.iterate(20)

    for player in whr.players:
        cov = player.covariance()
        for i, point in enumerate(player.points):
            assert point.uncertainty > 0
            assert math.isfinite(point.uncertainty)
            assert point.uncertainty == pytest.approx(math.sqrt(cov[i, i]))


def test_rating_at_known_day_is_exact():
    whr = WholeHistoryRating()
    whr.create_game("Alice", "Bob", "B", 1)
    whr.create_game("Alice", "Bob", "W", 3)
    whr.iterate(10)

    player = whr.player("Alice")
    for point in player.points:
        estimate = player.rating_at(point.day)
        assert estimate.elo == point.elo
        assert estimate.uncertainty == point.uncertainty


def test_midpoint_variance_is_wiener_bridge():
    # interpolation ignores the cross-covariance of the two known days;
    # with zero endpoint uncertainty only the bridge term remains
    player = PlayerTrajectory("p", w2=300)
    first = player.point_for_day(0)
    second = player.point_for_day(1)
    first.uncertainty = 0.0
    second.uncertainty = 0.0
    first.elo = 100
    second.elo = 200

    estimate = player.rating_at(0.5)
    assert estimate.variance == pytest.approx(player.w2 / 4)
    assert estimate.elo == pytest.approx(150)
    assert estimate.r == pytest.approx(150 * LN10_400)


def test_interpolation_weights_nearer_day():
    player = PlayerTrajectory("p")
    player.point_for_day(0).elo = 0
    player.point_for_day(4).elo = 400

    assert player.rating_at(1).elo == pytest.approx(100)
    assert player.rating_at(3).elo == pytest.approx(300)


def test_extrapolation_grows_variance():
    player = PlayerTrajectory("p", w2=300)
    point = player.point_for_day(10)
    point.elo = 50
    point.uncertainty = 0.2

    after = player.rating_at(15)
    before = player.rating_at(7)
    assert after.elo == pytest.approx(50)
    assert before.elo == pytest.approx(50)
    assert after.variance == pytest.approx(0.04 + 5 * player.w2)
    assert before.variance == pytest.approx(0.04 + 3 * player.w2)


def test_rating_history_display_convention():
    player = PlayerTrajectory("p")
    point = player.point_for_day(3)
    point.elo = 123.6
    point.uncertainty = 0.8427

    assert player.rating_history() == [(3, 124, 84)]
