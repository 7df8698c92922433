"""
Rating trajectory of one player: Wiener-process prior + Newton updates.

The log-posterior of a player's whole history, given the opponents' current
ratings, is the sum of the per-day Bradley-Terry log-likelihoods and a
Gaussian term for every pair of consecutive days:

    r[i + 1] - r[i] ~ N(0, |day[i + 1] - day[i]| * w2)

Each pair couples only neighbours, so the Hessian is exactly tridiagonal and
one Newton step over the full history costs O(n). Running the step for every
player in turn is block coordinate ascent on the joint posterior.

Based on:
- Rémi Coulom, "Whole-History Rating: A Bayesian Rating System for Players
  of Time-Varying Strength" (2008)
- https://www.remi-coulom.fr/WHR/WHR.pdf
"""

import logging
import math
from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..exceptions import InstabilityError
from ._numba_core import LN10_400
from .match import MatchRecord
from .rating_point import DEFAULT_UNCERTAINTY, RatingPoint
from .tridiagonal import TridiagonalSolver

logger = logging.getLogger(__name__)

# gamma = e^650 is meaningless as a strength; Newton results beyond it are rejected
MAX_NATURAL_RATING = 650.0

# Subtracted from the Hessian diagonal to keep it negative-definite
DEFAULT_REGULARIZATION = 0.001


@dataclass(frozen=True)
class RatingEstimate:
    """Rating at a point in time: Elo-scale mean, natural-scale uncertainty."""

    day: float
    elo: float
    uncertainty: float

    @property
    def r(self) -> float:
        return self.elo * LN10_400

    @property
    def variance(self) -> float:
        return self.uncertainty * self.uncertainty


class PlayerTrajectory:
    """
    Ordered RatingPoints of one player and the Newton solver over them.

    Parameters:
        name: Player identity
        w2: Wiener variance per time unit in Elo² (default: 300.0).
            Stored on the natural scale as ``self.w2``.
        regularization: Constant subtracted from the Hessian diagonal
            (default: 0.001)
        debug: Log the per-day Newton details of this player at DEBUG
    """

    def __init__(
        self,
        name: str,
        w2: float = 300.0,
        regularization: float = DEFAULT_REGULARIZATION,
        debug: bool = False,
    ):
        self.name = name
        self.debug = debug
        self.w2 = w2 * LN10_400**2
        self.regularization = regularization
        self.points: List[RatingPoint] = []
        self._days: List[int] = []

    def __len__(self) -> int:
        return len(self.points)

    @property
    def days(self) -> List[int]:
        return list(self._days)

    @property
    def ratings(self) -> np.ndarray:
        """Natural ratings of all points, oldest first."""
        return np.array([point.r for point in self.points], dtype=np.float64)

    @property
    def current_rating(self) -> float:
        """Most recent Elo rating (0.0 without games)."""
        if not self.points:
            return 0.0
        return self.points[-1].elo

    @property
    def current_uncertainty(self) -> float:
        if not self.points:
            return DEFAULT_UNCERTAINTY
        return self.points[-1].uncertainty

    # ------------------------------------------------------------------
    # Building the timeline
    # ------------------------------------------------------------------

    def point_for_day(self, day: int) -> RatingPoint:
        """
        Get or create the RatingPoint for ``day``.

        Points stay sorted and unique by day. A new point starts from the
        rating of the closest earlier point (or the first point if it is the
        new earliest). The earliest point is the only anchor.
        """
        idx = bisect_left(self._days, day)
        if idx < len(self._days) and self._days[idx] == day:
            return self.points[idx]

        if not self.points:
            r = 0.0
        elif idx > 0:
            r = self.points[idx - 1].r
        else:
            r = self.points[0].r

        point = RatingPoint(self, day, r=r)
        self.points.insert(idx, point)
        self._days.insert(idx, day)

        if idx == 0:
            if len(self.points) > 1:
                self.points[1].is_anchor = False
            point.is_anchor = True

        return point

    def add_match(self, match: MatchRecord) -> RatingPoint:
        """Attach a match to this player's point for the match day."""
        point = self.point_for_day(match.day)
        match.attach(self, point)
        point.add_match(match)
        return point

    # ------------------------------------------------------------------
    # Posterior terms
    # ------------------------------------------------------------------

    def _refresh_terms(self) -> None:
        for point in self.points:
            point.refresh_terms()

    def _sigma2(self) -> np.ndarray:
        """Wiener variance accrued between consecutive points."""
        days = np.asarray(self._days, dtype=np.float64)
        return np.abs(np.diff(days)) * self.w2

    def _gradient(self, r: np.ndarray, sigma2: np.ndarray) -> np.ndarray:
        gradient = np.array(
            [point.log_likelihood_derivative() for point in self.points],
            dtype=np.float64,
        )
        pull = (r[:-1] - r[1:]) / sigma2
        gradient[:-1] -= pull
        gradient[1:] += pull
        return gradient

    def _hessian(self, sigma2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Main diagonal and (symmetric) off-diagonal of the Hessian."""
        diag = np.array(
            [point.log_likelihood_second_derivative() for point in self.points],
            dtype=np.float64,
        )
        inv_sigma2 = 1.0 / sigma2
        diag[:-1] -= inv_sigma2
        diag[1:] -= inv_sigma2
        diag -= self.regularization
        return diag, inv_sigma2

    @property
    def log_likelihood(self) -> float:
        """
        Log-posterior contribution of this player at the current ratings.

        Each day's likelihood plus the Gaussian log-density of the step to
        each neighbouring day.
        """
        self._refresh_terms()
        sigma2 = self._sigma2()
        n = len(self.points)
        total = 0.0

        for i, point in enumerate(self.points):
            prior = 0.0
            if i < n - 1:
                rd = point.r - self.points[i + 1].r
                prior += -0.5 * rd * rd / sigma2[i] - 0.5 * math.log(2.0 * math.pi * sigma2[i])
            if i > 0:
                rd = point.r - self.points[i - 1].r
                prior += -0.5 * rd * rd / sigma2[i - 1] - 0.5 * math.log(2.0 * math.pi * sigma2[i - 1])

            day_likelihood = point.log_likelihood()
            if not math.isfinite(day_likelihood) or not math.isfinite(prior):
                logger.warning(
                    "Infinity at %s: day_likelihood=%s, prior=%s", self.name, day_likelihood, prior
                )
                continue

            total += day_likelihood + prior

        return total

    # ------------------------------------------------------------------
    # Newton update
    # ------------------------------------------------------------------

    def newton_step(self) -> float:
        """
        Run exactly one Newton iteration over the whole history.

        Returns the largest absolute rating change. Raises InstabilityError
        instead of committing a divergent rating vector.
        """
        if not self.points:
            return 0.0

        self._refresh_terms()

        if len(self.points) == 1:
            return self.points[0].newton_update_1d()
        return self._newton_step_nd()

    def _newton_step_nd(self) -> float:
        r = self.ratings
        sigma2 = self._sigma2()
        diag, off_diag = self._hessian(sigma2)
        gradient = self._gradient(r, sigma2)

        trace = self.debug and logger.isEnabledFor(logging.DEBUG)
        if trace:
            logger.debug("Updating %s", self.name)
            for point, g in zip(self.points, gradient):
                logger.debug(
                    "day[%s] r=%.6f log(p)=%.6f dlp=%.6f d2lp=%.6f g=%.6f",
                    point.day,
                    point.r,
                    point.log_likelihood(),
                    point.log_likelihood_derivative(),
                    point.log_likelihood_second_derivative(),
                    g,
                )

        x = TridiagonalSolver(diag, off_diag).solve(gradient)
        new_r = r - x

        if np.any(~np.isfinite(new_r) | (new_r > MAX_NATURAL_RATING)):
            raise InstabilityError(f"Unstable r ({new_r.tolist()}) on player {self.name}")

        if trace:
            logger.debug("%s (%s) => (%s)", self.name, r.tolist(), new_r.tolist())

        for point, value in zip(self.points, new_r):
            point.r = float(value)

        return float(np.max(np.abs(x)))

    # ------------------------------------------------------------------
    # Uncertainty
    # ------------------------------------------------------------------

    def _posterior_variances(self) -> Tuple[np.ndarray, np.ndarray]:
        self._refresh_terms()
        sigma2 = self._sigma2()
        diag, off_diag = self._hessian(sigma2)
        return TridiagonalSolver(diag, off_diag).inverse_diagonals()

    def covariance(self) -> np.ndarray:
        """
        Approximate posterior covariance of the natural ratings.

        Dense n x n matrix holding the diagonal and first off-diagonals of
        -H^-1; entries further from the diagonal are left at zero.
        """
        n = len(self.points)
        if n == 0:
            return np.zeros((0, 0), dtype=np.float64)

        variances, covariances = self._posterior_variances()
        cov = np.diag(variances)
        if n > 1:
            idx = np.arange(n - 1)
            cov[idx, idx + 1] = covariances
            cov[idx + 1, idx] = covariances
        return cov

    def update_uncertainty(self) -> None:
        """Store sqrt(|variance|) on every point."""
        if not self.points:
            return

        variances, _ = self._posterior_variances()
        for point, variance in zip(self.points, variances):
            point.uncertainty = math.sqrt(abs(float(variance)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def rating_at(self, t: float) -> RatingEstimate:
        """
        Rating estimate at any time, known day or not.

        Known day: stored values. Before the first or after the last day:
        endpoint rating with variance growing by w2 per unit time. Between
        two days: Wiener-bridge interpolation (Appendix C of the WHR paper).
        """
        if not self.points:
            return RatingEstimate(t, 0.0, DEFAULT_UNCERTAINTY)

        n = len(self.points)
        idx = bisect_left(self._days, t)

        if idx < n and self._days[idx] == t:
            point = self.points[idx]
            return RatingEstimate(t, point.elo, point.uncertainty)

        if idx == 0 or idx == n:
            point = self.points[0] if idx == 0 else self.points[-1]
            variance = point.uncertainty**2 + abs(t - point.day) * self.w2
            return RatingEstimate(t, point.elo, math.sqrt(variance))

        before = self.points[idx - 1]
        after = self.points[idx]
        t1, t2 = before.day, after.day
        span = t2 - t1

        mu = (before.r * (t2 - t) + after.r * (t - t1)) / span

        # Cross-covariance of the two known days is taken as zero
        sigma12 = 0.0
        process_variance = (t2 - t) * (t - t1) / span * self.w2
        endpoint_variance = (
            (t2 - t) ** 2 * before.uncertainty**2
            + 2.0 * (t2 - t) * (t - t1) * sigma12
            + (t - t1) ** 2 * after.uncertainty**2
        ) / span**2

        variance = process_variance + endpoint_variance
        return RatingEstimate(t, mu / LN10_400, math.sqrt(max(0.0, variance)))

    def rating_history(self) -> List[Tuple[int, int, int]]:
        """(day, Elo rounded, natural uncertainty x 100 rounded) per point."""
        return [
            (point.day, round(point.elo), round(point.uncertainty * 100))
            for point in self.points
        ]

    def __repr__(self) -> str:
        return f"PlayerTrajectory({self.name}, days={len(self.points)})"
