"""A player's rating state on a single day and its Bradley-Terry likelihood."""

import logging
import math
from typing import TYPE_CHECKING, List, NamedTuple

from ._numba_core import LN10_400
from .match import MatchRecord

if TYPE_CHECKING:
    from .trajectory import PlayerTrajectory

logger = logging.getLogger(__name__)

# Initial uncertainty of a fresh point (natural scale)
DEFAULT_UNCERTAINTY = math.sqrt(5.0)

# Below this |d2 log p / dr2| the 1-D Newton update is skipped
MIN_CURVATURE = 1e-10


class LikelihoodTerm(NamedTuple):
    """
    Coefficients of one game's contribution (A*gamma + B) / (C*gamma + D).

    Won game: (1, 0, 1, opponent_gamma). Lost game: (0, opponent_gamma, 1, opponent_gamma).
    """

    a: float
    b: float
    c: float
    d: float


# Virtual even game against a reference player of gamma = 1
VIRTUAL_WIN = LikelihoodTerm(1.0, 0.0, 1.0, 1.0)
VIRTUAL_LOSS = LikelihoodTerm(0.0, 1.0, 1.0, 1.0)


class RatingPoint:
    """
    Rating of one player on one day.

    ``r`` is the natural rating (r = ln gamma). The anchor point (a player's
    earliest day) carries one virtual win and one virtual loss against a
    gamma = 1 reference, which pins down the otherwise free rating scale.

    Likelihood terms depend on the opponents' current ratings. They are
    rebuilt explicitly with refresh_terms() before being read.
    """

    def __init__(self, player: "PlayerTrajectory", day: int, r: float = 0.0, is_anchor: bool = False):
        self.player = player
        self.day = day
        self.r = r
        self.is_anchor = is_anchor
        self.uncertainty = DEFAULT_UNCERTAINTY

        self.won_matches: List[MatchRecord] = []
        self.lost_matches: List[MatchRecord] = []

        self.won_terms: List[LikelihoodTerm] = []
        self.lost_terms: List[LikelihoodTerm] = []

    @property
    def gamma(self) -> float:
        return math.exp(self.r)

    @gamma.setter
    def gamma(self, value: float) -> None:
        self.r = math.log(value)

    @property
    def elo(self) -> float:
        return self.r / LN10_400

    @elo.setter
    def elo(self, value: float) -> None:
        self.r = value * LN10_400

    def add_match(self, match: MatchRecord) -> None:
        """File a match under won or lost for this point's player."""
        if match.is_won_by(self.player):
            self.won_matches.append(match)
        else:
            self.lost_matches.append(match)

    def refresh_terms(self) -> None:
        """Rebuild the Bradley-Terry terms from the opponents' current ratings."""
        won_terms = []
        for match in self.won_matches:
            other_gamma = match.adjusted_opponent_strength(self.player)
            won_terms.append(LikelihoodTerm(1.0, 0.0, 1.0, other_gamma))

        lost_terms = []
        for match in self.lost_matches:
            other_gamma = match.adjusted_opponent_strength(self.player)
            lost_terms.append(LikelihoodTerm(0.0, other_gamma, 1.0, other_gamma))

        if self.is_anchor:
            won_terms.append(VIRTUAL_WIN)
            lost_terms.append(VIRTUAL_LOSS)

        self.won_terms = won_terms
        self.lost_terms = lost_terms

    def log_likelihood(self) -> float:
        gamma = self.gamma
        tally = 0.0
        for term in self.won_terms:
            # ln(a * gamma) with a = 1 for every won term
            tally += math.log(term.a) + self.r
            tally -= math.log(term.c * gamma + term.d)
        for term in self.lost_terms:
            tally += math.log(term.b)
            tally -= math.log(term.c * gamma + term.d)
        return tally

    def log_likelihood_derivative(self) -> float:
        gamma = self.gamma
        tally = 0.0
        for term in self.won_terms:
            tally += term.c / (term.c * gamma + term.d)
        for term in self.lost_terms:
            tally += term.c / (term.c * gamma + term.d)
        return len(self.won_terms) - gamma * tally

    def log_likelihood_second_derivative(self) -> float:
        gamma = self.gamma
        total = 0.0
        for term in self.won_terms:
            total += (term.c * term.d) / (term.c * gamma + term.d) ** 2
        for term in self.lost_terms:
            total += (term.c * term.d) / (term.c * gamma + term.d) ** 2
        return -gamma * total

    def newton_update_1d(self) -> float:
        """
        Single-variable Newton step on this point's own likelihood.

        Skipped (returns 0.0) when the curvature is too flat to divide by.
        Terms must be fresh.
        """
        dlogp = self.log_likelihood_derivative()
        d2logp = self.log_likelihood_second_derivative()

        if abs(d2logp) < MIN_CURVATURE:
            logger.debug(
                "Skipping 1-D update for %s on day %s (d2logp=%g)",
                self.player.name, self.day, d2logp,
            )
            return 0.0

        dr = dlogp / d2logp
        self.r -= dr
        return abs(dr)

    def __repr__(self) -> str:
        anchor = ", anchor" if self.is_anchor else ""
        return (
            f"RatingPoint(day={self.day}, r={self.r:.4f}, elo={self.elo:.1f}, "
            f"uncertainty={self.uncertainty:.4f}, won={len(self.won_matches)}, "
            f"lost={len(self.lost_matches)}{anchor})"
        )
