"""Exceptions raised by the rating model."""


class WHRError(Exception):
    """Base class for all Whole History Rating errors."""


class InstabilityError(WHRError, ArithmeticError):
    """
    The posterior has become numerically degenerate.

    Raised when a Newton update would push a natural rating beyond the safe
    range, or when a match's adjusted opponent strength is zero or not
    finite. Not retried: callers may stop iterating or widen the prior.
    """


class InvalidInputError(WHRError, ValueError):
    """A match or game description that can never be evaluated."""
