"""Results and fitted model classes."""

from .fitted_ratings import FittedWHRRatings

__all__ = ["FittedWHRRatings"]
