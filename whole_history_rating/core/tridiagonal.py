"""Tridiagonal LU factorisation, solve and inverse-diagonal extraction."""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ._numba_core import inverse_diagonals, lu_solve, tridiagonal_lu


def _as_float_array(values) -> np.ndarray:
    return np.ascontiguousarray(values, dtype=np.float64)


@dataclass
class TridiagonalSolver:
    """
    Thomas-algorithm solver for a tridiagonal matrix.

    The matrix is given by its three bands. ``upper`` defaults to ``lower``
    (symmetric matrix), which is the shape of a log-posterior Hessian.

    Example:
        >>> solver = TridiagonalSolver(diag, off_diag)
        >>> x = solver.solve(gradient)
        >>> variances, covariances = solver.inverse_diagonals()
    """

    diag: np.ndarray
    lower: np.ndarray
    upper: Optional[np.ndarray] = None

    def __post_init__(self):
        self.diag = _as_float_array(self.diag)
        self.lower = _as_float_array(self.lower)
        self.upper = self.lower if self.upper is None else _as_float_array(self.upper)

        n = len(self.diag)
        expected = max(n - 1, 0)
        if len(self.lower) != expected or len(self.upper) != expected:
            raise ValueError(
                f"Off-diagonals must have length {expected} for a {n}x{n} matrix, "
                f"got lower={len(self.lower)}, upper={len(self.upper)}"
            )

        self._factors: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None

    @property
    def size(self) -> int:
        return len(self.diag)

    @property
    def factors(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """LU factors (a, d, b): multipliers, pivots, super-diagonal of U."""
        if self._factors is None:
            self._factors = tridiagonal_lu(self.diag, self.lower, self.upper)
        return self._factors

    def solve(self, rhs) -> np.ndarray:
        """Solve ``H x = rhs``."""
        rhs = _as_float_array(rhs)
        if len(rhs) != self.size:
            raise ValueError(f"Right-hand side has length {len(rhs)}, expected {self.size}")
        a, d, b = self.factors
        return lu_solve(a, d, b, rhs)

    def inverse_diagonals(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Diagonal and super-diagonal of ``-H^-1``.

        For a negative-definite Hessian these are the approximate posterior
        variances and neighbouring covariances.
        """
        return inverse_diagonals(self.diag, self.lower, self.upper)

    def to_dense(self) -> np.ndarray:
        """Dense copy of the matrix (debugging and tests)."""
        n = self.size
        dense = np.zeros((n, n), dtype=np.float64)
        dense[np.arange(n), np.arange(n)] = self.diag
        if n > 1:
            idx = np.arange(n - 1)
            dense[idx + 1, idx] = self.lower
            dense[idx, idx + 1] = self.upper
        return dense
