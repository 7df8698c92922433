"""
Numba-accelerated tridiagonal kernels for the per-player Newton solver.

A player's Hessian is tridiagonal (Wiener process prior is Markov), so
every linear-algebra step of the optimiser runs in O(n):

- tridiagonal_lu: forward elimination producing the LU factors
- lu_solve: forward substitution (L y = rhs) then back substitution (U x = y)
- inverse_diagonals: diagonal and first off-diagonal of -H^-1, from one
  forward and one reverse elimination

Array conventions for an n x n tridiagonal matrix:
- diag[n]: main diagonal
- lower[n - 1]: sub-diagonal, lower[i] = H[i + 1][i]
- upper[n - 1]: super-diagonal, upper[i] = H[i][i + 1]

LU factors:
- a[n]: unit-lower multipliers, a[i] = H[i][i - 1] / d[i - 1] (a[0] unused)
- d[n]: pivots
- b[n]: super-diagonal of U (b[n - 1] unused)
"""

import math

import numpy as np
from numba import njit

# Conversion constant: r = elo * LN10_400
LN10_400 = math.log(10) / 400.0


@njit(cache=True, fastmath=True)
def tridiagonal_lu(diag: np.ndarray, lower: np.ndarray, upper: np.ndarray):
    """
    LU (Thomas) decomposition of a tridiagonal matrix.

    Returns (a, d, b). No pivoting: the matrix is expected to be
    diagonally dominant or definite, which holds for a regularised
    log-posterior Hessian.
    """
    n = diag.shape[0]
    a = np.zeros(n, dtype=np.float64)
    d = np.zeros(n, dtype=np.float64)
    b = np.zeros(n, dtype=np.float64)

    if n == 0:
        return a, d, b

    d[0] = diag[0]
    if n > 1:
        b[0] = upper[0]

    for i in range(1, n):
        a[i] = lower[i - 1] / d[i - 1]
        d[i] = diag[i] - a[i] * b[i - 1]
        if i < n - 1:
            b[i] = upper[i]

    return a, d, b


@njit(cache=True, fastmath=True)
def lu_solve(a: np.ndarray, d: np.ndarray, b: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve H x = rhs given the LU factors of H."""
    n = d.shape[0]
    x = np.zeros(n, dtype=np.float64)

    if n == 0:
        return x

    # Forward substitution: L y = rhs
    y = np.empty(n, dtype=np.float64)
    y[0] = rhs[0]
    for i in range(1, n):
        y[i] = rhs[i] - a[i] * y[i - 1]

    # Back substitution: U x = y
    x[n - 1] = y[n - 1] / d[n - 1]
    for i in range(n - 2, -1, -1):
        x[i] = (y[i] - b[i] * x[i + 1]) / d[i]

    return x


@njit(cache=True, fastmath=True)
def inverse_diagonals(diag: np.ndarray, lower: np.ndarray, upper: np.ndarray):
    """
    Diagonal and super-diagonal of -H^-1 for a tridiagonal H.

    Combines the forward LU pivots with a second elimination run from the
    bottom row up (pivots dp, sub-diagonal bp). For a negative-definite
    Hessian the returned variances are positive.

    Returns (variances[n], covariances[n - 1]) where covariances[i] is the
    (i, i + 1) entry.
    """
    n = diag.shape[0]
    variances = np.zeros(n, dtype=np.float64)
    covariances = np.zeros(max(n - 1, 0), dtype=np.float64)

    if n == 0:
        return variances, covariances

    a, d, b = tridiagonal_lu(diag, lower, upper)

    # Reverse elimination
    dp = np.zeros(n, dtype=np.float64)
    bp = np.zeros(n, dtype=np.float64)
    dp[n - 1] = diag[n - 1]
    if n > 1:
        bp[n - 1] = lower[n - 2]
    for i in range(n - 2, -1, -1):
        ap = upper[i] / dp[i + 1]
        dp[i] = diag[i] - ap * bp[i + 1]
        if i > 0:
            bp[i] = lower[i - 1]

    for i in range(n - 1):
        variances[i] = dp[i + 1] / (b[i] * bp[i + 1] - d[i] * dp[i + 1])
    variances[n - 1] = -1.0 / d[n - 1]

    for i in range(n - 1):
        covariances[i] = -a[i + 1] * variances[i + 1]

    return variances, covariances
