"""Count-data distributions for match totals.

Every function here is **pure**.  Two families are provided:

* **Poisson**: total goals.  Goals are rare, roughly independent events, so
  the variance-equals-mean assumption holds well for full-match totals.
* **Negative binomial**: corners and cards.  These are overdispersed
  (variance > mean) because referee style and game state cluster events;
  the dispersion parameter ``r`` controls the excess variance and the
  distribution converges to Poisson as ``r → ∞``.

PMFs are evaluated in log space, ``exp(−λ + k·ln λ − ln k!)``, so large
``k`` never overflows a factorial.

Run tests with::

    pytest tests/test_count_models.py -v
"""

from __future__ import annotations

import math

from scipy.special import gammaln


def log_factorial(n: int) -> float:
    """``ln(n!)`` for a non-negative integer ``n`` (0 for ``n ≤ 1``)."""
    if n <= 1:
        return 0.0
    return float(gammaln(n + 1))


# ---------------------------------------------------------------------------
# Poisson
# ---------------------------------------------------------------------------


def poisson_pmf(lam: float, k: int) -> float:
    """``P(X = k)`` for ``X ~ Poisson(lam)``.

    ``lam ≤ 0`` degenerates to a point mass at 0.
    """
    if k < 0:
        return 0.0
    if lam <= 0.0:
        return 1.0 if k == 0 else 0.0
    return math.exp(-lam + k * math.log(lam) - log_factorial(k))


def poisson_cdf(lam: float, k: int) -> float:
    """``P(X ≤ k)`` for ``X ~ Poisson(lam)``, summed term by term.

    Non-decreasing in ``k``, tends to 1, and ``poisson_cdf(0, 0) == 1``.
    Clipped at 1.0 against floating-point accumulation.
    """
    if k < 0:
        return 0.0
    total = 0.0
    for i in range(int(k) + 1):
        total += poisson_pmf(lam, i)
    return min(1.0, total)


# ---------------------------------------------------------------------------
# Negative binomial (mean / dispersion parameterisation)
# ---------------------------------------------------------------------------


def negbin_pmf(mu: float, r: float, k: int) -> float:
    """``P(X = k)`` for a negative binomial with mean ``mu``, dispersion ``r``.

    With ``p = r / (r + mu)``::

        P(X = k) = Γ(r + k) / (Γ(k + 1) Γ(r)) · p^r · (1 − p)^k

    Variance is ``mu + mu² / r``.  ``mu ≤ 0`` degenerates to a point mass
    at 0.

    Raises:
        ValueError: If ``r ≤ 0``.
    """
    if r <= 0.0:
        raise ValueError(f"Dispersion r must be positive, got {r!r}.")
    if k < 0:
        return 0.0
    if mu <= 0.0:
        return 1.0 if k == 0 else 0.0
    p = r / (r + mu)
    log_coeff = gammaln(r + k) - gammaln(k + 1) - gammaln(r)
    return math.exp(float(log_coeff) + r * math.log(p) + k * math.log1p(-p))


def negbin_cdf(mu: float, r: float, k: int) -> float:
    """``P(X ≤ k)`` for the negative binomial of :func:`negbin_pmf`."""
    if k < 0:
        return 0.0
    total = 0.0
    for i in range(int(k) + 1):
        total += negbin_pmf(mu, r, i)
    return min(1.0, total)


# ---------------------------------------------------------------------------
# Over / under helpers
# ---------------------------------------------------------------------------


def goals_at_or_under(line: float) -> int:
    """Largest integer count that settles *under* ``line``.

    Only half-integer lines (0.5, 1.5, 2.5, …) are meaningful for a two-way
    over/under market: ``floor(2.5) == 2`` goals or fewer is an under.
    """
    return math.floor(line)
