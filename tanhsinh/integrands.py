"""
Reference integrands over (-1, 1) with known integrals.

Each entry takes ``(x, xc, rt)`` with ``xc = 1 - |x|`` and evaluates its
elementary functions through the numeric profile ``rt``, so the same
catalogue runs on numpy dtypes and on mpmath. The set mixes smooth
integrands, odd functions, integrable endpoint singularities and a
narrow interior peak.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional
import math

from .numeric import RealType


@dataclass(frozen=True)
class IntegrandSpec:
    name: str
    func: Callable
    exact: float
    description: str
    left_min_complement: Optional[float] = None
    right_min_complement: Optional[float] = None

    def bind(self, rt: RealType) -> Callable:
        """Integrand ``f(x, xc)`` evaluated in the numeric type ``rt``."""
        func = self.func
        return lambda x, xc: func(x, xc, rt)


def _constant(x, xc, rt):
    return rt.one


def _odd_cubic(x, xc, rt):
    return x * x * x


def _quadratic(x, xc, rt):
    return x * x


def _exponential(x, xc, rt):
    return rt.exp(x)


def _runge(x, xc, rt):
    return 1 / (1 + 25 * x * x)


def _cosine(x, xc, rt):
    return rt.cos(rt.half_pi * x)


def _chebyshev_weight(x, xc, rt):
    # 1 - x^2 = xc * (2 - xc) on either side
    return 1 / rt.sqrt(xc * (2 - xc))


def _semicircle(x, xc, rt):
    return rt.sqrt(xc * (2 - xc))


def _log_endpoint(x, xc, rt):
    # log(1 + x); near -1 the complement is exactly 1 + x
    if x < 0:
        return rt.log(xc)
    return rt.log1p(x)


def _narrow_peak(x, xc, rt):
    z = (x - rt.cast(0.3)) / rt.cast(0.01)
    return rt.exp(-z * z)


INTEGRANDS = {
    spec.name: spec
    for spec in [
        IntegrandSpec("constant", _constant, 2.0, "f(x) = 1"),
        IntegrandSpec("odd_cubic", _odd_cubic, 0.0, "f(x) = x^3"),
        IntegrandSpec("quadratic", _quadratic, 2.0 / 3.0, "f(x) = x^2"),
        IntegrandSpec("exponential", _exponential, 2.0 * math.sinh(1.0), "f(x) = exp(x)"),
        IntegrandSpec("runge", _runge, 0.4 * math.atan(5.0), "f(x) = 1 / (1 + 25 x^2)"),
        IntegrandSpec("cosine", _cosine, 4.0 / math.pi, "f(x) = cos(pi x / 2)"),
        IntegrandSpec("chebyshev_weight", _chebyshev_weight, math.pi,
                      "f(x) = 1 / sqrt(1 - x^2)",
                      left_min_complement=1e-300, right_min_complement=1e-300),
        IntegrandSpec("semicircle", _semicircle, math.pi / 2, "f(x) = sqrt(1 - x^2)"),
        IntegrandSpec("log_endpoint", _log_endpoint, 2.0 * math.log(2.0) - 2.0,
                      "f(x) = log(1 + x)",
                      left_min_complement=1e-300),
        IntegrandSpec("narrow_peak", _narrow_peak, 0.01 * math.sqrt(math.pi),
                      "f(x) = exp(-((x - 0.3) / 0.01)^2)"),
    ]
}


def get_integrand_names() -> List[str]:
    """Return the list of catalogued integrand names."""

    return list(INTEGRANDS)


def get_integrand(name: str) -> IntegrandSpec:
    """Look up a catalogued integrand.

    Raises:
        ValueError: If ``name`` is not catalogued
    """

    if name not in INTEGRANDS:
        valid = ", ".join(INTEGRANDS)
        raise ValueError(f"Unknown integrand '{name}'. Valid: {valid}")
    return INTEGRANDS[name]
