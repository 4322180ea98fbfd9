"""
Tanh-Sinh Integration Driver

This module provides the adaptive double-exponential quadrature of a
function over the open interval (-1, 1):

    I = ∫ f(x) dx,  x = tanh(pi/2 * sinh(t))

Key features:
- Step halving that reuses every previously evaluated sample
- Endpoint clipping through per-side minimum complements
- Relative stopping rule error <= tolerance * L1 after at least 4 levels
- Samples are handed to the integrand together with their distance to
  the nearer endpoint, so ``1 - |x|`` never has to be recomputed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .numeric import RealType, get_real_type
from .table import AbscissaTable

logger = logging.getLogger(__name__)

# Levels always processed before the stopping rule is consulted. A flat
# integrand with a narrow spike between the coarse samples would
# otherwise look converged straight away.
MIN_REFINEMENTS = 4

DEFAULT_MAX_REFINEMENTS = 15
DEFAULT_INITIAL_COMMIT = 4

Integrand = Callable[[Any, Any], Any]


class EvaluationError(ArithmeticError):
    """The running estimate became non-finite.

    Usually the integrand diverges or is undefined near one of the sampled
    points. Narrowing the interval or raising the minimum complements
    excludes the offending neighbourhood.

    Attributes:
        label: Diagnostic label passed to ``integrate``
        value: The non-finite estimate
    """

    def __init__(self, label: str, value: Any) -> None:
        self.label = label
        self.value = value
        super().__init__(
            f"{label}: the tanh-sinh quadrature evaluated the function at a singular "
            f"point and got {value}. Please narrow the bounds of integration or "
            f"check the function for singularities."
        )


@dataclass
class TanhSinhParameters:
    """Configuration of a tanh-sinh integrator.

    Attributes:
        tolerance: Relative error target (default: sqrt of the type's epsilon)
        max_refinements: Deepest refinement level (bounds worst-case cost)
        initial_commit: Levels computed eagerly at construction
        real_type: Numeric type specification (see ``get_real_type``)
    """
    tolerance: Optional[float] = None
    max_refinements: int = DEFAULT_MAX_REFINEMENTS
    initial_commit: int = DEFAULT_INITIAL_COMMIT
    real_type: Any = "float64"

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.max_refinements < 0:
            raise ValueError(f"max_refinements must be >= 0, got {self.max_refinements}")
        if self.initial_commit < 0:
            raise ValueError(f"initial_commit must be >= 0, got {self.initial_commit}")
        if self.tolerance is not None and not self.tolerance > 0:
            raise ValueError(f"tolerance must be > 0, got {self.tolerance}")
        self.real_type = get_real_type(self.real_type)


@dataclass
class LevelEstimate:
    """Running state after one refinement level."""
    level: int
    estimate: Any
    error: Any
    l1_norm: Any


@dataclass
class IntegrationResult:
    """Result of a tanh-sinh integration.

    Attributes:
        value: Estimate of the integral over (-1, 1)
        error: |difference| between the last two level estimates
        l1_norm: Estimate of the integral of |f|
        levels: Number of refinement levels processed after level 0
        evaluations: Number of integrand calls
        converged: Whether error <= tolerance * l1_norm at termination
        history: Per-level estimates, level 0 first
    """
    value: Any
    error: Any
    l1_norm: Any
    levels: int
    evaluations: int
    converged: bool
    history: list[LevelEstimate] = field(default_factory=list)

    def __float__(self) -> float:
        return float(self.value)


class TanhSinh:
    """Tanh-sinh quadrature over (-1, 1).

    The integrator owns its abscissa table; build one per tolerance and
    numeric type and reuse it, the table is extended on demand and kept.

    Args:
        tolerance: Relative error target (default: sqrt of the type's epsilon)
        max_refinements: Deepest refinement level
        initial_commit: Levels computed eagerly at construction
        real_type: Numeric type specification
    """

    def __init__(self, tolerance=None,
                 max_refinements: int = DEFAULT_MAX_REFINEMENTS,
                 initial_commit: int = DEFAULT_INITIAL_COMMIT,
                 real_type: Any = "float64") -> None:
        params = TanhSinhParameters(
            tolerance=tolerance,
            max_refinements=max_refinements,
            initial_commit=initial_commit,
            real_type=real_type,
        )
        rt: RealType = params.real_type
        self.params = params
        self.real_type = rt
        self.tolerance = rt.sqrt(rt.epsilon) if tolerance is None else rt.cast(tolerance)
        self.table = AbscissaTable(
            rt,
            max_refinements=max(max_refinements, MIN_REFINEMENTS),
            initial_commit=initial_commit,
        )
        self.max_refinements = self.table.max_refinements

    @classmethod
    def from_parameters(cls, params: TanhSinhParameters) -> "TanhSinh":
        return cls(
            tolerance=params.tolerance,
            max_refinements=params.max_refinements,
            initial_commit=params.initial_commit,
            real_type=params.real_type,
        )

    def _complement(self, row, first_complement: int, j: int):
        """Distance to the endpoint of the j-th entry of a row."""
        if j >= first_complement:
            return -row[j]
        return self.real_type.one - row[j]

    def integrate(self, f: Integrand,
                  label: str = "TanhSinh.integrate",
                  left_min_complement=None,
                  right_min_complement=None) -> IntegrationResult:
        """Integrate ``f`` over (-1, 1).

        Args:
            f: Integrand called as ``f(x, xc)`` where ``xc = 1 - |x|`` is the
               distance from x to the nearer endpoint
            label: Name reported in errors and log records
            left_min_complement: Closest distance to -1 at which f may be
                                 evaluated (default: epsilon)
            right_min_complement: Closest distance to +1 at which f may be
                                  evaluated (default: epsilon)

        Returns:
            IntegrationResult with the estimate, error and L1 norm

        Raises:
            EvaluationError: If the running estimate becomes non-finite
        """
        rt = self.real_type
        table = self.table
        left_min = rt.epsilon if left_min_complement is None else rt.cast(left_min_complement)
        right_min = rt.epsilon if right_min_complement is None else rt.cast(right_min_complement)
        one = rt.one
        zero = rt.zero
        evaluations = 0

        # max_*_position is the logical index (on the current level's full
        # grid) of the outermost sample that may be evaluated on that side.
        # max_*_index is the matching position in the stored row, which
        # holds only odd logical indices for levels >= 1.
        row0 = table.row(0)
        weights0 = table.weight_row(0)
        first0 = table.first_complement_index(0)
        max_left_position = len(row0) - 1
        max_right_position = max_left_position
        while max_left_position and self._complement(row0, first0, max_left_position) < left_min:
            max_left_position -= 1
        while max_right_position and self._complement(row0, first0, max_right_position) < right_min:
            max_right_position -= 1

        # Level 0: the centre first, then mirrored pairs.
        y0 = f(zero, one)
        evaluations += 1
        I1 = weights0[0] * y0
        L1_I1 = abs(I1)
        for i in range(1, len(row0)):
            if i > max_right_position and i > max_left_position:
                break
            if i >= first0:
                xc = -row0[i]
                x = one - xc
            else:
                x = row0[i]
                xc = one - x
            w = weights0[i]
            yp = zero
            ym = zero
            if i <= max_right_position:
                yp = f(x, xc)
                evaluations += 1
            if i <= max_left_position:
                ym = f(-x, xc)
                evaluations += 1
            I1 += (yp + ym) * w
            L1_I1 += (abs(yp) + abs(ym)) * w

        history = [LevelEstimate(0, I1, None, L1_I1)]
        h = table.t_max / table.initial_row_length
        err = zero
        level = 0
        last_level = max(self.max_refinements, MIN_REFINEMENTS)

        while level < last_level:
            level += 1
            I0 = I1
            I1 = I0 / 2
            L1_I1 = L1_I1 / 2
            h = h / 2

            row = table.row(level)
            weights = table.weight_row(level)
            first_complement = table.first_complement_index(level)

            # The previous outermost positions double on the finer grid. The
            # new odd sample just outside them is the only one whose status
            # is unknown, so a single comparison per side decides it.
            max_left_index = max_left_position - 1
            max_left_position *= 2
            max_right_index = max_right_position - 1
            max_right_position *= 2
            if (len(row) > max_left_index + 1
                    and self._complement(row, first_complement, max_left_index + 1) >= left_min):
                max_left_position += 1
                max_left_index += 1
            if (len(row) > max_right_index + 1
                    and self._complement(row, first_complement, max_right_index + 1) >= right_min):
                max_right_position += 1
                max_right_index += 1

            total = zero
            abs_total = zero
            for j in range(len(weights)):
                if j > max_left_index and j > max_right_index:
                    break
                if j >= first_complement:
                    assert row[j] <= 0, "complement-encoded entry must be non-positive"
                    xc = -row[j]
                    x = one - xc
                else:
                    assert row[j] >= 0, "direct abscissa entry must be non-negative"
                    x = row[j]
                    xc = one - x
                w = weights[j]
                yp = zero
                ym = zero
                if j <= max_right_index:
                    yp = f(x, xc)
                    evaluations += 1
                if j <= max_left_index:
                    ym = f(-x, xc)
                    evaluations += 1
                total += (yp + ym) * w
                abs_total += (abs(yp) + abs(ym)) * w

            I1 += total * h
            L1_I1 += abs_total * h
            err = abs(I0 - I1)
            history.append(LevelEstimate(level, I1, err, L1_I1))
            logger.debug("%s: level %d estimate=%s error=%s L1=%s",
                         label, level, I1, err, L1_I1)

            if not rt.isfinite(I1):
                raise EvaluationError(label, I1)

            if level >= MIN_REFINEMENTS and err <= self.tolerance * L1_I1:
                break

        converged = bool(err <= self.tolerance * L1_I1)
        if not converged:
            logger.debug("%s: stopped at level %d without meeting tolerance "
                         "(error=%s, L1=%s)", label, level, err, L1_I1)

        return IntegrationResult(
            value=I1,
            error=err,
            l1_norm=L1_I1,
            levels=level,
            evaluations=evaluations,
            converged=converged,
            history=history,
        )

    def __repr__(self) -> str:
        return (f"TanhSinh(tolerance={self.tolerance}, max_refinements={self.max_refinements}, "
                f"real_type={self.real_type.name!r})")


def tanh_sinh(f: Integrand, tolerance=None,
              max_refinements: int = DEFAULT_MAX_REFINEMENTS,
              initial_commit: int = DEFAULT_INITIAL_COMMIT,
              real_type: Any = "float64",
              **kwargs) -> IntegrationResult:
    """One-shot tanh-sinh integration over (-1, 1).

    Builds a throw-away integrator; prefer a long-lived ``TanhSinh`` when
    integrating many functions.

    Args:
        f: Integrand ``f(x, xc)``
        tolerance: Relative error target
        max_refinements: Deepest refinement level
        initial_commit: Levels computed eagerly at construction
        real_type: Numeric type specification
        **kwargs: Forwarded to ``TanhSinh.integrate``

    Returns:
        IntegrationResult
    """
    integrator = TanhSinh(tolerance=tolerance, max_refinements=max_refinements,
                          initial_commit=initial_commit, real_type=real_type)
    return integrator.integrate(f, **kwargs)
