"""
Tanh-Sinh Experiments

This module runs the integrator against the reference integrands and
checks the precomputed single-precision levels.

Experiments include:
- Accuracy of every catalogued integrand at a given configuration
- Tolerance sweeps (requested tolerance vs achieved error and cost)
- Agreement of the literal float32 levels with the row formula in float64
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import logging
import numpy as np
from numpy.typing import NDArray

from . import _float32_table
from .integrands import get_integrand, get_integrand_names
from .integrate import TanhSinh, TanhSinhParameters, IntegrationResult
from .numeric import NumpyReal, RealType
from .rows import abscissa_at_t, weight_at_t, abscissa_complement_at_t, t_from_abscissa_complement

logger = logging.getLogger(__name__)


@dataclass
class IntegrandDiagnostics:
    """Accuracy of one integrand under one configuration."""
    name: str
    description: str
    real_type: str
    result: IntegrationResult
    exact: float
    abs_error: float
    rel_error: float
    within_tolerance: bool


@dataclass
class ToleranceSweepResult:
    """Result of a tolerance sweep for one integrand."""
    name: str
    tolerances: NDArray[np.float64]
    abs_errors: NDArray[np.float64]
    error_estimates: NDArray[np.float64]
    levels: NDArray[np.int64]
    evaluations: NDArray[np.int64]


@dataclass
class TableComparison:
    """Agreement of the literal float32 levels with the formula in float64."""
    levels: list[int]
    row_lengths: list[int]
    max_abscissa_rel_diff: NDArray[np.float64]
    max_weight_rel_diff: NDArray[np.float64]
    first_complements_match: list[bool]

    @property
    def worst_rel_diff(self) -> float:
        return float(max(self.max_abscissa_rel_diff.max(), self.max_weight_rel_diff.max()))


def _min_complement(rt: RealType, value: Optional[float]):
    """Cast a catalogued minimum complement, dropping it if it underflows."""
    if value is None:
        return None
    cast = rt.cast(value)
    return cast if cast > 0 else None


def run_integrand(name: str,
                  params: Optional[TanhSinhParameters] = None,
                  integrator: Optional[TanhSinh] = None) -> IntegrandDiagnostics:
    """Integrate one catalogued integrand and compare with its exact value.

    Args:
        name: Catalogued integrand name
        params: Integrator configuration (ignored if ``integrator`` is given)
        integrator: Optional integrator to reuse

    Returns:
        IntegrandDiagnostics
    """
    spec = get_integrand(name)
    if integrator is None:
        integrator = TanhSinh.from_parameters(params or TanhSinhParameters())
    rt = integrator.real_type

    result = integrator.integrate(
        spec.bind(rt),
        label=name,
        left_min_complement=_min_complement(rt, spec.left_min_complement),
        right_min_complement=_min_complement(rt, spec.right_min_complement),
    )

    abs_error = abs(float(result.value) - spec.exact)
    rel_error = abs_error / abs(spec.exact) if spec.exact != 0 else abs_error
    # Judge against the same relative rule the integrator stops on.
    within = abs_error <= float(integrator.tolerance) * max(float(result.l1_norm), 1.0)

    return IntegrandDiagnostics(
        name=name,
        description=spec.description,
        real_type=rt.name,
        result=result,
        exact=spec.exact,
        abs_error=abs_error,
        rel_error=rel_error,
        within_tolerance=within,
    )


def run_suite(params: Optional[TanhSinhParameters] = None,
              names: Optional[Iterable[str]] = None) -> dict[str, IntegrandDiagnostics]:
    """Run every catalogued integrand with one shared integrator.

    Args:
        params: Integrator configuration
        names: Optional subset of integrand names

    Returns:
        Dictionary mapping integrand name to diagnostics
    """
    integrator = TanhSinh.from_parameters(params or TanhSinhParameters())
    results = {}
    for name in (names if names is not None else get_integrand_names()):
        results[name] = run_integrand(name, integrator=integrator)
        logger.debug("%s: value=%s abs_error=%.3e levels=%d", name,
                     results[name].result.value, results[name].abs_error,
                     results[name].result.levels)
    return results


def run_tolerance_sweep(name: str,
                        tolerances: Optional[list[float]] = None,
                        base_params: Optional[TanhSinhParameters] = None) -> ToleranceSweepResult:
    """Integrate one integrand at a range of tolerances.

    Args:
        name: Catalogued integrand name
        tolerances: Tolerances to test (default: 1e-4 ... 1e-14)
        base_params: Base configuration (tolerance will be varied)

    Returns:
        ToleranceSweepResult with data
    """
    if tolerances is None:
        tolerances = [1e-4, 1e-6, 1e-8, 1e-10, 1e-12, 1e-14]
    if base_params is None:
        base_params = TanhSinhParameters()

    abs_errors = np.zeros(len(tolerances))
    error_estimates = np.zeros(len(tolerances))
    levels = np.zeros(len(tolerances), dtype=np.int64)
    evaluations = np.zeros(len(tolerances), dtype=np.int64)

    for i, tol in enumerate(tolerances):
        test_params = TanhSinhParameters(
            tolerance=tol,
            max_refinements=base_params.max_refinements,
            initial_commit=base_params.initial_commit,
            real_type=base_params.real_type,
        )
        diag = run_integrand(name, test_params)
        abs_errors[i] = diag.abs_error
        error_estimates[i] = float(diag.result.error)
        levels[i] = diag.result.levels
        evaluations[i] = diag.result.evaluations

    return ToleranceSweepResult(
        name=name,
        tolerances=np.array(tolerances, dtype=float),
        abs_errors=abs_errors,
        error_estimates=error_estimates,
        levels=levels,
        evaluations=evaluations,
    )


def _reference_level(level: int, t_max, t_crossover, rt: RealType):
    """Formula-derived level laid out like the literal float32 block."""
    if level == 0:
        grid = np.append(rt.positions(0, t_max, 1), t_max)
    else:
        h = rt.ldexp(1, -level)
        grid = rt.positions(h, t_max, 2 * h)
    first_complement = rt.count_below(grid, t_crossover)
    row = rt.concat(
        rt.apply(abscissa_at_t, grid[:first_complement]),
        rt.apply(lambda t, p: -abscissa_complement_at_t(t, p), grid[first_complement:]),
    )
    weights = rt.apply(weight_at_t, grid)
    return row, weights, first_complement


def _max_rel_diff(approx: NDArray, reference: NDArray) -> float:
    approx = np.asarray(approx, dtype=np.float64)
    reference = np.asarray(reference, dtype=np.float64)
    scale = np.maximum(np.abs(reference), np.finfo(np.float32).tiny)
    return float(np.max(np.abs(approx - reference) / scale))


def compare_precomputed_table(levels: int = len(_float32_table.ABSCISSAS)) -> TableComparison:
    """Check the literal float32 levels against the row formula in float64.

    Args:
        levels: Number of literal levels to compare

    Returns:
        TableComparison with per-level maximum relative differences
    """
    rt = NumpyReal(np.float64)
    t_max = rt.cast(len(_float32_table.ABSCISSAS[0]) - 1)
    t_crossover = t_from_abscissa_complement(0.5, rt)

    compared = list(range(min(levels, len(_float32_table.ABSCISSAS))))
    row_lengths = []
    abscissa_diffs = np.zeros(len(compared))
    weight_diffs = np.zeros(len(compared))
    matches = []

    for i, level in enumerate(compared):
        row, weights, first_complement = _reference_level(level, t_max, t_crossover, rt)
        literal_row = np.asarray(_float32_table.ABSCISSAS[level], dtype=np.float32)
        literal_weights = np.asarray(_float32_table.WEIGHTS[level], dtype=np.float32)
        row_lengths.append(len(literal_row))
        if len(row) != len(literal_row):
            raise ValueError(
                f"level {level}: literal row has {len(literal_row)} entries, formula gives {len(row)}")
        abscissa_diffs[i] = _max_rel_diff(literal_row, row)
        weight_diffs[i] = _max_rel_diff(literal_weights, weights)
        matches.append(_float32_table.FIRST_COMPLEMENTS[level] == first_complement)

    return TableComparison(
        levels=compared,
        row_lengths=row_lengths,
        max_abscissa_rel_diff=abscissa_diffs,
        max_weight_rel_diff=weight_diffs,
        first_complements_match=matches,
    )
