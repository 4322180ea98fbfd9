"""
Tanh-Sinh Report Generation

This module generates markdown and JSON summaries of quadrature runs.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import json

from .integrate import TanhSinhParameters
from .experiments import IntegrandDiagnostics, ToleranceSweepResult, TableComparison


def generate_report(suite_results: dict[str, IntegrandDiagnostics],
                    sweep_results: Optional[list[ToleranceSweepResult]],
                    table_comparison: Optional[TableComparison],
                    params: TanhSinhParameters,
                    outdir: Path) -> str:
    """Generate the markdown report.

    Args:
        suite_results: Per-integrand diagnostics
        sweep_results: Optional tolerance sweeps
        table_comparison: Optional float32 table check
        params: Integrator configuration used for the suite
        outdir: Output directory for report

    Returns:
        Report content as string
    """
    report = []

    report.append("# Tanh-Sinh Quadrature Report")
    report.append("")
    report.append(f"*Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}*")
    report.append("")

    report.append("## Method")
    report.append("")
    report.append("$$\\int_{-1}^{1} f(x)\\,dx = \\int_{-\\infty}^{\\infty} f(x(t))\\,x'(t)\\,dt, "
                  "\\quad x(t) = \\tanh\\left(\\tfrac{\\pi}{2}\\sinh t\\right)$$")
    report.append("")
    report.append("The step in $t$ is halved at every level, reusing all earlier samples. "
                  "Refinement stops after at least 4 levels once "
                  "$|I_k - I_{k-1}| \\le \\mathrm{tol} \\cdot L_1$.")
    report.append("")

    report.append("## Parameters Used")
    report.append("")
    report.append("| Parameter | Value |")
    report.append("|-----------|-------|")
    report.append(f"| numeric type | {params.real_type.name} |")
    tol = params.tolerance if params.tolerance is not None else "sqrt(epsilon)"
    report.append(f"| tolerance | {tol} |")
    report.append(f"| max refinements | {params.max_refinements} |")
    report.append(f"| initial commit | {params.initial_commit} |")
    report.append("")

    if suite_results:
        report.append("## Reference Integrands")
        report.append("")
        report.append("| Integrand | Exact | Estimate | Abs. error | Error estimate | Levels | Evaluations | Status |")
        report.append("|-----------|-------|----------|------------|----------------|--------|-------------|--------|")
        for name, diag in suite_results.items():
            status = "OK" if diag.within_tolerance else "Check"
            report.append(
                f"| {name} (`{diag.description}`) | {diag.exact:.15g} | {float(diag.result.value):.15g} | "
                f"{diag.abs_error:.3e} | {float(diag.result.error):.3e} | {diag.result.levels} | "
                f"{diag.result.evaluations} | {status} |")
        report.append("")

    if sweep_results:
        report.append("## Tolerance Sweeps")
        report.append("")
        for sweep in sweep_results:
            report.append(f"### {sweep.name}")
            report.append("")
            report.append("| Tolerance | Abs. error | Error estimate | Levels | Evaluations |")
            report.append("|-----------|------------|----------------|--------|-------------|")
            for i, tol in enumerate(sweep.tolerances):
                report.append(
                    f"| {tol:.0e} | {sweep.abs_errors[i]:.3e} | {sweep.error_estimates[i]:.3e} | "
                    f"{sweep.levels[i]} | {sweep.evaluations[i]} |")
            report.append("")

    if table_comparison is not None:
        report.append("## Precomputed float32 Levels")
        report.append("")
        report.append("Literal levels compared with the row formula evaluated in float64 "
                      "at the same transform parameters.")
        report.append("")
        report.append("| Level | Entries | Max rel. diff (abscissa) | Max rel. diff (weight) | First complement |")
        report.append("|-------|---------|--------------------------|------------------------|------------------|")
        for i, level in enumerate(table_comparison.levels):
            match = "match" if table_comparison.first_complements_match[i] else "MISMATCH"
            report.append(
                f"| {level} | {table_comparison.row_lengths[i]} | "
                f"{table_comparison.max_abscissa_rel_diff[i]:.2e} | "
                f"{table_comparison.max_weight_rel_diff[i]:.2e} | {match} |")
        report.append("")

    report_content = "\n".join(report)
    report_path = outdir / "report.md"
    report_path.write_text(report_content)

    return report_content


def save_results_json(suite_results: dict[str, IntegrandDiagnostics],
                      sweep_results: Optional[list[ToleranceSweepResult]],
                      table_comparison: Optional[TableComparison],
                      params: TanhSinhParameters,
                      outdir: Path) -> dict:
    """Save numerical results to JSON.

    Returns:
        The dictionary that was written
    """
    results = {
        "parameters": {
            "real_type": params.real_type.name,
            "tolerance": params.tolerance,
            "max_refinements": params.max_refinements,
            "initial_commit": params.initial_commit,
        },
        "integrands": {},
    }

    for name, diag in suite_results.items():
        results["integrands"][name] = {
            "description": diag.description,
            "exact": diag.exact,
            "value": float(diag.result.value),
            "error_estimate": float(diag.result.error),
            "l1_norm": float(diag.result.l1_norm),
            "abs_error": diag.abs_error,
            "levels": diag.result.levels,
            "evaluations": diag.result.evaluations,
            "converged": diag.result.converged,
            "within_tolerance": bool(diag.within_tolerance),
            "history": [
                {
                    "level": step.level,
                    "estimate": float(step.estimate),
                    "error": None if step.error is None else float(step.error),
                }
                for step in diag.result.history
            ],
        }

    if sweep_results:
        results["tolerance_sweeps"] = {
            sweep.name: {
                "tolerances": sweep.tolerances.tolist(),
                "abs_errors": sweep.abs_errors.tolist(),
                "error_estimates": sweep.error_estimates.tolist(),
                "levels": sweep.levels.tolist(),
                "evaluations": sweep.evaluations.tolist(),
            }
            for sweep in sweep_results
        }

    if table_comparison is not None:
        results["float32_table"] = {
            "levels": table_comparison.levels,
            "row_lengths": table_comparison.row_lengths,
            "max_abscissa_rel_diff": table_comparison.max_abscissa_rel_diff.tolist(),
            "max_weight_rel_diff": table_comparison.max_weight_rel_diff.tolist(),
            "first_complements_match": table_comparison.first_complements_match,
            "worst_rel_diff": table_comparison.worst_rel_diff,
        }

    json_path = outdir / "results.json"
    with open(json_path, 'w') as f:
        json.dump(results, f, indent=2)

    return results
