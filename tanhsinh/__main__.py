"""
Tanh-Sinh CLI Entry Point

Run with: python -m tanhsinh [options]
"""

import argparse
import logging
import sys
from pathlib import Path
import time

from .integrate import TanhSinh, TanhSinhParameters, EvaluationError
from .integrands import get_integrand_names
from .experiments import (
    run_integrand,
    run_suite,
    run_tolerance_sweep,
    compare_precomputed_table,
)
from .plot import plot_convergence_history, plot_table_layout, plot_tolerance_sweep
from .report import generate_report, save_results_json


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tanhsinh",
        description="Tanh-sinh (double exponential) quadrature over (-1, 1)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Integrator configuration
    parser.add_argument("--tol", type=float, default=None,
                        help="Relative tolerance (default: sqrt of the type's epsilon)")
    parser.add_argument("--max-refinements", type=int, default=15,
                        help="Deepest refinement level")
    parser.add_argument("--initial-commit", type=int, default=4,
                        help="Refinement levels computed at construction")
    parser.add_argument("--dtype", type=str, default="float64",
                        help="Numeric type: float16, float32, float64, longdouble or mpmath:<digits>")

    # What to run
    parser.add_argument("--integrand", type=str, default="quadratic",
                        choices=get_integrand_names(),
                        help="Reference integrand for a single run")
    parser.add_argument("--suite", action="store_true",
                        help="Run every reference integrand")
    parser.add_argument("--sweep", action="store_true",
                        help="Run tolerance sweeps")
    parser.add_argument("--compare-tables", action="store_true",
                        help="Check the precomputed float32 levels against the formula")

    # Output
    parser.add_argument("--outdir", type=str, default="outputs",
                        help="Output directory for plots and results")
    parser.add_argument("--no-plots", action="store_true",
                        help="Skip figure generation")
    parser.add_argument("--show", action="store_true",
                        help="Display plots interactively")
    parser.add_argument("--quiet", action="store_true",
                        help="Suppress progress output")
    parser.add_argument("--verbose", action="store_true",
                        help="Log every refinement level")

    return parser.parse_args(argv)


def build_params(args: argparse.Namespace) -> TanhSinhParameters:
    return TanhSinhParameters(
        tolerance=args.tol,
        max_refinements=args.max_refinements,
        initial_commit=args.initial_commit,
        real_type=args.dtype,
    )


def run_single(args: argparse.Namespace) -> None:
    """Integrate one reference integrand."""
    params = build_params(args)
    integrator = TanhSinh.from_parameters(params)

    if not args.quiet:
        print(f"Integrating {args.integrand} with {integrator}")

    diag = run_integrand(args.integrand, integrator=integrator)

    print(f"\nResult:")
    print(f"  Estimate        = {diag.result.value}")
    print(f"  Exact           = {diag.exact!r}")
    print(f"  Abs. error      = {diag.abs_error:.3e}")
    print(f"  Error estimate  = {float(diag.result.error):.3e}")
    print(f"  L1 norm         = {float(diag.result.l1_norm):.6e}")
    print(f"  Levels          = {diag.result.levels}")
    print(f"  Evaluations     = {diag.result.evaluations}")
    print(f"  Converged       = {diag.result.converged}")

    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    if not args.no_plots:
        plot_convergence_history(diag, outdir, show=args.show)
        plot_table_layout(integrator.table, outdir=outdir, show=args.show)

    suite = {args.integrand: diag}
    generate_report(suite, None, None, params, outdir)
    save_results_json(suite, None, None, params, outdir)

    if not args.quiet:
        print(f"Outputs written to {outdir}")


def run_experiments(args: argparse.Namespace) -> None:
    """Run the suite, tolerance sweeps and table check as requested."""
    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    params = build_params(args)

    start_time = time.time()

    suite_results = {}
    if args.suite:
        if not args.quiet:
            print("=" * 60)
            print(f"Running reference integrands ({params.real_type.name})...")
            print("=" * 60)
        suite_results = run_suite(params)

        print("\nIntegrand Results:")
        print("-" * 60)
        for name, diag in suite_results.items():
            status = "OK" if diag.within_tolerance else "CHECK"
            print(f"  {name:20s}: I = {float(diag.result.value): .15e}  "
                  f"err = {diag.abs_error:.2e}  levels = {diag.result.levels:2d}  [{status}]")

    sweep_results = None
    if args.sweep:
        if not args.quiet:
            print("\n" + "=" * 60)
            print("Running tolerance sweeps...")
            print("=" * 60)
        sweep_results = [
            run_tolerance_sweep(name, base_params=params)
            for name in ("quadratic", "chebyshev_weight", "log_endpoint")
        ]

    table_comparison = None
    if args.compare_tables:
        if not args.quiet:
            print("\n" + "=" * 60)
            print("Comparing precomputed float32 levels with float64 formula...")
            print("=" * 60)
        table_comparison = compare_precomputed_table()
        print(f"  Worst relative difference: {table_comparison.worst_rel_diff:.3e}")
        if not all(table_comparison.first_complements_match):
            print("  WARNING: first-complement indices disagree")

    if not args.no_plots:
        for diag in suite_results.values():
            plot_convergence_history(diag, outdir, show=False)
        if sweep_results:
            plot_tolerance_sweep(sweep_results, outdir, show=False)

    generate_report(suite_results, sweep_results, table_comparison, params, outdir)
    save_results_json(suite_results, sweep_results, table_comparison, params, outdir)

    elapsed = time.time() - start_time

    print(f"\nCompleted in {elapsed:.1f} seconds")
    print(f"Results saved to: {outdir.absolute()}")
    print(f"  - report.md")
    print(f"  - results.json")

    if args.show:
        import matplotlib.pyplot as plt
        plt.show()


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        if args.suite or args.sweep or args.compare_tables:
            run_experiments(args)
        else:
            run_single(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except EvaluationError as e:
        print(f"Evaluation failed: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
