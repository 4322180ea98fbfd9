import json

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from tanhsinh.__main__ import main
from tanhsinh.experiments import (
    compare_precomputed_table,
    run_integrand,
    run_suite,
    run_tolerance_sweep,
)
from tanhsinh.integrands import get_integrand, get_integrand_names
from tanhsinh.integrate import TanhSinh, TanhSinhParameters
from tanhsinh.plot import plot_convergence_history, plot_table_layout, plot_tolerance_sweep
from tanhsinh.report import generate_report, save_results_json


ACCURATE = [
    "constant",
    "odd_cubic",
    "quadratic",
    "exponential",
    "runge",
    "cosine",
    "chebyshev_weight",
    "semicircle",
    "log_endpoint",
]


def test_catalogue_names():
    names = get_integrand_names()
    assert set(ACCURATE) <= set(names)
    assert "narrow_peak" in names


def test_unknown_integrand():
    with pytest.raises(ValueError, match="Unknown integrand"):
        get_integrand("nonexistent")


@pytest.mark.parametrize("name", ACCURATE)
def test_reference_integrands_within_tolerance(name):
    diag = run_integrand(name)
    assert diag.result.converged
    assert diag.within_tolerance, f"{name}: abs error {diag.abs_error:.3e}"
    assert diag.abs_error < 1e-9


def test_odd_integrand_is_zero():
    diag = run_integrand("odd_cubic")
    assert abs(float(diag.result.value)) <= float(TanhSinh().tolerance)


def test_float32_suite_subset():
    params = TanhSinhParameters(real_type="float32")
    results = run_suite(params, names=["constant", "quadratic", "exponential", "semicircle"])
    assert list(results) == ["constant", "quadratic", "exponential", "semicircle"]
    for name, diag in results.items():
        assert diag.real_type == "float32"
        assert diag.rel_error < 1e-3, name


@pytest.mark.parametrize("name", ["exponential", "cosine", "log_endpoint", "narrow_peak"])
def test_catalogue_runs_on_mpmath(name):
    params = TanhSinhParameters(real_type="mpmath:25", max_refinements=10)
    diag = run_integrand(name, params)
    rt = params.real_type
    assert diag.real_type == "mpmath:25"
    assert isinstance(diag.result.value, type(rt.one))
    assert diag.rel_error < 1e-10


def test_narrow_peak_needs_refinement():
    """The peak sits between coarse samples; refinement must find it."""
    diag = run_integrand("narrow_peak")
    assert diag.result.levels > 4
    np.testing.assert_allclose(float(diag.result.value), diag.exact, rtol=1e-6)


def test_tolerance_sweep_cost_grows():
    sweep = run_tolerance_sweep("runge", tolerances=[1e-3, 1e-6, 1e-9])
    assert len(sweep.tolerances) == 3
    assert np.all(np.diff(sweep.evaluations) >= 0)
    assert sweep.abs_errors[-1] < 1e-9


def test_precomputed_table_matches_formula():
    comparison = compare_precomputed_table()
    assert comparison.levels == list(range(8))
    assert comparison.row_lengths == [5, 4, 8, 16, 32, 64, 128, 256]
    assert all(comparison.first_complements_match)
    assert comparison.worst_rel_diff < 1e-4


def test_report_and_json(tmp_path):
    params = TanhSinhParameters()
    suite = run_suite(params, names=["quadratic", "chebyshev_weight"])
    sweep = [run_tolerance_sweep("quadratic", tolerances=[1e-4, 1e-8])]
    comparison = compare_precomputed_table(levels=3)

    content = generate_report(suite, sweep, comparison, params, tmp_path)
    assert "# Tanh-Sinh Quadrature Report" in content
    assert "chebyshev_weight" in content
    assert (tmp_path / "report.md").exists()

    results = save_results_json(suite, sweep, comparison, params, tmp_path)
    written = json.loads((tmp_path / "results.json").read_text())
    assert written["parameters"]["real_type"] == "float64"
    assert set(written["integrands"]) == {"quadratic", "chebyshev_weight"}
    assert written["integrands"]["quadratic"]["history"][0]["error"] is None
    assert written["float32_table"]["levels"] == [0, 1, 2]
    assert results["tolerance_sweeps"]["quadratic"]["tolerances"] == [1e-4, 1e-8]


def test_plots_are_saved(tmp_path):
    diag = run_integrand("log_endpoint")
    plot_convergence_history(diag, tmp_path)
    plot_table_layout(TanhSinh().table, levels=4, outdir=tmp_path)
    plot_tolerance_sweep([run_tolerance_sweep("quadratic", tolerances=[1e-4, 1e-8])], tmp_path)
    assert (tmp_path / "convergence_log_endpoint.png").exists()
    assert (tmp_path / "table_layout_float64.png").exists()
    assert (tmp_path / "tolerance_sweep.png").exists()


def test_cli_single_run(tmp_path, capsys):
    main(["--integrand", "semicircle", "--outdir", str(tmp_path), "--no-plots", "--quiet"])
    out = capsys.readouterr().out
    assert "Estimate" in out
    written = json.loads((tmp_path / "results.json").read_text())
    assert abs(written["integrands"]["semicircle"]["value"] - np.pi / 2) < 1e-9


def test_cli_suite_on_mpmath(tmp_path, capsys):
    main(["--suite", "--dtype", "mpmath:20", "--max-refinements", "6",
          "--outdir", str(tmp_path), "--no-plots", "--quiet"])
    out = capsys.readouterr().out
    assert "Integrand Results" in out
    written = json.loads((tmp_path / "results.json").read_text())
    assert written["parameters"]["real_type"] == "mpmath:20"
    assert set(written["integrands"]) == set(get_integrand_names())
    assert abs(written["integrands"]["chebyshev_weight"]["value"] - np.pi) < 1e-8


def test_cli_compare_tables(tmp_path, capsys):
    main(["--compare-tables", "--outdir", str(tmp_path), "--no-plots", "--quiet"])
    out = capsys.readouterr().out
    assert "Worst relative difference" in out
    assert (tmp_path / "report.md").exists()
