"""
Tanh-Sinh Plotting Utilities

This module provides plotting functions for quadrature diagnostics.
Uses matplotlib only.
"""

from pathlib import Path
from typing import Optional
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from .experiments import IntegrandDiagnostics, ToleranceSweepResult
from .table import AbscissaTable


def setup_style() -> None:
    """Set up matplotlib style for publication-quality plots."""
    plt.rcParams.update({
        'font.size': 10,
        'axes.labelsize': 11,
        'axes.titlesize': 12,
        'xtick.labelsize': 9,
        'ytick.labelsize': 9,
        'legend.fontsize': 9,
        'figure.figsize': (8, 6),
        'figure.dpi': 150,
        'savefig.dpi': 150,
        'axes.grid': True,
        'grid.alpha': 0.3,
    })


def plot_convergence_history(diag: IntegrandDiagnostics,
                             outdir: Optional[Path] = None,
                             show: bool = False) -> Figure:
    """Plot the per-level error estimate and true error of one integrand.

    Args:
        diag: Diagnostics from ``run_integrand``
        outdir: Directory to save plot (if provided)
        show: Whether to display the plot

    Returns:
        matplotlib Figure object
    """
    setup_style()

    history = diag.result.history[1:]
    levels = np.array([step.level for step in history])
    estimates = np.array([float(step.error) for step in history])
    true_errors = np.array([abs(float(step.estimate) - diag.exact) for step in history])
    floor = np.finfo(np.float64).tiny

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.semilogy(levels, np.maximum(estimates, floor), 'o-', linewidth=2,
                color='#2E86AB', label=r'$|I_k - I_{k-1}|$')
    ax.semilogy(levels, np.maximum(true_errors, floor), 's--', linewidth=1.5,
                color='#C73E1D', label=r'$|I_k - I|$')

    ax.set_xlabel('Refinement level $k$')
    ax.set_ylabel('Error')
    ax.set_title(f'Convergence: {diag.name} ({diag.real_type})')
    ax.legend(loc='best')

    status = "Converged" if diag.result.converged else "Not converged"
    ax.text(0.95, 0.95,
            f"Status: {status}\nEvaluations = {diag.result.evaluations}",
            transform=ax.transAxes, ha='right', va='top',
            bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.5))

    plt.tight_layout()

    if outdir is not None:
        fig.savefig(outdir / f"convergence_{diag.name}.png", bbox_inches='tight')

    if show:
        plt.show()

    return fig


def plot_table_layout(table: AbscissaTable,
                      levels: Optional[int] = None,
                      outdir: Optional[Path] = None,
                      show: bool = False) -> Figure:
    """Plot complements and weights of the committed table levels.

    Args:
        table: Abscissa table to draw
        levels: Number of levels to draw (default: all committed)
        outdir: Directory to save plot
        show: Whether to display

    Returns:
        matplotlib Figure
    """
    setup_style()

    if levels is None:
        levels = table.committed_refinements + 1
    t_max = float(table.t_max)
    h0 = t_max / table.initial_row_length

    fig, (ax_c, ax_w) = plt.subplots(1, 2, figsize=(12, 5))
    cmap = plt.get_cmap('viridis')

    for level in range(levels):
        row = np.array([float(v) for v in table.row(level)])
        weights = np.array([float(v) for v in table.weight_row(level)])
        first = table.first_complement_index(level)
        if level == 0:
            t = np.append(np.arange(table.initial_row_length) * h0, t_max)
        else:
            h = h0 / 2 ** level
            t = h + 2 * h * np.arange(len(row))
        complements = np.where(np.arange(len(row)) >= first, -row, 1.0 - row)
        color = cmap(level / max(levels - 1, 1))
        # Entries that underflowed to zero are dropped by the log axis.
        ax_c.semilogy(t, complements, '.', color=color, label=f'level {level}')
        ax_w.semilogy(t, weights, '.', color=color)

    ax_c.axvline(float(table.t_crossover), color='gray', linestyle=':', label='crossover')
    ax_c.set_xlabel('$t$')
    ax_c.set_ylabel('$1 - x(t)$')
    ax_c.set_title('Abscissa complements')
    ax_c.legend(loc='best', fontsize=7)

    ax_w.set_xlabel('$t$')
    ax_w.set_ylabel('$w(t)$')
    ax_w.set_title('Weights')

    fig.suptitle(f'Tanh-sinh table ({table.real_type.name})')
    plt.tight_layout()

    if outdir is not None:
        fig.savefig(outdir / f"table_layout_{table.real_type.name}.png", bbox_inches='tight')

    if show:
        plt.show()

    return fig


def plot_tolerance_sweep(results: list[ToleranceSweepResult],
                         outdir: Optional[Path] = None,
                         show: bool = False) -> Figure:
    """Plot achieved error and cost against the requested tolerance.

    Args:
        results: Tolerance sweeps to compare
        outdir: Directory to save plot
        show: Whether to display

    Returns:
        matplotlib Figure
    """
    setup_style()

    fig, (ax_err, ax_cost) = plt.subplots(1, 2, figsize=(12, 5))
    colors = ['#2E86AB', '#A23B72', '#F18F01', '#C73E1D']
    markers = ['o', 's', '^', 'D']
    floor = np.finfo(np.float64).tiny

    for i, result in enumerate(results):
        color = colors[i % len(colors)]
        marker = markers[i % len(markers)]
        ax_err.loglog(result.tolerances, np.maximum(result.abs_errors, floor),
                      f'{marker}-', color=color, label=result.name)
        ax_cost.semilogx(result.tolerances, result.evaluations,
                         f'{marker}-', color=color, label=result.name)

    tol_range = np.array([min(r.tolerances.min() for r in results),
                          max(r.tolerances.max() for r in results)])
    ax_err.loglog(tol_range, tol_range, 'k:', label='error = tolerance')
    ax_err.set_xlabel('Requested tolerance')
    ax_err.set_ylabel('Absolute error')
    ax_err.set_title('Achieved accuracy')
    ax_err.legend(loc='best')

    ax_cost.set_xlabel('Requested tolerance')
    ax_cost.set_ylabel('Integrand evaluations')
    ax_cost.set_title('Cost')
    ax_cost.invert_xaxis()

    plt.tight_layout()

    if outdir is not None:
        fig.savefig(outdir / "tolerance_sweep.png", bbox_inches='tight')

    if show:
        plt.show()

    return fig
