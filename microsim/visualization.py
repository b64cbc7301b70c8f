"""
Visualization for area population redistribution.

Plots how closely the synthetic populations reproduce the target counts and
how each area's error evolved during annealing.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np

from .data_models import AttributeTable


def plot_count_comparison(target: AttributeTable, current: AttributeTable, ax: plt.Axes = None):
    """Scatter of synthesized against target counts for both columns"""
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 6))

    limit = max(int(target.values.max(initial=0)), int(current.values.max(initial=0)), 1)
    ax.plot([0, limit], [0, limit], color="lightgray", linestyle='--', linewidth=1)

    for col, color in ((0, "blue"), (1, "orange")):
        ax.scatter(target.values[:, col], current.values[:, col], c=color, alpha=0.7,
                   edgecolors="black", linewidth=0.5, label=f"Value {col}")

    ax.set_xlabel('Target count')
    ax.set_ylabel('Synthesized count')
    ax.set_title('Target vs Synthesized Counts')
    ax.set_xlim(0, limit * 1.05)
    ax.set_ylim(0, limit * 1.05)
    ax.legend()
    ax.grid(True, alpha=0.3)


def plot_area_errors(result, ax: plt.Axes = None):
    """Initial and final error per area as a bar chart"""
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 4))

    if not result.area_results:
        ax.text(0.5, 0.5, "No areas", ha='center', va='center', transform=ax.transAxes)
        return

    labels = [str(r.area_id) for r in result.area_results]
    initial = [r.initial_error for r in result.area_results]
    final = [r.final_error for r in result.area_results]

    x = np.arange(len(labels))
    width = 0.35
    ax.bar(x - width/2, initial, width, label='Initial', color='gray', alpha=0.6)
    ax.bar(x + width/2, final, width, label='Final',
           color=['green' if e == 0 else 'red' for e in final], alpha=0.8)

    ax.set_ylabel('Error')
    ax.set_title('Error by Area')
    # Label every area only while labels stay readable
    if len(labels) <= 40:
        ax.set_xticks(x)
        ax.set_xticklabels(labels, rotation=45, ha='right', fontsize=8)
    ax.legend()


def plot_error_histories(result, ax: plt.Axes = None, max_areas: int = 20):
    """Error trace of each area across swap attempts"""
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 4))

    for area_result in result.area_results[:max_areas]:
        ax.plot(range(len(area_result.error_history)), area_result.error_history,
                alpha=0.7, linewidth=1, label=str(area_result.area_id))

    ax.set_xlabel('Swap attempt')
    ax.set_ylabel('Error')
    ax.set_title('Annealing Progress')
    if 0 < len(result.area_results) <= 10:
        ax.legend(fontsize=8)
    ax.grid(True, alpha=0.3)


def plot_fit(
    target: AttributeTable,
    current: AttributeTable,
    result,
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[int, int] = (14, 10)
):
    """
    Create a three-panel figure summarizing a redistribution run.

    Args:
        target: Target table
        current: Current table after optimization
        result: RedistributionResult from the optimizer
        save_path: Optional path to save the figure as PNG
        figsize: Figure size (width, height)

    Returns:
        The matplotlib Figure
    """
    fig = plt.figure(figsize=figsize)
    gs = fig.add_gridspec(2, 2, height_ratios=[1, 1], width_ratios=[1, 2])

    plot_count_comparison(target, current, fig.add_subplot(gs[0, 0]))
    plot_area_errors(result, fig.add_subplot(gs[0, 1]))
    plot_error_histories(result, fig.add_subplot(gs[1, :]))

    plt.tight_layout()

    if save_path:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

    return fig
