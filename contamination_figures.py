#!/usr/bin/env python3
"""
Figures for the contaminant food-chain model.

Two figures per run:
    results_overview  population time course, contaminant time course and the
                      plant/herbivore phase portrait
    model             the equation system rendered with mathtext
"""

import io

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

FIGURE_PARAMS = {
    'overview_size': (10, 5),
    'dpi': 200,
    'line_height': 0.55,
}

COLORS = {
    'P': 'green',
    'H': 'red',
    'C': 'blue',
    'C_P': 'green',
    'C_H': 'red',
    'phase': 'black',
}


def _upper(values):
    """Axis upper limit: max of the series, or 1 for an all-zero series."""
    top = float(np.max(values)) if len(values) else 0.0
    return top if top > 0 else 1.0


def derive_curves(trajectory):
    """
    Numeric series and axis ranges consumed by the overview figure.

    Time courses are limited by the maximum of the summed series they show,
    the phase portrait by the maximum of each biomass.
    """
    t = trajectory.t
    population = {'Plants': trajectory['P'], 'Herbivores': trajectory['H']}
    contaminant = {
        'Environment': trajectory['C'],
        'Plants': trajectory['C_P'],
        'Herbivores': trajectory['C_H'],
    }
    return {
        'time': t,
        'population': population,
        'contaminant': contaminant,
        'phase': (trajectory['P'], trajectory['H']),
        'limits': {
            'population': (0.0, _upper(trajectory.total_biomass())),
            'contaminant': (0.0, _upper(trajectory.total_contaminant())),
            'phase_x': (0.0, _upper(trajectory['P'])),
            'phase_y': (0.0, _upper(trajectory['H'])),
        },
    }


def plot_results_overview(trajectory, title=None):
    """Three-panel overview figure. Caller owns (and closes) the figure."""
    curves = derive_curves(trajectory)
    limits = curves['limits']
    t = curves['time']

    fig, axes = plt.subplots(1, 3, figsize=FIGURE_PARAMS['overview_size'])

    # Panel A: biomass over time
    ax = axes[0]
    ax.plot(t, curves['population']['Plants'], label='Plants', color=COLORS['P'])
    ax.plot(t, curves['population']['Herbivores'], label='Herbivores', color=COLORS['H'])
    ax.set_xlabel('Time')
    ax.set_ylabel('Population')
    ax.set_xlim(t[0], t[-1])
    ax.set_ylim(*limits['population'])
    ax.legend(loc='upper center', bbox_to_anchor=(0.5, -0.15), ncol=2, frameon=False)

    # Panel B: contaminant over time
    ax = axes[1]
    ax.plot(t, curves['contaminant']['Environment'], label='Environment', color=COLORS['C'])
    ax.plot(t, curves['contaminant']['Plants'], label='Plants', color=COLORS['C_P'])
    ax.plot(t, curves['contaminant']['Herbivores'], label='Herbivores', color=COLORS['C_H'])
    ax.set_xlabel('Time')
    ax.set_ylabel('Contaminant')
    ax.set_xlim(t[0], t[-1])
    ax.set_ylim(*limits['contaminant'])
    ax.legend(loc='upper center', bbox_to_anchor=(0.5, -0.15), ncol=3, frameon=False)

    # Panel C: phase portrait
    ax = axes[2]
    plants, herbivores = curves['phase']
    ax.plot(plants, herbivores, color=COLORS['phase'])
    ax.set_xlabel('Plants')
    ax.set_ylabel('Herbivores')
    ax.set_xlim(*limits['phase_x'])
    ax.set_ylim(*limits['phase_y'])

    if title:
        fig.suptitle(title, fontsize=11)
    plt.tight_layout()
    return fig


def plot_model(system):
    """Render the equation system as one mathtext line per compartment."""
    lines = system.latex_lines()
    height = FIGURE_PARAMS['line_height'] * len(lines) + 0.4
    fig = plt.figure(figsize=(12, height))
    for i, line in enumerate(lines):
        y = 1.0 - (i + 0.5) / len(lines)
        fig.text(0.02, y, f"${line}$", fontsize=13, va='center', ha='left')
    return fig


def figure_to_png(fig, dpi=None) -> bytes:
    """Render a figure to PNG bytes and close it."""
    buffer = io.BytesIO()
    try:
        fig.savefig(buffer, format='png', dpi=dpi or FIGURE_PARAMS['dpi'], bbox_inches='tight')
    finally:
        plt.close(fig)
    return buffer.getvalue()
