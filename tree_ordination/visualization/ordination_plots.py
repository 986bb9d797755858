#!/usr/bin/env python3
"""
Ordination Figures

Rare-species cutoff, sample and species score plots, scree plot and
per-species gradient plots. Every function writes a PNG and returns its path.
"""

import re
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from tqdm import tqdm

from tree_ordination.data_extraction.load_occurrences import species_label

FIGURE_DPI = 150


def _save(fig, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=FIGURE_DPI)
    plt.close(fig)
    return path


def _slug(value):
    return re.sub(r'[^A-Za-z0-9]+', '_', str(value)).strip('_').lower() or 'species'


def plot_species_frequencies(counts, threshold, path, lookup=None, label_style='common'):
    """Bar chart of total occurrences per species with the rare-species cutoff"""
    totals = counts.sum(axis=0).sort_values(ascending=False)
    labels = [species_label(code, lookup or {}, label_style) for code in totals.index]
    colors = ['tab:green' if total >= threshold else 'tab:gray' for total in totals]

    fig, ax = plt.subplots(figsize=(max(8, len(totals) * 0.4), 6))
    ax.bar(range(len(totals)), totals.values, color=colors)
    ax.axhline(threshold, color='tab:red', linestyle='--', label=f'Rare cutoff ({threshold:.1f})')
    ax.set_xticks(range(len(totals)))
    ax.set_xticklabels(labels, rotation=90)
    ax.set_yscale('symlog')
    ax.set_ylabel('Total occurrences')
    ax.set_title('Species occurrence totals')
    ax.legend()
    return _save(fig, path)


def plot_sample_scores(sample_scores, path, axes=('CA1', 'CA2')):
    """Scatter of sample units on two ordination axes"""
    x_axis, y_axis = axes

    fig, ax = plt.subplots(figsize=(7, 7))
    ax.scatter(sample_scores[x_axis], sample_scores[y_axis], s=12, alpha=0.6, color='tab:blue')
    ax.axhline(0, color='lightgray', linewidth=0.8)
    ax.axvline(0, color='lightgray', linewidth=0.8)
    ax.set_xlabel(x_axis)
    ax.set_ylabel(y_axis)
    ax.set_title(f'Sample unit scores ({len(sample_scores):,} units)')
    return _save(fig, path)


def plot_species_scores(species_scores, path, lookup=None, axes=('CA1', 'CA2'),
                        label_style='common'):
    """Species positions on two ordination axes, labelled by name"""
    x_axis, y_axis = axes

    fig, ax = plt.subplots(figsize=(8, 8))
    ax.scatter(species_scores[x_axis], species_scores[y_axis], s=18, color='tab:green')
    for code, row in species_scores.iterrows():
        ax.annotate(species_label(code, lookup or {}, label_style),
                    (row[x_axis], row[y_axis]), fontsize=8,
                    xytext=(3, 3), textcoords='offset points')
    ax.axhline(0, color='lightgray', linewidth=0.8)
    ax.axvline(0, color='lightgray', linewidth=0.8)
    ax.set_xlabel(x_axis)
    ax.set_ylabel(y_axis)
    ax.set_title('Species scores')
    return _save(fig, path)


def plot_eigenvalues(proportion_explained, path):
    """Scree plot of the share of inertia on each kept axis"""
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.bar(proportion_explained.index, proportion_explained.values * 100, color='tab:purple')
    ax.set_ylabel('% of inertia')
    ax.set_title('Ordination axes')
    return _save(fig, path)


def plot_species_gradients(fractions, sample_scores, output_dir, lookup=None,
                           axis='CA1', label_style='common'):
    """
    One scatter per species of its fraction against an axis score

    Args:
        fractions: Normalized sample-by-species matrix
        sample_scores: Sample scores indexed like fractions
        output_dir: Directory for the PNG files
        lookup: Optional species lookup for titles
        axis: Ordination axis to plot against

    Returns:
        List of written paths
    """
    output_dir = Path(output_dir)
    scores = sample_scores[axis].reindex(fractions.index)

    paths = []
    used_names = set()
    for position, code in enumerate(tqdm(fractions.columns, desc=f"Species gradients ({axis})")):
        name = f"gradient_{axis.lower()}_{_slug(code)}"
        if name in used_names:
            name = f"{name}_{position}"
        used_names.add(name)

        fig, ax = plt.subplots(figsize=(6, 4))
        ax.scatter(scores, fractions[code], s=10, alpha=0.5, color='tab:olive')
        ax.set_xlabel(axis)
        ax.set_ylabel('Fraction of trees')
        ax.set_ylim(-0.02, 1.02)
        ax.set_title(species_label(code, lookup or {}, label_style))
        paths.append(_save(fig, output_dir / f"{name}.png"))

    return paths
