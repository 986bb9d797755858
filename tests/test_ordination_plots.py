"""Tests for the ordination figures."""

import pandas as pd
import pytest

from tree_ordination.analysis.ordination import run_ordination
from tree_ordination.data_extraction.load_occurrences import SpeciesName
from tree_ordination.sample_table import normalize_sample_table
from tree_ordination.visualization.ordination_plots import (
    plot_eigenvalues,
    plot_sample_scores,
    plot_species_frequencies,
    plot_species_gradients,
    plot_species_scores,
)

LOOKUP = {'SU': SpeciesName('Sugar maple', 'Acer saccharum')}


@pytest.fixture
def ordinated(gradient_occurrences):
    table = normalize_sample_table(gradient_occurrences, min_relative_frequency=0.05)
    return table, run_ordination(table.fractions)


def _is_png(path):
    with open(path, 'rb') as f:
        return f.read(8) == b'\x89PNG\r\n\x1a\n'


def test_plot_species_frequencies(tmp_path, ordinated):
    """Should write the species totals chart, creating parent folders."""
    table, _ = ordinated

    path = plot_species_frequencies(table.counts, table.threshold,
                                    tmp_path / "figures" / "freq.png", LOOKUP)

    assert path.exists()
    assert _is_png(path)


def test_plot_sample_and_species_scores(tmp_path, ordinated):
    """Should write the score scatter plots."""
    _, result = ordinated

    samples = plot_sample_scores(result.sample_scores, tmp_path / "samples.png")
    species = plot_species_scores(result.species_scores, tmp_path / "species.png", LOOKUP,
                                  axes=('CA1', 'CA3'), label_style='both')

    assert _is_png(samples)
    assert _is_png(species)


def test_plot_eigenvalues(tmp_path, ordinated):
    """Should write the scree plot."""
    _, result = ordinated

    assert _is_png(plot_eigenvalues(result.proportion_explained, tmp_path / "scree.png"))


def test_plot_species_gradients(tmp_path, ordinated):
    """Should write one figure per retained species."""
    table, result = ordinated

    paths = plot_species_gradients(table.fractions, result.sample_scores,
                                   tmp_path / "gradients", LOOKUP)

    assert len(paths) == table.fractions.shape[1]
    assert sorted(p.name for p in paths) == [
        'gradient_ca1_df.png', 'gradient_ca1_jp.png', 'gradient_ca1_rm.png', 'gradient_ca1_su.png',
    ]
    assert all(p.exists() for p in paths)


def test_plot_species_gradients__distinct_files_for_similar_codes(tmp_path):
    """Should not overwrite figures for codes that share a file name."""
    fractions = pd.DataFrame({'A-B': [0.5, 0.2], 'A_B': [0.5, 0.8]}, index=['H00', 'H01'])
    scores = pd.DataFrame({'CA1': [-1.0, 1.0]}, index=fractions.index)

    paths = plot_species_gradients(fractions, scores, tmp_path)

    assert len(set(paths)) == 2
    assert all(p.exists() for p in paths)
