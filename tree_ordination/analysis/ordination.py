#!/usr/bin/env python3
"""
Species Composition Ordination

Runs the ordination on the normalized sample-by-species matrix and
summarizes species composition for the report. The ordination itself is a
call into scikit-bio; this module only prepares its input and reshapes its
output so sample scores stay keyed by sample unit for export to GIS.
"""

from collections import namedtuple

import numpy as np
import pandas as pd
from skbio.stats.ordination import ca

ORDINATION_METHOD = 'correspondence analysis'
AXIS_PREFIX = 'CA'
DEFAULT_AXES = 4

OrdinationResult = namedtuple('OrdinationResult', [
    'sample_scores',
    'species_scores',
    'eigenvalues',
    'proportion_explained',
    'method',
])


class OrdinationError(RuntimeError):
    """Raised when a matrix cannot be ordinated"""


def axis_names(n_axes):
    return [f"{AXIS_PREFIX}{i + 1}" for i in range(n_axes)]


def run_ordination(fractions, n_axes=DEFAULT_AXES):
    """
    Ordinate sample units by species composition

    Args:
        fractions: Row-normalized sample-by-species matrix with no NaN rows
        n_axes: Number of ordination axes to keep

    Returns:
        OrdinationResult with sample and species scores on the first axes
    """
    if n_axes < 1:
        raise ValueError(f"n_axes must be at least 1, got {n_axes}")

    if fractions.isna().to_numpy().any():
        raise OrdinationError(
            "Matrix contains undefined values; drop sample units with no occurrences first"
        )

    # Species with no occurrences have zero marginals
    occupied = fractions.loc[:, fractions.sum(axis=0) > 0].astype(float)

    if len(occupied) < 2 or occupied.shape[1] < 2:
        raise OrdinationError(
            f"Need at least 2 sample units and 2 species to ordinate, "
            f"got {len(occupied)} x {occupied.shape[1]}"
        )

    print(f"🧭 Running {ORDINATION_METHOD} on {len(occupied):,} sample units x "
          f"{occupied.shape[1]} species")

    results = ca(occupied, scaling=1)

    all_eigenvalues = np.asarray(results.eigvals, dtype=float)
    n_kept = min(n_axes, results.samples.shape[1])
    names = axis_names(n_kept)

    sample_scores = pd.DataFrame(
        np.asarray(results.samples)[:, :n_kept], index=occupied.index, columns=names
    )
    species_scores = pd.DataFrame(
        np.asarray(results.features)[:, :n_kept], index=occupied.columns, columns=names
    )
    species_scores.index.name = 'species_code'

    eigenvalues = pd.Series(all_eigenvalues[:n_kept], index=names, name='eigenvalue')
    proportion_explained = pd.Series(
        all_eigenvalues[:n_kept] / all_eigenvalues.sum(), index=names, name='proportion_explained'
    )

    for name in names:
        print(f"  {name}: eigenvalue {eigenvalues[name]:.4f} "
              f"({proportion_explained[name] * 100:.1f}% of inertia)")

    return OrdinationResult(
        sample_scores=sample_scores,
        species_scores=species_scores,
        eigenvalues=eigenvalues,
        proportion_explained=proportion_explained,
        method=ORDINATION_METHOD,
    )


def summarize_species_presence(counts, fractions):
    """
    Per-species presence statistics for the retained species and sample units

    Returns:
        DataFrame indexed by species code with units_present, pct_units_present,
        total_occurrences and mean_fraction_when_present, sorted by total
    """
    retained = counts.loc[fractions.index, fractions.columns]
    present = retained > 0

    summary = pd.DataFrame({
        'units_present': present.sum(axis=0),
        'pct_units_present': present.mean(axis=0) * 100,
        'total_occurrences': retained.sum(axis=0),
        'mean_fraction_when_present': fractions.where(present).mean(axis=0),
    })
    summary.index.name = 'species_code'
    return summary.sort_values('total_occurrences', ascending=False, kind='stable')


def axis_species_extremes(species_scores, axis='CA1', n=3):
    """Species codes at the low and high ends of an ordination axis"""
    ordered = species_scores[axis].sort_values(kind='stable')
    low = list(ordered.index[:n])
    high = list(ordered.index[::-1][:n])
    return low, high
