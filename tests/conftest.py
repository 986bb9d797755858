import numpy as np
import pandas as pd
import pytest

from tree_ordination.sample_table import OCCURRENCE_COLUMNS

SPECIES_CODES = ['SU', 'JP', 'RM', 'DF', 'WH', 'RA']


@pytest.fixture
def example_records():
    """Records from the two-unit worked example."""
    return [
        ('A', 'SU', 10),
        ('A', 'JP', 0),
        ('B', 'SU', 0),
        ('B', 'JP', 5),
    ]


@pytest.fixture
def gradient_occurrences():
    """Synthetic occurrences along a composition gradient.

    40 sample units; SU dominates one end and JP the other, RM and DF are
    spread through the middle, WH appears in a single unit and RA is never
    recorded. Unit H39 only holds the rare WH trees.
    """
    rng = np.random.default_rng(42)
    rows = []
    for i in range(39):
        position = i / 38
        counts = {
            'SU': int(round(20 * (1 - position))) + 1,
            'JP': int(round(20 * position)) + 1,
            'RM': int(rng.integers(0, 6)),
            'DF': int(rng.integers(1, 4)),
        }
        for code, count in counts.items():
            rows.append((f'H{i:02d}', code, count))
    rows.append(('H39', 'WH', 1))
    rows.append(('H39', 'RA', 0))
    return pd.DataFrame(rows, columns=OCCURRENCE_COLUMNS)


@pytest.fixture
def occurrence_csv(tmp_path, gradient_occurrences):
    """Occurrence table written with GIS frequency tool column names."""
    path = tmp_path / "hex_species_frequency.csv"
    gradient_occurrences.rename(columns={
        'sample_unit_id': 'GRID_ID',
        'species_code': 'SPECIES_CODE',
        'frequency': 'FREQUENCY',
    }).assign(OBJECTID=lambda df: range(1, len(df) + 1)).to_csv(path, index=False)
    return path


@pytest.fixture
def lookup_csv(tmp_path):
    path = tmp_path / "species_lookup.csv"
    path.write_text(
        "SPECIES_CODE,COMMON_NAME,SCIENTIFIC_NAME\n"
        "SU,Sugar maple,Acer saccharum\n"
        "JP,Jack pine,Pinus banksiana\n"
        "RM,Red maple,Acer rubrum\n"
        "DF,Douglas-fir,Pseudotsuga menziesii\n"
        "WH,Western hemlock,Tsuga heterophylla\n"
    )
    return path


@pytest.fixture
def locations_csv(tmp_path):
    """Hexagon centroids for all but the last two analysed units."""
    path = tmp_path / "hex_centroids.csv"
    lines = ["GRID_ID,POINT_X,POINT_Y"]
    for i in range(37):
        lines.append(f"H{i:02d},{-122.5 + i * 0.01:.4f},{47.6 + (i % 5) * 0.01:.4f}")
    path.write_text("\n".join(lines) + "\n")
    return path
