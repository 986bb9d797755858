#!/usr/bin/env python3
"""
Export Ordination Scores for GIS

Writes the normalized species fractions and ordination scores keyed by
sample unit, either as delimited text for a table join in GIS software or
as a GeoJSON point layer (sample unit centroids) ready for kriging.

QGIS usage:
  1. Drag the .geojson file into QGIS (or join the .csv on sample_unit_id)
  2. Interpolate a CA axis field to produce a composition gradient surface
"""

import json
from pathlib import Path

import geopandas as gpd
import pandas as pd
from shapely.geometry import Point

from tree_ordination.sample_table import SAMPLE_ID

# Field names written by the GIS "add XY coordinates" step
DEFAULT_X_COLUMN = 'POINT_X'
DEFAULT_Y_COLUMN = 'POINT_Y'
DEFAULT_LOCATION_ID_COLUMN = 'GRID_ID'
DEFAULT_CRS = 'EPSG:4326'


class LocationTableError(ValueError):
    """Raised when the sample unit location table is malformed"""


def _check_column_overlap(columns, added_columns, kind):
    """Species codes must not shadow the fields added for export"""
    clashes = [str(col) for col in columns if col in set(added_columns)]
    if clashes:
        raise ValueError(
            f"Species code(s) {', '.join(clashes)} clash with {kind} field names; "
            f"rename them before export"
        )


def build_score_table(fractions, sample_scores):
    """Join species fractions and axis scores on sample unit id"""
    _check_column_overlap(fractions.columns, sample_scores.columns, "ordination axis")
    table = fractions.join(sample_scores, how='inner')
    table.index.name = SAMPLE_ID
    return table


def export_score_table(table, path, delimiter=','):
    """Write the score table as delimited text keyed by sample_unit_id"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep=delimiter, index_label=SAMPLE_ID)
    print(f"  💾 Score table saved to: {path} ({len(table):,} sample units)")
    return path


def load_sample_locations(path, x_column=DEFAULT_X_COLUMN, y_column=DEFAULT_Y_COLUMN,
                          sample_id_column=DEFAULT_LOCATION_ID_COLUMN, delimiter=','):
    """
    Read sample unit centroid coordinates

    Returns:
        DataFrame indexed by sample_unit_id with POINT_X and POINT_Y columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Location table not found: {path}")

    raw = pd.read_csv(path, sep=delimiter, dtype=str, skipinitialspace=True)

    required = [sample_id_column, x_column, y_column]
    missing = [col for col in required if col not in raw.columns]
    if missing:
        raise LocationTableError(
            f"{path.name} is missing required column(s): {', '.join(missing)}"
        )

    locations = pd.DataFrame({
        SAMPLE_ID: raw[sample_id_column].str.strip(),
        DEFAULT_X_COLUMN: pd.to_numeric(raw[x_column], errors='coerce'),
        DEFAULT_Y_COLUMN: pd.to_numeric(raw[y_column], errors='coerce'),
    })

    invalid = locations.isna().any(axis=1) | locations[SAMPLE_ID].eq('')
    if invalid.any():
        line = int(invalid.to_numpy().nonzero()[0][0]) + 2
        raise LocationTableError(f"{path.name} line {line}: missing id or non-numeric coordinates")

    duplicated = locations[SAMPLE_ID].duplicated()
    if duplicated.any():
        dup_id = locations.loc[duplicated, SAMPLE_ID].iloc[0]
        raise LocationTableError(f"{path.name}: duplicate location for sample unit {dup_id!r}")

    return locations.set_index(SAMPLE_ID)


def build_score_points(table, locations, crs=DEFAULT_CRS):
    """
    Attach centroid coordinates to the score table

    Sample units without a location are skipped with a warning.

    Returns:
        GeoDataFrame of points, one per located sample unit
    """
    _check_column_overlap(table.columns, locations.columns, "location")
    located = table.join(locations, how='inner')
    skipped = len(table) - len(located)
    if skipped:
        print(f"  ⚠️  {skipped:,} sample units have no location and were skipped")

    geometry = [Point(xy) for xy in zip(located[DEFAULT_X_COLUMN], located[DEFAULT_Y_COLUMN])]
    return gpd.GeoDataFrame(located.reset_index(), geometry=geometry, crs=crs)


def export_score_points(points, path):
    """Write the score points as GeoJSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    points.to_file(path, driver='GeoJSON')
    print(f"  📍 Score points saved to: {path} ({len(points):,} points)")
    return path


def write_run_summary(summary, path):
    """Write the run summary as JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(summary, f, indent=2, default=str)
    return path
