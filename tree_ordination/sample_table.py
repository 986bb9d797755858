#!/usr/bin/env python3
"""
Sample Table Normalizer

Turns a long (sample unit, species code, frequency) table - the output of a
GIS frequency summary over a hexagon tessellation - into the wide
sample-by-species matrix used for ordination:

    pivot -> filter_rare_columns -> row_percentages -> drop_undefined_rows

Example usage:
    from tree_ordination.sample_table import normalize_sample_table

    table = normalize_sample_table(records, min_relative_frequency=0.005)
    table.fractions  # rows sum to 1, rare species removed
"""

from collections import namedtuple

import numpy as np
import pandas as pd

# Canonical column names for occurrence records
SAMPLE_ID = 'sample_unit_id'
SPECIES = 'species_code'
FREQUENCY = 'frequency'
OCCURRENCE_COLUMNS = [SAMPLE_ID, SPECIES, FREQUENCY]

# Species present in fewer than 0.5% of sample units are treated as rare
DEFAULT_MIN_RELATIVE_FREQUENCY = 0.005

OccurrenceRecord = namedtuple('OccurrenceRecord', OCCURRENCE_COLUMNS)

NormalizedSampleTable = namedtuple('NormalizedSampleTable', [
    'counts',
    'fractions',
    'threshold',
    'dropped_species',
    'dropped_sample_units',
])


class OccurrenceValidationError(ValueError):
    """Raised when an occurrence record or table is malformed"""

    def __init__(self, message, record_index=None, record=None):
        super().__init__(message)
        self.record_index = record_index
        self.record = record


def records_to_frame(records):
    """
    Coerce occurrence records into a DataFrame with the canonical columns

    Args:
        records: DataFrame with sample_unit_id/species_code/frequency columns,
            or a sequence of (sample_unit_id, species_code, frequency) tuples

    Returns:
        DataFrame with exactly the canonical columns, in input order
    """
    if isinstance(records, pd.DataFrame):
        missing = [col for col in OCCURRENCE_COLUMNS if col not in records.columns]
        if missing:
            raise OccurrenceValidationError(
                f"Occurrence table is missing required column(s): {', '.join(missing)}"
            )
        return records[OCCURRENCE_COLUMNS].reset_index(drop=True)

    rows = []
    for position, record in enumerate(records):
        if len(record) != len(OCCURRENCE_COLUMNS):
            raise OccurrenceValidationError(
                f"Record {position} has {len(record)} fields, expected "
                f"(sample_unit_id, species_code, frequency): {tuple(record)!r}",
                record_index=position,
                record=tuple(record),
            )
        rows.append(tuple(record))

    return pd.DataFrame(rows, columns=OCCURRENCE_COLUMNS)


def _is_blank(values):
    """Mask of missing or whitespace-only identifiers"""
    return values.isna() | values.astype(str).str.strip().eq('')


def validate_occurrences(frame, first_line=None):
    """
    Validate occurrence records and return a cleaned copy

    Identifiers and species codes are stripped of surrounding whitespace and
    frequencies are converted to integers. The first malformed record aborts
    validation with an OccurrenceValidationError naming that record.

    Args:
        frame: DataFrame with the canonical occurrence columns
        first_line: Line number of the first data row in the source file.
            When given, errors report file line numbers instead of positions.

    Returns:
        Cleaned DataFrame
    """
    frame = records_to_frame(frame)

    frequencies = pd.to_numeric(frame[FREQUENCY], errors='coerce')
    problems = [
        (_is_blank(frame[SAMPLE_ID]), "missing sample unit id"),
        (_is_blank(frame[SPECIES]), "missing species code"),
        (frequencies.isna(), "missing or non-numeric frequency"),
        (frequencies < 0, "negative frequency"),
        ((frequencies % 1 != 0) & frequencies.notna(), "non-integer frequency"),
    ]

    bad = np.zeros(len(frame), dtype=bool)
    for mask, _ in problems:
        bad |= mask.to_numpy()

    if bad.any():
        position = int(np.flatnonzero(bad)[0])
        reason = next(label for mask, label in problems if mask.iloc[position])
        record = tuple(frame.iloc[position])
        if first_line is None:
            record_index = position
            where = f"record {position}"
        else:
            record_index = first_line + position
            where = f"line {record_index}"
        raise OccurrenceValidationError(
            f"Invalid occurrence at {where}: {reason} {record!r}",
            record_index=record_index,
            record=record,
        )

    cleaned = frame.copy()
    for col in (SAMPLE_ID, SPECIES):
        cleaned[col] = cleaned[col].map(lambda v: v.strip() if isinstance(v, str) else v)
    cleaned[FREQUENCY] = frequencies.astype('int64')
    return cleaned


def pivot(records):
    """
    Pivot long occurrence records into a dense sample-by-species count matrix

    Duplicate (sample unit, species) pairs are summed. Rows keep the order in
    which sample units first appear, columns the order in which species first
    appear, and absent combinations are 0.
    """
    occurrences = validate_occurrences(records)

    if occurrences.empty:
        return pd.DataFrame(index=pd.Index([], name=SAMPLE_ID), dtype='int64')

    sample_units = pd.unique(occurrences[SAMPLE_ID])
    species = pd.unique(occurrences[SPECIES])

    matrix = occurrences.pivot_table(
        index=SAMPLE_ID,
        columns=SPECIES,
        values=FREQUENCY,
        aggfunc='sum',
        fill_value=0,
        sort=False,
    ).reindex(index=sample_units, columns=species, fill_value=0)

    matrix.index.name = SAMPLE_ID
    matrix.columns.name = None
    return matrix


def rare_species_threshold(n_rows, min_relative_frequency=DEFAULT_MIN_RELATIVE_FREQUENCY):
    """Absolute occurrence cutoff: min_relative_frequency * number of sample units"""
    if not 0 <= min_relative_frequency < 1:
        raise ValueError(
            f"min_relative_frequency must be in [0, 1), got {min_relative_frequency}"
        )
    return min_relative_frequency * n_rows


def filter_rare_columns(matrix, min_relative_frequency=DEFAULT_MIN_RELATIVE_FREQUENCY):
    """
    Drop species whose total occurrence count is below the rare-species threshold

    The threshold is scaled by the number of sample units (rows), so 0.005 with
    1000 rows keeps species with at least 5 recorded trees.
    """
    threshold = rare_species_threshold(len(matrix), min_relative_frequency)
    totals = matrix.sum(axis=0)

    # Totals sitting on the threshold are kept even with float noise in the product
    keep = (totals >= threshold) | np.isclose(totals, threshold, rtol=0, atol=1e-9)
    return matrix.loc[:, keep]


def row_percentages(matrix):
    """
    Convert each row to fractions of its total

    Rows with a zero total come back as NaN so they can be removed with
    drop_undefined_rows.
    """
    totals = matrix.sum(axis=1)
    return matrix.div(totals.where(totals != 0), axis=0)


def drop_undefined_rows(matrix):
    """Remove sample units with any undefined (NaN) value"""
    # With every species filtered out each row total is 0, so no row is defined
    if matrix.shape[1] == 0:
        return matrix.iloc[:0]
    return matrix.dropna(axis=0, how='any')


def normalize_sample_table(records, min_relative_frequency=DEFAULT_MIN_RELATIVE_FREQUENCY):
    """
    Run the full normalization sequence on occurrence records

    Args:
        records: Occurrence records (DataFrame or sequence of tuples)
        min_relative_frequency: Rare-species cutoff as a fraction of sample units

    Returns:
        NormalizedSampleTable with the raw counts and the final fraction matrix
    """
    counts = pivot(records)
    print(f"📊 Sample table: {len(counts):,} sample units x {counts.shape[1]} species")

    threshold = rare_species_threshold(len(counts), min_relative_frequency)
    common = filter_rare_columns(counts, min_relative_frequency)
    dropped_species = [code for code in counts.columns if code not in common.columns]

    print(f"  🧹 Rare species filter (< {threshold:.2f} occurrences): "
          f"{counts.shape[1]} → {common.shape[1]} species")
    if dropped_species:
        print(f"     Dropped: {', '.join(map(str, dropped_species))}")

    fractions = drop_undefined_rows(row_percentages(common))
    dropped_sample_units = [unit for unit in counts.index if unit not in fractions.index]

    if dropped_sample_units:
        print(f"  🗑️  Dropped {len(dropped_sample_units):,} sample units with no remaining occurrences")

    return NormalizedSampleTable(
        counts=counts,
        fractions=fractions,
        threshold=threshold,
        dropped_species=dropped_species,
        dropped_sample_units=dropped_sample_units,
    )
