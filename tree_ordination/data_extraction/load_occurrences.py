#!/usr/bin/env python3
"""
Load Occurrence and Species Lookup Tables

Reads the delimited text tables exported from the GIS frequency summary
(one row per sample unit and species) and the species code lookup used to
label species in reports and figures.
"""

from collections import namedtuple
from pathlib import Path

import pandas as pd

from tree_ordination.sample_table import (
    FREQUENCY,
    SAMPLE_ID,
    SPECIES,
    OccurrenceValidationError,
    validate_occurrences,
)

# Column names as written by the GIS frequency tool
DEFAULT_SAMPLE_ID_COLUMN = 'GRID_ID'
DEFAULT_SPECIES_COLUMN = 'SPECIES_CODE'
DEFAULT_FREQUENCY_COLUMN = 'FREQUENCY'

# Species lookup columns
LOOKUP_CODE_COLUMN = 'SPECIES_CODE'
LOOKUP_COMMON_COLUMN = 'COMMON_NAME'
LOOKUP_SCIENTIFIC_COLUMN = 'SCIENTIFIC_NAME'

LABEL_STYLES = ('code', 'common', 'scientific', 'both')

SpeciesName = namedtuple('SpeciesName', ['common_name', 'scientific_name'])


class SpeciesLookupError(ValueError):
    """Raised when the species lookup table is malformed"""


def load_occurrence_table(path, sample_id_column=DEFAULT_SAMPLE_ID_COLUMN,
                          species_column=DEFAULT_SPECIES_COLUMN,
                          frequency_column=DEFAULT_FREQUENCY_COLUMN,
                          delimiter=','):
    """
    Read and validate a long-format occurrence table

    Args:
        path: Delimited text file with one row per (sample unit, species)
        sample_id_column: Column holding the sample unit identifier
        species_column: Column holding the species code
        frequency_column: Column holding the tree count
        delimiter: Field delimiter

    Returns:
        DataFrame with sample_unit_id, species_code and frequency columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Occurrence table not found: {path}")

    print(f"Reading occurrence table: {path}")
    raw = pd.read_csv(path, sep=delimiter, dtype=str, skipinitialspace=True)

    required = [sample_id_column, species_column, frequency_column]
    missing = [col for col in required if col not in raw.columns]
    if missing:
        raise OccurrenceValidationError(
            f"{path.name} is missing required column(s): {', '.join(missing)}"
        )

    occurrences = raw[required].rename(columns={
        sample_id_column: SAMPLE_ID,
        species_column: SPECIES,
        frequency_column: FREQUENCY,
    })

    # Header is line 1, so the first record sits on line 2
    occurrences = validate_occurrences(occurrences, first_line=2)

    print(f"  Loaded {len(occurrences):,} occurrence records "
          f"({occurrences[SAMPLE_ID].nunique():,} sample units, "
          f"{occurrences[SPECIES].nunique()} species)")

    return occurrences


def load_species_lookup(path, delimiter=','):
    """
    Read the species lookup table

    Args:
        path: Delimited text file with SPECIES_CODE, COMMON_NAME and
            SCIENTIFIC_NAME columns
        delimiter: Field delimiter

    Returns:
        Dict of species code -> SpeciesName
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Species lookup not found: {path}")

    raw = pd.read_csv(path, sep=delimiter, dtype=str, skipinitialspace=True)

    required = [LOOKUP_CODE_COLUMN, LOOKUP_COMMON_COLUMN, LOOKUP_SCIENTIFIC_COLUMN]
    missing = [col for col in required if col not in raw.columns]
    if missing:
        raise SpeciesLookupError(
            f"{path.name} is missing required column(s): {', '.join(missing)}"
        )

    raw = raw[required].apply(lambda col: col.str.strip())

    lookup = {}
    for line, row in enumerate(raw.itertuples(index=False), start=2):
        code, common, scientific = row
        if pd.isna(code) or code == '':
            raise SpeciesLookupError(f"{path.name} line {line}: missing species code")

        name = SpeciesName(
            common_name=common if pd.notna(common) else '',
            scientific_name=scientific if pd.notna(scientific) else '',
        )
        if code in lookup and lookup[code] != name:
            raise SpeciesLookupError(
                f"{path.name} line {line}: conflicting names for species code {code!r}"
            )
        lookup[code] = name

    print(f"Loaded {len(lookup)} species names from {path}")
    return lookup


def species_label(code, lookup, style='common'):
    """
    Human-readable label for a species code

    Falls back to the code itself when the lookup has no entry (or the
    requested name is blank).
    """
    if style not in LABEL_STYLES:
        raise ValueError(f"Unknown label style {style!r}, expected one of {LABEL_STYLES}")

    name = lookup.get(code) if lookup else None
    if style == 'code' or name is None:
        return str(code)

    if style == 'common':
        return name.common_name or str(code)
    if style == 'scientific':
        return name.scientific_name or str(code)

    if name.common_name and name.scientific_name:
        return f"{name.common_name} ({name.scientific_name})"
    return name.common_name or name.scientific_name or str(code)


def report_unknown_species(codes, lookup):
    """Return species codes with no lookup entry, warning about them"""
    unknown = [code for code in codes if code not in lookup]
    if unknown:
        print(f"  ⚠️  {len(unknown)} species codes not in lookup: {', '.join(map(str, unknown))}")
    return unknown
