#!/usr/bin/env python3
"""
Tree Species Ordination Workflow

Loads a sample-unit x species frequency table (exported from the GIS
tessellation and spatial join), removes rare species, converts counts to
within-unit fractions, ordinates the sample units and exports the scores
for kriging back in GIS software.

Usage:
  python -m tree_ordination.run_ordination_pipeline --occurrences hex_species_frequency.csv
  tree-ordination --occurrences freq.csv --species-lookup species.csv --locations hex_centroids.csv
  tree-ordination --occurrences freq.csv --min-relative-frequency 0.01 --no-plots
"""

import argparse
import os
import sys
import traceback
from pathlib import Path

import pandas as pd

from tree_ordination.analysis.ordination import (
    DEFAULT_AXES,
    OrdinationError,
    axis_species_extremes,
    run_ordination,
    summarize_species_presence,
)
from tree_ordination.data_extraction.load_occurrences import (
    DEFAULT_FREQUENCY_COLUMN,
    DEFAULT_SAMPLE_ID_COLUMN,
    DEFAULT_SPECIES_COLUMN,
    LABEL_STYLES,
    load_occurrence_table,
    load_species_lookup,
    report_unknown_species,
    species_label,
)
from tree_ordination.sample_table import DEFAULT_MIN_RELATIVE_FREQUENCY, normalize_sample_table
from tree_ordination.utilities.export_for_gis import (
    DEFAULT_CRS,
    DEFAULT_X_COLUMN,
    DEFAULT_Y_COLUMN,
    build_score_points,
    build_score_table,
    export_score_points,
    export_score_table,
    load_sample_locations,
    write_run_summary,
)
from tree_ordination.visualization.ordination_plots import (
    plot_eigenvalues,
    plot_sample_scores,
    plot_species_frequencies,
    plot_species_gradients,
    plot_species_scores,
)

# Configuration
OUTPUT_DIR = Path("outputs/ordination")
OUTPUT_DIR_ENV = 'TREE_ORDINATION_OUTPUT_DIR'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Tree species ordination for GIS interpolation')
    parser.add_argument('--occurrences', required=True,
                        help='Delimited table of sample unit, species code and frequency')
    parser.add_argument('--species-lookup', help='Delimited table of species codes and names')
    parser.add_argument('--locations', help='Delimited table of sample unit centroid coordinates')
    parser.add_argument('--output-dir',
                        help=f'Output directory (default: ${OUTPUT_DIR_ENV} or {OUTPUT_DIR})')
    parser.add_argument('--min-relative-frequency', type=float,
                        default=DEFAULT_MIN_RELATIVE_FREQUENCY, metavar='FRACTION',
                        help=f'Rare species cutoff as a fraction of sample units '
                             f'(default: {DEFAULT_MIN_RELATIVE_FREQUENCY})')
    parser.add_argument('--axes', type=int, default=DEFAULT_AXES,
                        help=f'Number of ordination axes to keep (default: {DEFAULT_AXES})')
    parser.add_argument('--sample-id-column', default=DEFAULT_SAMPLE_ID_COLUMN)
    parser.add_argument('--species-column', default=DEFAULT_SPECIES_COLUMN)
    parser.add_argument('--frequency-column', default=DEFAULT_FREQUENCY_COLUMN)
    parser.add_argument('--delimiter', default=',', help='Field delimiter for input and output tables')
    parser.add_argument('--x-column', default=DEFAULT_X_COLUMN, help='Location table X field')
    parser.add_argument('--y-column', default=DEFAULT_Y_COLUMN, help='Location table Y field')
    parser.add_argument('--crs', default=DEFAULT_CRS, help=f'CRS of the location coordinates (default: {DEFAULT_CRS})')
    parser.add_argument('--label-style', choices=LABEL_STYLES, default='common',
                        help='How species are labelled in reports and figures')
    parser.add_argument('--no-plots', action='store_true', help='Skip figure generation')
    parser.add_argument('--species-gradients', action='store_true',
                        help='Also plot each species fraction against the first axis')
    return parser.parse_args(argv)


def resolve_output_dir(output_dir=None):
    if output_dir:
        return Path(output_dir)
    return Path(os.environ.get(OUTPUT_DIR_ENV, OUTPUT_DIR))


def print_composition_report(table, result, presence, lookup, label_style):
    """Print the species composition and ordination summary"""
    print("\n" + "=" * 60)
    print("SPECIES COMPOSITION SUMMARY")
    print("=" * 60)

    print(f"\n  Sample units analysed: {len(table.fractions):,}")
    print(f"  Species retained: {table.fractions.shape[1]} of {table.counts.shape[1]}")

    print(f"\n  Most frequent species:")
    for code, row in presence.head(10).iterrows():
        print(f"    {species_label(code, lookup, label_style)}: "
              f"{row['pct_units_present']:.1f}% of units, "
              f"{int(row['total_occurrences']):,} trees, "
              f"mean {row['mean_fraction_when_present'] * 100:.1f}% when present")

    first_axis = result.sample_scores.columns[0]
    low, high = axis_species_extremes(result.species_scores, first_axis)
    print(f"\n  {first_axis} gradient:")
    print(f"    Low end:  {', '.join(species_label(c, lookup, label_style) for c in low)}")
    print(f"    High end: {', '.join(species_label(c, lookup, label_style) for c in high)}")


def build_run_summary(args, table, result, outputs):
    return {
        'analysis_date': pd.Timestamp.now().isoformat(),
        'inputs': {
            'occurrences': str(args.occurrences),
            'species_lookup': str(args.species_lookup) if args.species_lookup else None,
            'locations': str(args.locations) if args.locations else None,
        },
        'rare_species_filter': {
            'min_relative_frequency': args.min_relative_frequency,
            'threshold_occurrences': float(table.threshold),
            'species_before': int(table.counts.shape[1]),
            'species_after': int(table.fractions.shape[1]),
            'dropped_species': [str(code) for code in table.dropped_species],
        },
        'sample_units': {
            'total': int(len(table.counts)),
            'analysed': int(len(table.fractions)),
            'dropped': [str(unit) for unit in table.dropped_sample_units],
        },
        'ordination': {
            'method': result.method,
            'eigenvalues': {k: float(v) for k, v in result.eigenvalues.items()},
            'proportion_explained': {k: float(v) for k, v in result.proportion_explained.items()},
        },
        'outputs': {name: str(path) for name, path in outputs.items()},
    }


def run_pipeline(args):
    """Run the full workflow for parsed arguments, returning the output paths"""
    output_dir = resolve_output_dir(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    print(f"📁 Output directory: {output_dir}")

    occurrences = load_occurrence_table(
        args.occurrences,
        sample_id_column=args.sample_id_column,
        species_column=args.species_column,
        frequency_column=args.frequency_column,
        delimiter=args.delimiter,
    )
    lookup = load_species_lookup(args.species_lookup, delimiter=args.delimiter) if args.species_lookup else {}

    table = normalize_sample_table(occurrences, args.min_relative_frequency)
    if lookup:
        report_unknown_species(table.counts.columns, lookup)

    result = run_ordination(table.fractions, n_axes=args.axes)
    presence = summarize_species_presence(table.counts, table.fractions)
    print_composition_report(table, result, presence, lookup, args.label_style)

    print("\n💾 Exporting results...")
    outputs = {}
    score_table = build_score_table(table.fractions, result.sample_scores)
    outputs['scores'] = export_score_table(score_table, output_dir / "ordination_scores.csv",
                                           delimiter=args.delimiter)

    species_path = output_dir / "species_scores.csv"
    result.species_scores.join(presence).to_csv(species_path, sep=args.delimiter)
    outputs['species_scores'] = species_path

    if args.locations:
        locations = load_sample_locations(args.locations, x_column=args.x_column,
                                          y_column=args.y_column,
                                          sample_id_column=args.sample_id_column,
                                          delimiter=args.delimiter)
        points = build_score_points(score_table, locations, crs=args.crs)
        outputs['score_points'] = export_score_points(points, output_dir / "ordination_scores.geojson")

    if not args.no_plots:
        print("\n📈 Rendering figures...")
        figures_dir = output_dir / "figures"
        axes = tuple(result.sample_scores.columns[:2])
        outputs['species_frequencies_plot'] = plot_species_frequencies(
            table.counts, table.threshold, figures_dir / "species_frequencies.png",
            lookup, args.label_style)
        outputs['eigenvalues_plot'] = plot_eigenvalues(
            result.proportion_explained, figures_dir / "eigenvalues.png")
        if len(axes) == 2:
            outputs['sample_scores_plot'] = plot_sample_scores(
                result.sample_scores, figures_dir / "sample_scores.png", axes)
            outputs['species_scores_plot'] = plot_species_scores(
                result.species_scores, figures_dir / "species_scores.png", lookup, axes,
                args.label_style)
        if args.species_gradients:
            plot_species_gradients(table.fractions, result.sample_scores,
                                   figures_dir / "gradients", lookup,
                                   axis=result.sample_scores.columns[0],
                                   label_style=args.label_style)
            outputs['species_gradient_plots'] = figures_dir / "gradients"

    summary_path = output_dir / "run_summary.json"
    write_run_summary(build_run_summary(args, table, result, outputs), summary_path)
    outputs['summary'] = summary_path

    return outputs


def main(argv=None):
    """Main execution function"""
    args = parse_args(argv)

    print("🌳 Tree species ordination workflow")
    print("=" * 60)

    try:
        outputs = run_pipeline(args)
    except (FileNotFoundError, ValueError, OrdinationError) as e:
        print(f"❌ Error: {e}")
        return 1
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        traceback.print_exc()
        return 1

    print(f"\n✅ SUCCESS! Files created:")
    for path in outputs.values():
        print(f"  📍 {path}")

    print(f"\nGIS Usage:")
    print(f"  1. Join ordination_scores.csv to the tessellation on sample_unit_id,")
    print(f"     or add ordination_scores.geojson directly")
    print(f"  2. Krige the CA1 field to map the species composition gradient")
    return 0


if __name__ == "__main__":
    sys.exit(main())
