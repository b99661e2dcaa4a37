#!/usr/bin/env python3
"""
Quick script to show the viability summary of one race from a TSE CSV export.
"""

import argparse
import sys

import pandas as pd

import raw_results_loader as rrl
import viability


def format_summary(summary: pd.DataFrame) -> pd.DataFrame:
    """Format the summary for printing: counts as integers, other metrics to two decimals."""
    formatted = summary.apply(lambda col: col.map('{:.2f}'.format))
    formatted.loc['Number'] = summary.loc['Number'].map('{:,.0f}'.format)
    return formatted


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('csv_path', help="TSE votacao_candidato_munzona CSV export")
    parser.add_argument('--year', type=int)
    parser.add_argument('--state')
    parser.add_argument('--municipality')
    parser.add_argument('--office')
    parser.add_argument('--round', dest='round_number', type=int)
    parser.add_argument(
        '--elected-codes',
        type=int,
        nargs='+',
        default=list(rrl.DEFAULT_ELECTED_CODES),
        help="situation codes that denote an elected candidate (default: %(default)s)"
    )
    parser.add_argument('--force-reload', action='store_true', help="ignore the Parquet cache")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        raw = rrl.load_raw_results(
            args.csv_path,
            year=args.year,
            state=args.state,
            municipality=args.municipality,
            office=args.office,
            round_number=args.round_number,
            force_reload=args.force_reload
        )
        by_party, _, _, summary = viability.compute_viability(raw, args.elected_codes)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except viability.DataIntegrityError as e:
        print(f"Data integrity error: {e}", file=sys.stderr)
        return 1

    pd.set_option('display.float_format', '{:.2f}'.format)

    print(f"\n{'='*60}")
    print("Viability summary")
    print(f"{'='*60}")
    print(format_summary(summary).to_string())

    print(f"\n{'='*60}")
    print("Effective number of candidates by party")
    print(f"{'='*60}")
    print(viability.party_effective_counts(by_party).to_string(index=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
