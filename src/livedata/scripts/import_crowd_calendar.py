#!/usr/bin/env python3
"""
Waylight Live Data - Crowd Calendar Import
==========================================

Scrapes a year of Thrill-Data crowd calendars into park_crowd_predictions.
Safe to re-run: rows are upserted on (park_id, prediction_date).

Usage:
    python -m livedata.scripts.import_crowd_calendar --year 2026
    python -m livedata.scripts.import_crowd_calendar --year 2026 --parks epcot
    python -m livedata.scripts.import_crowd_calendar --stats
    python -m livedata.scripts.import_crowd_calendar --cleanup-predictions
"""

import argparse
import sys
from datetime import date

from ..collector.thrill_data_client import ThrillDataClient
from ..database.connection import Database
from ..importer.crowd_calendar_importer import CrowdCalendarImporter, ImportProgress
from ..models.park_mapping import SUPPORTED_PARK_IDS
from ..utils.config import IMPORT_DELAY_SECONDS


def print_progress(progress: ImportProgress):
    """Print progress update."""
    line = (
        f"[{progress.percent_complete:5.1f}%] {progress.status:<10} "
        f"{progress.current_park or '-':<28} records={progress.records_imported:,}"
    )
    if progress.error:
        line += f" error={progress.error}"
    print(line)


def print_stats(stats):
    print(f"\n{'='*60}")
    print("Crowd Prediction Stats")
    print(f"{'='*60}")
    print(f"Total predictions: {stats['total_predictions']:,}")
    print(f"Date range:        {stats['date_range']['earliest']} - {stats['date_range']['latest']}")
    print(f"Average level:     {stats['avg_crowd_level']}")
    print(f"Last sync:         {stats['last_sync_time']}")
    for park_id, count in stats.get('park_counts', {}).items():
        print(f"  {park_id}: {count:,}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Import crowd calendar predictions from Thrill-Data"
    )
    parser.add_argument(
        '--year',
        type=int,
        default=date.today().year,
        help='Calendar year to import (default: current year)'
    )
    parser.add_argument(
        '--parks',
        nargs='+',
        choices=SUPPORTED_PARK_IDS,
        help='Parks to import (default: all supported parks)'
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=IMPORT_DELAY_SECONDS,
        help=f'Seconds to wait between parks (default: {IMPORT_DELAY_SECONDS})'
    )
    parser.add_argument(
        '--stats',
        action='store_true',
        help='Print stored prediction stats and exit'
    )
    parser.add_argument(
        '--cleanup-predictions',
        action='store_true',
        help='Delete predictions dated before yesterday and exit'
    )

    args = parser.parse_args(argv)

    db = Database()
    client = ThrillDataClient()
    try:
        importer = CrowdCalendarImporter(db, client, park_ids=args.parks, delay_seconds=args.delay)

        if args.stats:
            print_stats(importer.get_import_stats())
            return 0

        if args.cleanup_predictions:
            deleted = importer.cleanup_old_predictions()
            print(f"Deleted {deleted:,} past crowd predictions")
            return 0

        result = importer.import_year(args.year, on_progress=print_progress)

        print(f"\n{'='*60}")
        print(f"Import Complete: {args.year}")
        print(f"{'='*60}")
        print(f"Success:       {result.success}")
        print(f"Records:       {result.records_imported:,}")
        print(f"Parks:         {', '.join(result.parks_processed) or '-'}")
        if result.date_range['start']:
            print(f"Date range:    {result.date_range['start']} - {result.date_range['end']}")
        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  {error}")

        return 0 if result.success else 1
    finally:
        client.close()
        db.close()


if __name__ == '__main__':
    sys.exit(main())
