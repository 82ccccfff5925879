#!/usr/bin/env python3
"""
Waylight Live Data - Background Sync Runner
===========================================

Keeps the live tables fresh by pulling ThemeParks.wiki and Queue-Times on a
fixed interval until interrupted.

Usage:
    python -m livedata.scripts.run_sync             # run until SIGINT/SIGTERM
    python -m livedata.scripts.run_sync --once      # single pass, then exit
    python -m livedata.scripts.run_sync --parks magic-kingdom epcot

Environment Variables:
    SYNC_INTERVAL_MINUTES, SYNC_ENABLED_PARKS, SYNC_THEMEPARKS_ENABLED,
    SYNC_QUEUE_TIMES_ENABLED (see utils/config.py)
"""

import argparse
import json
import signal
import sys
import threading

from ..collector.queue_times_client import QueueTimesClient
from ..collector.themeparks_wiki_client import ThemeParksWikiClient
from ..database.connection import Database
from ..models.park_mapping import SUPPORTED_PARK_IDS
from ..processor.background_sync import BackgroundSyncService, SyncConfig
from ..utils.logger import logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync live park data from upstream sources")
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single sync pass and exit'
    )
    parser.add_argument(
        '--parks',
        nargs='+',
        choices=SUPPORTED_PARK_IDS,
        help='Parks to sync (default: SYNC_ENABLED_PARKS or all supported parks)'
    )
    parser.add_argument(
        '--interval',
        type=int,
        help='Minutes between passes (default: SYNC_INTERVAL_MINUTES)'
    )
    parser.add_argument(
        '--create-tables',
        action='store_true',
        help='Create missing tables before syncing'
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = SyncConfig.from_env()
    if args.parks:
        config.enabled_parks = list(args.parks)
    if args.interval:
        config.sync_interval_minutes = args.interval

    db = Database()
    if args.create_tables:
        db.create_all()

    themeparks_client = ThemeParksWikiClient()
    queue_times_client = QueueTimesClient()
    service = BackgroundSyncService(db, themeparks_client, queue_times_client, config=config)

    try:
        if args.once:
            result = service.run_full_sync()
            print(json.dumps(result.to_dict(), indent=2))
            return 0 if all(source.success for source in result.sources.values()) else 1

        shutdown = threading.Event()

        def handle_signal(signum, frame):
            logger.info("Shutdown signal received", extra={"signal": signum})
            shutdown.set()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        service.start()
        shutdown.wait()
        service.stop()
        return 0
    finally:
        themeparks_client.close()
        queue_times_client.close()
        db.close()


if __name__ == '__main__':
    sys.exit(main())
