"""Sync between RadioCult and Cosmic episodes.

``--direction to-cosmic`` creates Cosmic episodes for RadioCult events that
have none. ``--direction to-radiocult`` schedules uploaded Cosmic episodes
as RadioCult events.

Usage:
    python scripts/sync_radiocult.py --dry-run
    python scripts/sync_radiocult.py --days-back 14 --days-ahead 60
    python scripts/sync_radiocult.py --direction to-radiocult --limit 50
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import database, sync
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("sync_radiocult")


def main():
    parser = argparse.ArgumentParser(description="Sync RadioCult events and Cosmic episodes.")
    parser.add_argument("--direction", choices=["to-cosmic", "to-radiocult"], default="to-cosmic")
    parser.add_argument("--days-back", type=int, default=7, help="Days of past events to sync")
    parser.add_argument("--days-ahead", type=int, default=30, help="Days of upcoming events to sync")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Log changes without writing anywhere")
    parser.add_argument("--limit", type=int, default=100,
                        help="Max Cosmic episodes to check (to-radiocult only)")
    args = parser.parse_args()

    required = ["cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key", "radiocult_station_id"]
    required.append("radiocult_publishable_key" if args.direction == "to-cosmic"
                    else "radiocult_secret_key")
    try:
        require(*required)
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"radiocult-sync-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script=f"sync_radiocult {args.direction}", dry_run=args.dry_run)
    try:
        if args.direction == "to-cosmic":
            result = sync.sync_radiocult_to_cosmic(args.days_back, args.days_ahead,
                                                   dry_run=args.dry_run)
            summary = f"created={result['created']} skipped={result['skipped']} errors={result['errors']}"
            failed = result["errors"]
        else:
            result = sync.sync_episodes_to_radiocult(limit=args.limit, dry_run=args.dry_run)
            summary = f"checked={result['checked']} synced={result['synced']} failed={result['failed']}"
            failed = result["failed"]
    except WWFMError as e:
        logger.error("RadioCult sync failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    database.log_step(run_id, args.direction, "success", summary)
    database.finish_run(run_id, "success" if not failed else "partial")
    print(f"\n{args.direction}: {summary}")


if __name__ == "__main__":
    main()
