"""Split legacy ISO broadcast dates on episodes into broadcast_date + broadcast_time.

Usage:
    python scripts/update_broadcast_dates.py --dry-run
    python scripts/update_broadcast_dates.py --limit 200
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import cosmic_client, database, migration
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("update_broadcast_dates")


def main():
    parser = argparse.ArgumentParser(description="Split legacy broadcast dates into date and time.")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Log changes without updating Cosmic")
    parser.add_argument("--limit", type=int, default=None, help="Max episodes to process")
    args = parser.parse_args()

    try:
        require("cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key")
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"broadcast-dates-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="update_broadcast_dates", dry_run=args.dry_run)
    try:
        episodes = cosmic_client.find_all_objects("episode", props="id,title,metadata", status="any")
        if args.limit:
            episodes = episodes[:args.limit]
        stats = migration.update_broadcast_dates(episodes, dry_run=args.dry_run)
    except WWFMError as e:
        logger.error("Broadcast date migration failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    database.log_step(run_id, "split broadcast dates", "success", str(stats))
    database.finish_run(run_id, "success")
    print(f"\nTotal: {stats['total']}  migrated: {stats['migrated']}  "
          f"skipped: {stats['skipped']}  errors: {stats['errors']}")


if __name__ == "__main__":
    main()
