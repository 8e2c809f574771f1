"""Delete duplicate radio shows, keeping the one with the most complete metadata.

Usage:
    python scripts/deduplicate_radio_shows.py --dry-run
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
logger = logging.getLogger("deduplicate_radio_shows")


def main():
    parser = argparse.ArgumentParser(description="Remove duplicate radio shows from Cosmic.")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="List duplicates without deleting")
    parser.add_argument("--limit", type=int, default=None, help="Max shows to consider")
    args = parser.parse_args()

    try:
        require("cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key")
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"dedupe-shows-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="deduplicate_radio_shows", dry_run=args.dry_run)
    try:
        shows = cosmic_client.find_all_objects("radio-shows", props="id,title,slug,metadata", status="any")
        if args.limit:
            shows = shows[:args.limit]
        plan = migration.plan_deduplication(shows)
        logger.info("Found %d duplicated titles among %d shows", len(plan), len(shows))
        deleted = migration.deduplicate_radio_shows(shows, dry_run=args.dry_run)
    except WWFMError as e:
        logger.error("Deduplication failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    database.log_step(run_id, "deduplicate", "success", f"{len(deleted)} deleted")
    database.finish_run(run_id, "success")
    print(f"\n{'Would delete' if args.dry_run else 'Deleted'} {len(deleted)} duplicate show(s) "
          f"across {len(plan)} title(s).")


if __name__ == "__main__":
    main()
