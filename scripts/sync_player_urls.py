"""Copy legacy Craft player URLs onto migrated radio shows that have none.

Usage:
    python scripts/sync_player_urls.py --dry-run
    python scripts/sync_player_urls.py --from-export --limit 100
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import cosmic_client, craft_export, database, sync
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("sync_player_urls")


def main():
    parser = argparse.ArgumentParser(description="Sync player URLs from Craft to Cosmic.")
    parser.add_argument("--from-export", action="store_true",
                        help="Read Craft entries from the local export instead of the live API")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Log changes without updating Cosmic")
    parser.add_argument("--limit", type=int, default=None, help="Max Cosmic objects to check")
    args = parser.parse_args()

    required = ["cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key"]
    if not args.from_export:
        required += ["craft_url", "craft_token"]
    try:
        require(*required)
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"player-urls-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="sync_player_urls", dry_run=args.dry_run)
    try:
        if args.from_export:
            craft_entries = craft_export.load_export(sync.PLAYER_SECTION)
        else:
            craft_entries = craft_export.fetch_endpoint(f"entries/{sync.PLAYER_SECTION}")["data"]
        objects = cosmic_client.find_all_objects(sync.PLAYER_OBJECT_TYPE,
                                                 props="id,title,slug,metadata", status="any")
        if args.limit:
            objects = objects[:args.limit]
        result = sync.sync_player_urls(craft_entries, objects, dry_run=args.dry_run)
    except WWFMError as e:
        logger.error("Player URL sync failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    database.log_step(run_id, "sync player urls", "success",
                      f"updated={result['updated']} failed={result['failed']}")
    database.finish_run(run_id, "success" if not result["failed"] else "partial")

    print(f"\nChecked: {result['checked']}  updated: {result['updated']}  failed: {result['failed']}")
    for error in result["errors"]:
        print(f"  - {error}")


if __name__ == "__main__":
    main()
