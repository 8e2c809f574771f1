"""Migrate exported Craft radio shows and editorial entries into Cosmic.

Entries already recorded in the migration ledger are skipped, so the script
can be re-run after a failure.

Usage:
    python scripts/migrate_content.py --dry-run
    python scripts/migrate_content.py --section radio-shows --limit 50
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import craft_export, database, migration
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("migrate_content")

SECTIONS = {
    "radio-shows": ("radio-show", migration.transform_radio_show),
    "editorial": ("article", migration.transform_article),
}


def main():
    parser = argparse.ArgumentParser(description="Migrate Craft entries into Cosmic.")
    parser.add_argument("--section", choices=sorted(SECTIONS), action="append",
                        help="Section to migrate (repeatable; default: all)")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Log planned inserts without writing to Cosmic")
    parser.add_argument("--limit", type=int, default=None, help="Max entries per section")
    args = parser.parse_args()

    try:
        require("cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key")
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"migrate-content-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="migrate_content", dry_run=args.dry_run)
    totals = {}
    try:
        for section in args.section or sorted(SECTIONS):
            kind, transform = SECTIONS[section]
            entries = craft_export.load_export(section)
            if section == "editorial":
                entries = migration.dedupe_by_title(entries)
            logger.info("Migrating %d %s entries%s", len(entries), section,
                        " (dry run)" if args.dry_run else "")
            stats = migration.migrate_entries(kind, entries, transform,
                                              dry_run=args.dry_run, limit=args.limit)
            database.log_step(run_id, f"migrate {section}", "success", str(stats))
            totals[section] = stats
    except WWFMError as e:
        logger.error("Migration failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)
    database.finish_run(run_id, "success")

    print(f"\n{'='*60}")
    print(f"Migration {'(dry run) ' if args.dry_run else ''}finished, run {run_id}")
    for section, stats in totals.items():
        print(f"  {section:<14} migrated={stats['migrated']} skipped={stats['skipped']} "
              f"failed={stats['failed']}")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
