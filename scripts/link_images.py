"""Link uploaded Cosmic media to migrated radio shows by legacy image filename.

Usage:
    python scripts/link_images.py --dry-run
    python scripts/link_images.py --section radio-shows --limit 100
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import cosmic_client, craft_export, database, migration
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("link_images")


def main():
    parser = argparse.ArgumentParser(description="Attach Cosmic media to migrated radio shows.")
    parser.add_argument("--section", default="radio-shows", help="Exported Craft section to read")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Report matches without updating Cosmic")
    parser.add_argument("--limit", type=int, default=None, help="Max legacy entries to process")
    args = parser.parse_args()

    try:
        require("cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key")
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"link-images-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="link_images", dry_run=args.dry_run)
    try:
        refs = migration.load_legacy_image_refs(
            craft_export.load_export(args.section), craft_export.load_export("assets"),
        )
        if args.limit:
            refs = refs[:args.limit]
        logger.info("Found %d legacy entries with images", len(refs))

        media = cosmic_client.list_media()
        shows = cosmic_client.find_all_objects("radio-shows", props="id,title,slug,metadata", status="any")
        report = migration.link_images(refs, media, shows, dry_run=args.dry_run)
    except WWFMError as e:
        logger.error("Image linking failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    database.log_step(run_id, "link images", "success",
                      f"updated={len(report.updated)} missing_media={len(report.missing_media)} "
                      f"unmatched={len(report.unmatched_slugs)} failed={len(report.failed)}")
    database.finish_run(run_id, "success")
    print(migration.format_image_report(report))


if __name__ == "__main__":
    main()
