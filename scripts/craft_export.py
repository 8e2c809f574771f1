"""Export the legacy Craft CMS (sections, entries, assets) to JSON files.

Usage:
    python scripts/craft_export.py
    python scripts/craft_export.py --out data/craft-export
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import craft_export, database
from wwfm.exceptions import WWFMError

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("craft_export")


def main():
    parser = argparse.ArgumentParser(description="Export Craft CMS content to JSON.")
    parser.add_argument("--out", default=str(settings.craft_export_dir),
                        help=f"Output directory (default: {settings.craft_export_dir})")
    args = parser.parse_args()

    try:
        require("craft_url", "craft_token")
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"craft-export-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="craft_export")
    try:
        counts = craft_export.export_all(Path(args.out))
    except WWFMError as e:
        logger.error("Export failed: %s", e)
        database.finish_run(run_id, "failed", str(e))
        sys.exit(1)

    for name, count in counts.items():
        database.log_step(run_id, f"export {name}", "success", f"{count} items")
    database.finish_run(run_id, "success")

    print(f"\n{'='*60}")
    print(f"Exported to {args.out}")
    for name, count in counts.items():
        print(f"  {name:<24} {count}")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
