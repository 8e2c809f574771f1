"""Recategorize taxonomy objects (genres, hosts, locations, takeovers, types).

Titles are classified with keyword rules, or with Gemini when --llm is given,
and near-duplicate titles are folded together.

Usage:
    python scripts/reorganize_categories.py --dry-run
    python scripts/reorganize_categories.py --llm --limit 100
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import require, settings
from wwfm import categorizer, cosmic_client, database, migration
from wwfm.exceptions import WWFMError
from wwfm.models import CategoryMove

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("reorganize_categories")


def fetch_taxonomy() -> list[dict]:
    objects = []
    for object_type in categorizer.CATEGORY_TYPES:
        try:
            found = cosmic_client.find_all_objects(object_type, props="id,title,slug,type,metadata", depth=1)
        except WWFMError as e:
            logger.error("Error fetching %s: %s", object_type, e)
            continue
        for obj in found:
            obj.setdefault("type", object_type)
        objects.extend(found)
    return objects


def apply_llm_categories(moves: list[CategoryMove], objects: list[dict]) -> list[CategoryMove]:
    """Replace keyword categories with Gemini's for every kept object."""
    kept = [o for o in objects if not any(m.object_id == o.get("id") and m.duplicate_of for m in moves)]
    labels = categorizer.classify_terms_with_llm([o.get("title", "") for o in kept])
    duplicates = [m for m in moves if m.duplicate_of]
    recategorized = []
    for obj in kept:
        new_type = labels.get(obj.get("title", ""), {}).get("category")
        if new_type and new_type != obj.get("type"):
            recategorized.append(CategoryMove(
                object_id=obj.get("id", ""), title=obj.get("title", ""),
                from_type=obj.get("type", ""), to_type=new_type,
            ))
    return duplicates + recategorized


def main():
    parser = argparse.ArgumentParser(description="Reorganize taxonomy categories in Cosmic.")
    parser.add_argument("--dry-run", action="store_true", default=settings.dry_run,
                        help="Print the plan without changing Cosmic")
    parser.add_argument("--limit", type=int, default=None, help="Max objects to consider")
    parser.add_argument("--llm", action="store_true", help="Classify titles with Gemini")
    args = parser.parse_args()

    try:
        names = ["cosmic_bucket_slug", "cosmic_read_key", "cosmic_write_key"]
        require(*(names + ["gemini_api_key"] if args.llm else names))
    except WWFMError as e:
        logger.error("%s", e)
        sys.exit(1)

    run_id = f"reorganize-{uuid.uuid4().hex[:8]}"
    database.start_run(run_id, script="reorganize_categories", dry_run=args.dry_run)
    objects = fetch_taxonomy()
    if args.limit:
        objects = objects[:args.limit]
    logger.info("Total objects fetched: %d", len(objects))

    moves, stats = categorizer.plan_reorganization(objects)
    if args.llm:
        moves = apply_llm_categories(moves, objects)
    database.log_step(run_id, "plan", "success", f"{len(moves)} moves")

    result = migration.apply_category_moves(moves, objects, dry_run=args.dry_run)
    database.log_step(run_id, "apply", "success", str(result))
    database.finish_run(run_id, "success" if not result["failed"] else "partial")

    print("\nReorganization summary:")
    print(f"  Total objects processed: {stats['total']}")
    print(f"  Planned moves:           {sum(1 for m in moves if not m.duplicate_of)}")
    print(f"  Duplicates removed:      {sum(1 for m in moves if m.duplicate_of)}")
    for object_type, count in stats["by_type"].items():
        print(f"    {object_type}: {count}")
    if args.dry_run:
        print("\nThis was a dry run. No changes were made.")


if __name__ == "__main__":
    main()
