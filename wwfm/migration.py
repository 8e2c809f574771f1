"""One-off migration from the legacy Craft CMS into Cosmic.

Every operation takes ``dry_run``: when set, nothing is written to Cosmic and
the planned changes are only logged.
"""

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from bs4 import BeautifulSoup

from wwfm import cosmic_client, database
from wwfm.date_utils import extract_date_part, extract_time_part
from wwfm.exceptions import ConfigError, CosmicAPIError
from wwfm.matching import find_best_matching_slug
from wwfm.models import CategoryMove, ImageLinkReport, LegacyImageRef
from wwfm.sanitize import sanitize_editorial_with_embeds, sanitize_tracklist

logger = logging.getLogger(__name__)

# Fields that make a radio show worth keeping over its duplicates
METADATA_SCORE_WEIGHTS = {
    "description": 3,
    "player": 3,
    "tracklist": 2,
    "body_text": 2,
    "broadcast_date": 2,
    "broadcast_time": 2,
    "duration": 2,
    "image": 2,
    "subtitle": 1,
    "page_link": 1,
    "source": 1,
}


# --- Transforms ---

def _created_date(entry: dict) -> str:
    return extract_date_part(entry.get("dateCreated") or "") or ""


def _asset_name(value) -> str:
    """Filename of an asset given as a filename, URL or {filename|url} dict."""
    if isinstance(value, list):
        value = value[0] if value else ""
    if isinstance(value, dict):
        value = value.get("filename") or value.get("url") or ""
    if not isinstance(value, str):
        return ""
    return PurePosixPath(value.split("?")[0]).name


def transform_radio_show(entry: dict) -> dict:
    """Craft radio show entry -> Cosmic ``radio-shows`` insert payload.

    A legacy ISO broadcast date is split into date and time.
    """
    broadcast = entry.get("broadcastDate") or ""
    metadata = {
        "subtitle": entry.get("subtitle") or "",
        "description": entry.get("description") or "",
        "page_link": "",
        "source": "",
        "broadcast_date": extract_date_part(broadcast) or _created_date(entry),
        "broadcast_time": extract_time_part(broadcast) or "",
        "duration": entry.get("duration") or "",
        "player": entry.get("player") or "",
        "tracklist": sanitize_tracklist(entry.get("tracklist")),
        "body_text": sanitize_editorial_with_embeds(entry.get("bodyText")),
    }
    image = _asset_name(entry.get("thumbnail"))
    if image:
        metadata["image"] = image
    return {
        "type": "radio-shows",
        "title": entry.get("title", ""),
        "slug": entry.get("slug", ""),
        "metadata": metadata,
    }


def _body_html(body) -> str:
    """Craft body field: HTML string or a list of matrix blocks."""
    if isinstance(body, str):
        return body
    paragraphs = []
    for block in body or []:
        text = block.get("text") if isinstance(block, dict) else None
        if text:
            paragraphs.append(text if text.lstrip().startswith("<") else f"<p>{text}</p>")
    return "".join(paragraphs)


def transform_article(entry: dict, author_id: str | None = None) -> dict:
    """Craft editorial entry -> Cosmic ``posts`` insert payload."""
    content = sanitize_editorial_with_embeds(_body_html(entry.get("body")))
    description = entry.get("description") or ""
    if description:
        excerpt = BeautifulSoup(description, "html.parser").get_text(" ", strip=True)
    else:
        first = BeautifulSoup(content, "html.parser").find("p")
        excerpt = first.get_text(" ", strip=True) if first else ""

    metadata = {
        "date": _created_date(entry) or datetime.now(UTC).date().isoformat(),
        "content": content or description,
        "excerpt": excerpt,
    }
    if author_id:
        metadata["author"] = author_id
    image = _asset_name(entry.get("thumbnail"))
    if image:
        metadata["image"] = image
    return {
        "type": "posts",
        "title": entry.get("title", ""),
        "slug": entry.get("slug", ""),
        "status": "published",
        "metadata": metadata,
    }


def dedupe_by_title(entries: list[dict]) -> list[dict]:
    """Keep the most recently created entry for each title."""
    latest: dict[str, dict] = {}
    for entry in entries:
        title = entry.get("title") or ""
        current = latest.get(title)
        if current is None or (entry.get("dateCreated") or "") > (current.get("dateCreated") or ""):
            latest[title] = entry
    return list(latest.values())


def migrate_entries(kind: str, entries: list[dict], transform: Callable[[dict], dict],
                    dry_run: bool = False, limit: int | None = None,
                    db_path: Path | None = None) -> dict[str, int]:
    """Insert transformed legacy entries into Cosmic.

    Entries already recorded in the ledger under ``kind`` are skipped, so an
    interrupted run can simply be started again.

    Returns:
        Counts of total, migrated, skipped and failed entries.
    """
    stats = {"total": 0, "migrated": 0, "skipped": 0, "failed": 0}
    for entry in entries[:limit] if limit else entries:
        stats["total"] += 1
        legacy_id = str(entry.get("id", ""))
        if legacy_id and database.get_mapping(kind, legacy_id, db_path=db_path):
            stats["skipped"] += 1
            continue

        payload = transform(entry)
        if not payload.get("title"):
            logger.warning("Skipping untitled %s entry %s", kind, legacy_id)
            stats["skipped"] += 1
            continue

        if dry_run:
            logger.info("[dry-run] Would create %s '%s'", payload["type"], payload["title"])
            stats["migrated"] += 1
            continue

        try:
            created = cosmic_client.insert_object(payload)
        except CosmicAPIError as e:
            logger.error("Failed to create %s '%s': %s", kind, payload["title"], e)
            stats["failed"] += 1
            continue
        if legacy_id:
            database.record_mapping(kind, legacy_id, created.get("id", ""),
                                    slug=payload.get("slug", ""), db_path=db_path)
        stats["migrated"] += 1

    logger.info("Migrated %s: %s", kind, stats)
    return stats


# --- Image linking ---

def _strip_extension(name: str) -> str:
    return re.sub(r"\.[^/.]+$", "", name)


def build_media_lookup(media: list[dict]) -> dict[str, dict]:
    """Index media by original name, name and basename, each also lowercased."""
    lookup: dict[str, dict] = {}
    for item in media:
        original = item.get("original_name")
        if not original:
            logger.warning("Media item missing original_name: %s", item.get("id"))
            continue
        keys = [original, item.get("name") or "", PurePosixPath(original).name]
        for key in keys:
            if key:
                lookup[key] = item
                lookup[key.lower()] = item
    return lookup


def find_media(lookup: dict[str, dict], filename: str) -> dict | None:
    """Match a legacy filename, retrying without its extension."""
    for candidate in (filename, _strip_extension(filename)):
        item = lookup.get(candidate) or lookup.get(candidate.lower())
        if item:
            return item
    return None


def load_legacy_image_refs(entries: list[dict], assets: list[dict]) -> list[LegacyImageRef]:
    """Pair exported Craft entries with the filename of their image asset.

    Entries reference their image by asset id (resolved through ``assets``)
    or directly by filename or URL. Entries without an image are dropped.
    """
    asset_files = {str(a.get("id")): a.get("filename", "") for a in assets if a.get("id") is not None}
    refs = []
    for entry in entries:
        asset_id = entry.get("thumbnailId") or entry.get("imageId")
        image = asset_files.get(str(asset_id), "") if asset_id is not None else ""
        if not image:
            image = _asset_name(entry.get("thumbnail") or entry.get("image"))
        if not image:
            continue
        refs.append(LegacyImageRef(
            entry_id=str(entry.get("id", "")),
            title=entry.get("title", ""),
            slug=entry.get("slug", ""),
            image=image,
            asset_id=str(asset_id or ""),
            date_created=entry.get("dateCreated") or "",
        ))
    refs.sort(key=lambda r: r.date_created, reverse=True)
    return refs


def link_images(refs: list[LegacyImageRef], media: list[dict], objects: list[dict],
                dry_run: bool = False) -> ImageLinkReport:
    """Attach uploaded media to the Cosmic objects migrated from legacy entries.

    Args:
        refs: Legacy entries with their image filenames.
        media: Every media item in the bucket.
        objects: Cosmic objects (radio shows) with id, title and slug.
        dry_run: Log matches without updating anything.

    Returns:
        Report of updated objects, missing media, unmatched slugs and failures.
    """
    lookup = build_media_lookup(media)
    by_slug = {o.get("slug"): o for o in objects if o.get("slug")}
    slugs = list(by_slug)
    report = ImageLinkReport()

    for ref in refs:
        item = find_media(lookup, ref.image)
        if item is None:
            logger.warning("No media found for '%s' (%s)", ref.title, ref.image)
            report.missing_media.append(ref.image)
            continue

        match = find_best_matching_slug(ref.slug, slugs)
        if match is None:
            report.unmatched_slugs.append(ref.slug)
            continue

        obj = by_slug[match]
        if dry_run:
            logger.info("[dry-run] Would link '%s' -> %s", obj.get("title"), item.get("name"))
            report.updated.append(match)
            continue
        try:
            cosmic_client.update_object(obj["id"], {
                "metadata": {"image": item["name"]},
                "thumbnail": item["name"],
            })
        except CosmicAPIError as e:
            logger.error("Failed to update '%s': %s", obj.get("title"), e)
            report.failed.append(match)
            continue
        report.updated.append(match)

    return report


def format_image_report(report: ImageLinkReport) -> str:
    lines = [
        "Image linking summary:",
        f"  Updated:        {len(report.updated)}",
        f"  Missing media:  {len(report.missing_media)}",
        f"  Unmatched slug: {len(report.unmatched_slugs)}",
        f"  Failed:         {len(report.failed)}",
    ]
    for slug in report.unmatched_slugs:
        lines.append(f"  ? {slug}")
    return "\n".join(lines)


# --- Deduplication ---

def metadata_score(show: dict) -> int:
    """How complete a radio show's metadata is."""
    metadata = show.get("metadata") or {}
    return sum(weight for key, weight in METADATA_SCORE_WEIGHTS.items() if metadata.get(key))


def plan_deduplication(shows: list[dict]) -> list[tuple[dict, list[dict]]]:
    """Group shows by normalized title.

    Returns:
        (kept, dropped) per duplicated title. The kept show has the highest
        metadata score; ties go to the first one listed.
    """
    groups: dict[str, list[dict]] = {}
    for show in shows:
        title = (show.get("title") or "").lower().strip()
        groups.setdefault(title, []).append(show)

    plan = []
    for group in groups.values():
        if len(group) < 2:
            continue
        ranked = sorted(group, key=metadata_score, reverse=True)
        plan.append((ranked[0], ranked[1:]))
    return plan


def deduplicate_radio_shows(shows: list[dict], dry_run: bool = False) -> list[str]:
    """Delete every duplicate radio show except the most complete one.

    Returns:
        Ids deleted (or that would be deleted on a dry run).
    """
    deleted = []
    for kept, dropped in plan_deduplication(shows):
        logger.info("Keeping '%s' (%s, score %d), %d duplicate(s)",
                    kept.get("title"), kept.get("id"), metadata_score(kept), len(dropped))
        for show in dropped:
            if dry_run:
                logger.info("[dry-run] Would delete %s (score %d)", show.get("id"), metadata_score(show))
                deleted.append(show["id"])
                continue
            try:
                cosmic_client.delete_object(show["id"])
            except CosmicAPIError as e:
                logger.error("Failed to delete %s: %s", show.get("id"), e)
                continue
            deleted.append(show["id"])
    return deleted


# --- Broadcast dates ---

def split_broadcast_date(metadata: dict) -> dict | None:
    """Metadata patch splitting a legacy ISO broadcast date, or None if not needed."""
    legacy = metadata.get("broadcast_date_old") or metadata.get("broadcast_date")
    if not legacy or "T" not in legacy:
        return None
    date_part = extract_date_part(legacy)
    if not date_part:
        return None
    return {
        "broadcast_date": date_part,
        "broadcast_time": extract_time_part(legacy) or metadata.get("broadcast_time") or "00:00",
        "broadcast_date_old": legacy,
    }


def update_broadcast_dates(episodes: list[dict], dry_run: bool = False) -> dict[str, int]:
    """Split legacy ISO broadcast dates into date and time fields."""
    stats = {"total": len(episodes), "migrated": 0, "skipped": 0, "errors": 0}
    for episode in episodes:
        patch = split_broadcast_date(episode.get("metadata") or {})
        if patch is None:
            stats["skipped"] += 1
            continue
        if dry_run:
            logger.info("[dry-run] '%s': %s %s", episode.get("title"),
                        patch["broadcast_date"], patch["broadcast_time"])
            stats["migrated"] += 1
            continue
        try:
            cosmic_client.update_object(episode["id"], {"metadata": patch})
        except CosmicAPIError as e:
            logger.error("Failed to update '%s': %s", episode.get("title"), e)
            stats["errors"] += 1
            continue
        stats["migrated"] += 1
    logger.info("Broadcast dates: %s", stats)
    return stats


# --- Category reorganization ---

CATEGORY_MOVE_KIND = "category-move"


def apply_category_moves(moves: list[CategoryMove], objects: list[dict],
                         dry_run: bool = False, db_path: Path | None = None) -> dict[str, int]:
    """Apply a reorganization plan.

    Duplicates are deleted. A recategorized object is recreated under its
    new type with the same title, slug and metadata, then the old one is
    deleted. The new object is recorded in the ledger as soon as it exists,
    so a rerun after a failed delete only retries the delete.
    """
    by_id = {o.get("id"): o for o in objects}
    stats = {"deleted": 0, "moved": 0, "failed": 0}
    for move in moves:
        if dry_run:
            action = "delete duplicate" if move.duplicate_of else f"move to {move.to_type}"
            logger.info("[dry-run] Would %s: '%s' (%s)", action, move.title, move.from_type)
            continue
        try:
            if not move.duplicate_of:
                _recreate_under_new_type(move, by_id.get(move.object_id) or {}, db_path)
            cosmic_client.delete_object(move.object_id)
        except (CosmicAPIError, ConfigError) as e:
            logger.error("Failed to apply move for '%s': %s", move.title, e)
            stats["failed"] += 1
            continue
        stats["deleted" if move.duplicate_of else "moved"] += 1
    return stats


def _recreate_under_new_type(move: CategoryMove, source: dict, db_path: Path | None) -> None:
    existing = database.get_mapping(CATEGORY_MOVE_KIND, move.object_id, db_path=db_path)
    if existing:
        logger.info("'%s' already recreated as %s, retrying delete only", move.title, existing)
        return
    created = cosmic_client.insert_object({
        "type": move.to_type,
        "title": move.title,
        "slug": source.get("slug", ""),
        "metadata": source.get("metadata") or {},
    })
    database.record_mapping(CATEGORY_MOVE_KIND, move.object_id, created.get("id", ""),
                            slug=source.get("slug", ""), db_path=db_path)
