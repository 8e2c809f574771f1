"""Recurring syncs between Cosmic, RadioCult and the legacy Craft CMS.

Each sync processes items one at a time: a failure on one item is logged,
counted and recorded in ``errors`` while the rest carry on.
"""

import logging
from datetime import UTC, datetime, timedelta

from wwfm import cosmic_client, radiocult_client
from wwfm.date_utils import parse_broadcast_datetime
from wwfm.exceptions import ConfigError, CosmicAPIError, RadioCultError
from wwfm.models import RadioCultArtist, RadioCultEvent

logger = logging.getLogger(__name__)

RADIOCULT_SOURCE = "radiocult-sync"
# Craft section and Cosmic type that migrate_content links
PLAYER_SECTION = "radio-shows"
PLAYER_OBJECT_TYPE = "radio-shows"
DEFAULT_DURATION_MINUTES = 60


# --- RadioCult -> Cosmic episodes ---

def _episode_exists(event: RadioCultEvent) -> bool:
    """An episode already carries this event id, or already uses its slug."""
    linked, _ = cosmic_client.find_objects(
        "episode", query={"metadata.radiocult_event_id": event.id},
        props="id", limit=1, status="any",
    )
    if linked:
        return True
    return cosmic_client.find_one("episode", slug=event.slug, status="any") is not None


def _host_id(artist: RadioCultArtist, hosts_by_name: dict[str, str]) -> str | None:
    """Id of the Cosmic host named like artist, creating the host if needed."""
    key = artist.name.lower()
    if key in hosts_by_name:
        return hosts_by_name[key]
    logger.info("Creating new host: %s", artist.name)
    created = cosmic_client.insert_object({
        "type": "regular-hosts",
        "title": artist.name,
        "slug": artist.slug,
        "metadata": {
            "description": artist.description or None,
            "image": {"url": artist.image_url} if artist.image_url else None,
        },
    })
    host_id = created.get("id")
    if host_id:
        hosts_by_name[key] = host_id
    return host_id


def episode_from_event(event: RadioCultEvent, host_id: str | None = None) -> dict:
    """Cosmic ``episode`` insert payload for a RadioCult event."""
    start = datetime.fromisoformat(event.start_time.replace("Z", "+00:00")).astimezone(UTC)
    metadata = {
        "subtitle": event.show_name or None,
        "description": event.description or None,
        "broadcast_date": start.date().isoformat(),
        "broadcast_time": start.strftime("%H:%M"),
        "duration": f"{event.duration}:00",
        "radiocult_event_id": event.id,
        "source": RADIOCULT_SOURCE,
        "featured_on_homepage": False,
    }
    if event.image_url:
        metadata["image"] = {"url": event.image_url}
    if host_id:
        metadata["regular_hosts"] = [host_id]
    return {
        "type": "episode",
        "title": event.show_name or "Untitled Show",
        "slug": event.slug,
        "status": "published",
        "metadata": metadata,
    }


def sync_radiocult_to_cosmic(days_back: int = 7, days_ahead: int = 30,
                             now: datetime | None = None, dry_run: bool = False) -> dict:
    """Create a Cosmic episode for every RadioCult event that has none yet.

    Returns:
        Counts of created, skipped and errors, plus a ``details`` breakdown.

    Raises:
        RadioCultError, ConfigError: If the events cannot be fetched at all.
    """
    now = now or datetime.now(UTC)
    start, end = now - timedelta(days=days_back), now + timedelta(days=days_ahead)
    logger.info("Fetching RadioCult events from %s to %s", start.isoformat(), end.isoformat())
    events = radiocult_client.get_events(start, end, limit=500, force_refresh=True)

    result = {"created": 0, "skipped": 0, "errors": 0,
              "details": {"created": [], "skipped": [], "errors": []}}
    if not events:
        logger.info("No events found in RadioCult")
        return result

    hosts_by_name: dict[str, str] | None = None
    for event in events:
        if not event.show_name or not event.slug or not event.start_time:
            result["skipped"] += 1
            result["details"]["skipped"].append(f"{event.id} (missing data)")
            continue
        try:
            if _episode_exists(event):
                result["skipped"] += 1
                result["details"]["skipped"].append(event.show_name)
                continue
            if dry_run:
                logger.info("[dry-run] Would create episode '%s' (%s)", event.show_name, event.slug)
                result["created"] += 1
                result["details"]["created"].append(event.show_name)
                continue

            host_id = None
            if event.artists:
                if hosts_by_name is None:
                    hosts = cosmic_client.find_all_objects("regular-hosts", props="id,slug,title")
                    hosts_by_name = {(h.get("title") or "").lower(): h["id"] for h in hosts}
                host_id = _host_id(event.artists[0], hosts_by_name)
            cosmic_client.insert_object(episode_from_event(event, host_id))
        except (CosmicAPIError, ConfigError, ValueError) as e:
            logger.error("Error processing event %s: %s", event.show_name, e)
            result["errors"] += 1
            result["details"]["errors"].append({"show": event.show_name, "error": str(e)})
            continue
        result["created"] += 1
        result["details"]["created"].append(event.show_name)

    logger.info("RadioCult sync complete: %d created, %d skipped, %d errors",
                result["created"], result["skipped"], result["errors"])
    return result


# --- Cosmic episodes -> RadioCult events ---

def _duration_minutes(value) -> int:
    try:
        return int(str(value or DEFAULT_DURATION_MINUTES).split(":")[0]) or DEFAULT_DURATION_MINUTES
    except ValueError:
        return DEFAULT_DURATION_MINUTES


def needs_radiocult_event(episode: dict) -> bool:
    """Uploaded to RadioCult (has a media id) but not yet scheduled there."""
    metadata = episode.get("metadata") or {}
    return bool(metadata.get("radiocult_media_id")) and not metadata.get("radiocult_event_id")


def schedule_episode(episode: dict, now: datetime | None = None) -> str:
    """Schedule one episode in RadioCult, creating its show first if needed.

    Returns:
        The new RadioCult event id, which is also written back to the episode.

    Raises:
        ValueError: If the episode lacks an artist id or a broadcast date.
        RadioCultError, CosmicAPIError: If a remote call fails.
    """
    metadata = episode.get("metadata") or {}
    title = episode.get("title") or ""
    artist_id = metadata.get("radiocult_artist_id")
    if not artist_id:
        raise ValueError("Missing RadioCult artist ID")
    start = parse_broadcast_datetime(metadata.get("broadcast_date"), metadata.get("broadcast_time"),
                                     metadata.get("broadcast_date_old"))
    if start is None:
        raise ValueError("Invalid broadcast date")
    end = start + timedelta(minutes=_duration_minutes(metadata.get("duration")))
    description = metadata.get("description") or title

    show_id = metadata.get("radiocult_show_id")
    if not show_id:
        show_id = radiocult_client.create_show(title, description, artist_id)
        cosmic_client.update_object(episode["id"], {"metadata": {"radiocult_show_id": show_id}})

    event_id = radiocult_client.create_event(show_id, start, end, metadata["radiocult_media_id"],
                                             description)
    cosmic_client.update_object(episode["id"], {"metadata": {
        "radiocult_event_id": event_id,
        "radiocult_synced": True,
        "radiocult_synced_at": (now or datetime.now(UTC)).isoformat(),
    }})
    return event_id


def sync_episodes_to_radiocult(limit: int = 100, dry_run: bool = False) -> dict:
    """Schedule published episodes whose media is in RadioCult but have no event yet."""
    episodes, _ = cosmic_client.find_objects("episode", props="id,title,slug,metadata", limit=limit)
    pending = [e for e in episodes if needs_radiocult_event(e)]
    result = {"checked": len(episodes), "synced": 0, "failed": 0, "errors": []}
    if not pending:
        logger.info("No episodes need syncing to RadioCult")
        return result

    logger.info("Found %d episode(s) to schedule in RadioCult", len(pending))
    for episode in pending:
        title = episode.get("title") or episode.get("id")
        if dry_run:
            logger.info("[dry-run] Would schedule '%s' in RadioCult", title)
            result["synced"] += 1
            continue
        try:
            event_id = schedule_episode(episode)
        except (RadioCultError, CosmicAPIError, ConfigError, ValueError) as e:
            logger.error("Failed to sync '%s': %s", title, e)
            result["failed"] += 1
            result["errors"].append(f"{title}: {e}")
            continue
        logger.info("Synced '%s' to RadioCult (event %s)", title, event_id)
        result["synced"] += 1
    return result


# --- Craft player URLs -> Cosmic ---

def sync_player_urls(craft_entries: list[dict], objects: list[dict],
                     dry_run: bool = False) -> dict:
    """Copy the legacy player URL onto migrated objects that have none.

    Objects are matched to Craft entries by slug.
    """
    players = {e.get("slug"): (e.get("player") or "").strip() for e in craft_entries if e.get("slug")}
    missing = [o for o in objects if not ((o.get("metadata") or {}).get("player") or "").strip()]
    result = {"checked": len(objects), "updated": 0, "failed": 0, "errors": []}
    logger.info("%d of %d object(s) need a player URL", len(missing), len(objects))

    for obj in missing:
        title = obj.get("title") or obj.get("slug")
        slug = obj.get("slug")
        if slug not in players:
            result["failed"] += 1
            result["errors"].append(f"{title}: No matching Craft entry found")
            continue
        if not players[slug]:
            result["failed"] += 1
            result["errors"].append(f"{title}: Craft entry has no player URL")
            continue
        if dry_run:
            logger.info("[dry-run] Would set player for '%s' to %s", title, players[slug])
            result["updated"] += 1
            continue
        try:
            cosmic_client.update_object(obj["id"], {"metadata": {"player": players[slug]}})
        except (CosmicAPIError, ConfigError) as e:
            logger.error("Error updating '%s': %s", title, e)
            result["failed"] += 1
            result["errors"].append(f"{title}: {e}")
            continue
        result["updated"] += 1

    logger.info("Player URL sync: %d updated, %d failed", result["updated"], result["failed"])
    return result
