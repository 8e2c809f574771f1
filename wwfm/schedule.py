"""Weekly schedule reconciliation.

The public schedule for the current UK week is assembled from three sources:

1. manual overrides curated in Cosmic ``schedule`` objects,
2. published Cosmic episodes whose ``broadcast_date`` falls in the week,
3. RadioCult events, the live playout schedule.

The merged list holds exactly one item per (day, time slot). When sources
disagree about a slot, entries that link to an episode page win over those
that do not, then manual overrides win over automatic entries, then CMS
entries win over RadioCult.
"""

import logging
from datetime import UTC, datetime, timedelta

from config import LONDON_TZ, settings
from wwfm import cache, cosmic_client, radiocult_client
from wwfm.date_utils import (
    UK_WEEK_DAYS,
    get_current_uk_week,
    normalize_time,
    parse_duration_to_seconds,
    time_to_minutes,
    to_london,
    weekday_name,
)
from wwfm.exceptions import ConfigError, CosmicAPIError, RadioCultError
from wwfm.models import RadioCultEvent, ScheduleShow, WeeklySchedule

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/image-placeholder.png"
UNTITLED = "Untitled"
EPISODE_CACHE_TAGS = ("episodes",)


def target_days() -> list[str]:
    """Weekdays covered by the schedule (SCHEDULE_DAYS, default all seven)."""
    raw = settings.schedule_days.strip()
    if not raw:
        return list(UK_WEEK_DAYS)
    wanted = {d.strip().lower() for d in raw.split(",") if d.strip()}
    return [d for d in UK_WEEK_DAYS if d.lower() in wanted]


# --- Episode resolution ---

def _is_episode_object(value) -> bool:
    return isinstance(value, dict) and value.get("type") == "episode" and "metadata" in value


def _fetch_episode(object_id: str | None = None, slug: str | None = None) -> dict | None:
    key = f"episode:id={object_id}:slug={slug}"
    cached = cache.get(key)
    if cached is not None:
        return cached
    try:
        episode = cosmic_client.find_one("episode", object_id=object_id, slug=slug, depth=2)
    except (CosmicAPIError, ConfigError) as e:
        logger.warning("[Schedule] Unable to fetch episode %s: %s", object_id or slug, e)
        return None
    if episode:
        cache.put(key, episode, EPISODE_CACHE_TAGS)
    return episode


def _resolve_link(link) -> dict | None:
    if not link:
        return None
    if _is_episode_object(link):
        return link
    if isinstance(link, str):
        return _fetch_episode(object_id=link) or _fetch_episode(slug=link)
    if isinstance(link, dict):
        if link.get("id"):
            return _fetch_episode(object_id=link["id"])
        if link.get("slug"):
            return _fetch_episode(slug=link["slug"])
    return None


def resolve_episode(entry) -> dict | None:
    """Resolve a schedule entry to its Cosmic episode.

    An entry may be the episode itself, wrap it under ``episode``, point at
    it through ``episode_link`` (top level or in metadata), or carry a bare
    id, slug or string reference.
    """
    if not entry:
        return None
    if isinstance(entry, str):
        return _resolve_link(entry)
    if not isinstance(entry, dict):
        return None
    if _is_episode_object(entry):
        return entry
    if entry.get("episode"):
        return resolve_episode(entry["episode"])
    metadata = entry.get("metadata") or {}
    if metadata.get("episode_link"):
        return _resolve_link(metadata["episode_link"])
    if entry.get("episode_link"):
        return _resolve_link(entry["episode_link"])
    if entry.get("id"):
        return _fetch_episode(object_id=entry["id"])
    if entry.get("slug"):
        return _fetch_episode(slug=entry["slug"])
    return None


# --- Building schedule items ---

def _episode_image(metadata: dict) -> str:
    image = metadata.get("image") or {}
    if not isinstance(image, dict):
        image = {}
    return (
        metadata.get("external_image_url")
        or image.get("imgix_url")
        or image.get("url")
        or PLACEHOLDER_IMAGE
    )


def build_schedule_show(episode: dict | None, fallback_title: str, show_day: str, date: str,
                        time: str, is_manual: bool, is_replay: bool = False,
                        override_duration: str | None = None,
                        url_override: str | None = None) -> ScheduleShow:
    """Build one schedule item from a (possibly missing) Cosmic episode."""
    metadata = (episode or {}).get("metadata") or {}
    title = fallback_title or (episode or {}).get("title") or UNTITLED
    slug = (episode or {}).get("slug")
    show_time = normalize_time(time) or "00:00"

    url = url_override or (
        f"/episode/{slug}" if slug else metadata.get("player") or metadata.get("source") or ""
    )

    genres = metadata.get("genres") or []
    hosts = metadata.get("regular_hosts") or []

    return ScheduleShow(
        show_key=slug or f"schedule-{title}-{date}-{show_time}",
        event_id=f"episode-{episode['id']}" if episode and episode.get("id")
        else f"schedule-{date}-{show_time}-{title}",
        show_time=show_time,
        show_day=show_day,
        date=date,
        name=title,
        url=url or "",
        picture=_episode_image(metadata),
        created_time=(episode or {}).get("created_at") or datetime.now(UTC).isoformat(),
        tags=[g.get("title") for g in genres if isinstance(g, dict) and g.get("title")],
        hosts=[h.get("title") for h in hosts if isinstance(h, dict) and h.get("title")],
        duration=parse_duration_to_seconds(override_duration or metadata.get("duration")),
        is_manual=is_manual,
        is_replay=is_replay,
        source="cosmic",
    )


def _schedule_entries(block) -> list:
    """A weekday block is either a list of entries or {"show": [...]}."""
    if isinstance(block, list):
        return block
    if isinstance(block, dict) and isinstance(block.get("show"), list):
        return block["show"]
    return []


def fetch_manual_overrides(day_dates: dict[str, str], days: list[str]) -> list[ScheduleShow]:
    """Schedule items curated by editors in Cosmic ``schedule`` objects."""
    try:
        schedules = cosmic_client.find_all_objects("schedule", props="id,metadata", depth=3)
    except (CosmicAPIError, ConfigError) as e:
        logger.warning("[Schedule] Failed to fetch schedule metadata: %s", e)
        return []

    overrides: list[ScheduleShow] = []
    for schedule in schedules:
        metadata = schedule.get("metadata") or {}
        is_replay = bool(settings.rerun_schedule_id) and schedule.get("id") == settings.rerun_schedule_id

        for day in days:
            if day not in day_dates:
                continue
            for entry in _schedule_entries(metadata.get(day.lower())):
                entry_meta = (entry.get("metadata") or {}) if isinstance(entry, dict) else {}
                entry_dict = entry if isinstance(entry, dict) else {}
                episode = resolve_episode(entry)
                episode_meta = (episode or {}).get("metadata") or {}

                time = (
                    entry_dict.get("broadcast_time_override")
                    or entry_dict.get("override_broadcast_time")
                    or entry_meta.get("override_broadcast_time")
                    or episode_meta.get("broadcast_time")
                    or "00:00"
                )
                overrides.append(build_schedule_show(
                    episode=episode,
                    fallback_title=entry_dict.get("title") or entry_dict.get("name")
                    or (episode or {}).get("title") or UNTITLED,
                    show_day=day,
                    date=day_dates[day],
                    time=time,
                    is_manual=True,
                    is_replay=is_replay,
                    override_duration=entry_dict.get("override_duration")
                    or entry_meta.get("override_duration"),
                    url_override=entry_dict.get("url"),
                ))

    logger.info("[Schedule] %d manual override(s)", len(overrides))
    return overrides


def fetch_episodes_by_date(date: str) -> list[dict]:
    """Published episodes broadcast on one date, ordered by broadcast time."""
    try:
        objects, _ = cosmic_client.find_objects(
            "episode",
            query={"metadata.broadcast_date": date},
            props="id,slug,title,metadata,created_at",
            limit=50,
            sort="metadata.broadcast_time",
            depth=2,
        )
        return objects
    except (CosmicAPIError, ConfigError) as e:
        logger.warning("[Schedule] Failed to fetch episodes for date %s: %s", date, e)
        return []


def fetch_automatic_episodes(day_dates: dict[str, str], days: list[str]) -> list[ScheduleShow]:
    """Schedule items derived from episodes' own broadcast date and time."""
    target_dates = [day_dates[d] for d in days if d in day_dates]
    if not target_dates:
        return []

    items: list[ScheduleShow] = []
    for date in target_dates:
        for episode in fetch_episodes_by_date(date):
            metadata = episode.get("metadata") or {}
            broadcast_date = (metadata.get("broadcast_date") or "")[:10]
            if not broadcast_date:
                continue
            show_day = weekday_name(broadcast_date)
            if show_day not in days:
                continue
            items.append(build_schedule_show(
                episode=episode,
                fallback_title=episode.get("title") or "",
                show_day=show_day,
                date=broadcast_date,
                time=metadata.get("broadcast_time") or "00:00",
                is_manual=False,
            ))

    logger.info("[Schedule] Found %d automatic episodes", len(items))
    return items


def radiocult_event_to_show(event: RadioCultEvent, known_slugs: set[str]) -> ScheduleShow | None:
    """Convert a RadioCult event into a schedule item in UK local time.

    Events whose slug matches a known Cosmic episode link to its page.
    """
    start = to_london(event.start_time) if event.start_time else None
    if start is None or not event.show_name:
        return None

    date = start.date().isoformat()
    show_time = start.strftime("%H:%M")
    url = f"/episode/{event.slug}" if event.slug and event.slug in known_slugs else ""

    return ScheduleShow(
        show_key=event.slug or f"radiocult-{event.id}",
        event_id=f"radiocult-{event.id}",
        show_time=show_time,
        show_day=weekday_name(date) or "",
        date=date,
        name=event.show_name,
        url=url,
        picture=event.image_url or PLACEHOLDER_IMAGE,
        created_time=event.start_time,
        tags=list(event.tags),
        hosts=[a.name for a in event.artists if a.name],
        duration=event.duration * 60,
        is_manual=False,
        source="radiocult",
    )


def fetch_radiocult_shows(day_dates: dict[str, str], days: list[str],
                          known_slugs: set[str]) -> list[ScheduleShow]:
    """Schedule items from RadioCult events inside the week."""
    if not day_dates:
        return []
    first = datetime.fromisoformat(day_dates[UK_WEEK_DAYS[0]]).replace(tzinfo=LONDON_TZ)
    start = first.astimezone(UTC)
    end = (first + timedelta(days=7)).astimezone(UTC)
    try:
        events = radiocult_client.get_events(start, end)
    except (RadioCultError, ConfigError) as e:
        logger.warning("[Schedule] Failed to fetch RadioCult events: %s", e)
        return []

    week_dates = set(day_dates.values())
    items = []
    for event in events:
        show = radiocult_event_to_show(event, known_slugs)
        if show and show.date in week_dates and show.show_day in days:
            items.append(show)
    logger.info("[Schedule] %d RadioCult event(s) in week", len(items))
    return items


# --- Merge ---

def _slot_rank(item: ScheduleShow) -> tuple[int, int, int]:
    """Higher ranks win a contested slot."""
    return (
        1 if item.has_detail_page else 0,
        1 if item.is_manual else 0,
        1 if item.source == "cosmic" else 0,
    )


def sort_schedule_items(items: list[ScheduleShow]) -> list[ScheduleShow]:
    """Order by weekday, then by time of day."""
    day_order = {day: i for i, day in enumerate(UK_WEEK_DAYS)}
    return sorted(items, key=lambda s: (day_order.get(s.show_day, 0), time_to_minutes(s.show_time)))


def merge_schedule(manual: list[ScheduleShow], automatic: list[ScheduleShow],
                   external: list[ScheduleShow] | None = None) -> list[ScheduleShow]:
    """Reconcile every source into one sorted list with one item per slot.

    Args:
        manual: Editor-curated overrides.
        automatic: Items derived from episode broadcast dates.
        external: Items from the live playout schedule (RadioCult).

    Returns:
        Items sorted by day then time, unique per (day, time).
    """
    by_event: dict[str, ScheduleShow] = {}
    # Later manual overrides replace earlier ones; other sources never replace.
    for item in manual:
        if item.name != UNTITLED:
            by_event[item.event_id or item.show_key] = item
    for item in [*automatic, *(external or [])]:
        if item.name == UNTITLED:
            continue
        by_event.setdefault(item.event_id or item.show_key, item)

    by_slot: dict[tuple[str, str], ScheduleShow] = {}
    for item in by_event.values():
        slot = (item.show_day, item.show_time)
        current = by_slot.get(slot)
        if current is None or _slot_rank(item) > _slot_rank(current):
            if current is not None:
                logger.debug("[Schedule] Slot %s %s: '%s' replaces '%s'",
                             item.show_day, item.show_time, item.name, current.name)
            by_slot[slot] = item

    return sort_schedule_items(list(by_slot.values()))


def get_weekly_schedule(now: datetime | None = None) -> WeeklySchedule:
    """Build the schedule for the current UK week.

    Source failures are logged and treated as empty; an unexpected failure
    yields an inactive schedule carrying the error message.
    """
    week = get_current_uk_week(now)
    try:
        days = target_days()
        day_dates = {d: week.day_dates[d] for d in days}

        manual = fetch_manual_overrides(day_dates, days)
        automatic = fetch_automatic_episodes(day_dates, days)
        known_slugs = {
            s.show_key for s in [*manual, *automatic] if s.has_detail_page
        }
        external = fetch_radiocult_shows(week.day_dates, days, known_slugs)

        items = merge_schedule(manual, automatic, external)
        return WeeklySchedule(items=items, day_dates=week.day_dates, is_active=bool(items))
    except Exception as e:
        logger.error("[Schedule] Unexpected error generating schedule: %s", e)
        return WeeklySchedule(items=[], day_dates=week.day_dates, is_active=False,
                              error=str(e) or "Failed to generate schedule.")
