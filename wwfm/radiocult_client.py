"""RadioCult live-schedule API client."""

import logging
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import requests

from config import settings
from wwfm import cache
from wwfm.date_utils import parse_iso
from wwfm.exceptions import ConfigError, RadioCultError
from wwfm.models import RadioCultArtist, RadioCultEvent

logger = logging.getLogger(__name__)

TIMEOUT = 15
CACHE_TAGS = ("radiocult",)


def is_configured() -> bool:
    return bool(settings.radiocult_station_id and settings.radiocult_publishable_key)


def _api_key(use_secret_key: bool) -> str:
    api_key = settings.radiocult_secret_key if use_secret_key else settings.radiocult_publishable_key
    if not api_key:
        kind = "Secret" if use_secret_key else "Publishable"
        raise ConfigError(f"RadioCult API key not provided. {kind} key is required.")
    if not settings.radiocult_station_id:
        raise ConfigError("RadioCult station ID not provided (RADIOCULT_STATION_ID).")
    return api_key


def _decode(resp: requests.Response, endpoint: str) -> dict:
    if not resp.ok:
        logger.error("RadioCult API error: %d for endpoint %s", resp.status_code, endpoint)
        raise RadioCultError(f"RadioCult API error: {resp.status_code} {resp.reason}")
    try:
        data = resp.json()
    except ValueError as e:
        raise RadioCultError(f"RadioCult returned an undecodable body for {endpoint}: {e}") from e
    if not isinstance(data, dict):
        raise RadioCultError(f"Unexpected RadioCult response for {endpoint}: {type(data).__name__}")
    if data.get("success") is False:
        raise RadioCultError(f"RadioCult API error: {data.get('error') or 'Unknown error'}")
    return data


def _fetch(endpoint: str, use_secret_key: bool = False) -> dict:
    """GET a RadioCult endpoint and return the decoded body.

    Raises:
        ConfigError: If the station id or API key is missing.
        RadioCultError: On HTTP errors, an undecodable body or success=false.
    """
    api_key = _api_key(use_secret_key)
    url = f"{settings.radiocult_api_url}{endpoint}"
    try:
        resp = requests.get(url, headers={"x-api-key": api_key}, timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise RadioCultError(f"RadioCult request failed for {endpoint}: {e}") from e
    return _decode(resp, endpoint)


def _post(endpoint: str, payload: dict) -> dict:
    """POST to a RadioCult endpoint with the secret key."""
    api_key = _api_key(use_secret_key=True)
    url = f"{settings.radiocult_api_url}{endpoint}"
    try:
        resp = requests.post(url, headers={"x-api-key": api_key}, json=payload, timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise RadioCultError(f"RadioCult request failed for {endpoint}: {e}") from e
    return _decode(resp, endpoint)


def _parse_artist(raw: dict) -> RadioCultArtist:
    return RadioCultArtist(
        id=raw.get("id", ""),
        name=raw.get("name", ""),
        slug=raw.get("slug", ""),
        description=raw.get("description") or "",
        image_url=raw.get("imageUrl") or "",
    )


def _image_url(item: dict) -> str:
    if item.get("imageUrl"):
        return item["imageUrl"]
    image = item.get("image")
    if isinstance(image, str):
        return image
    if isinstance(image, dict):
        return image.get("url") or ""
    return ""


def _duration_minutes(value) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable RadioCult duration %r", value)
        return 0


def _parse_schedule_item(item: dict) -> RadioCultEvent:
    """Normalize one item from any of the schedule response shapes."""
    return RadioCultEvent(
        id=item.get("id") or item.get("originalId") or item.get("slug") or "",
        show_id=item.get("showId") or item.get("originalId") or "",
        show_name=item.get("showName") or item.get("title") or item.get("name") or "",
        description=item.get("description") or "",
        slug=item.get("slug") or "",
        image_url=_image_url(item),
        start_time=item.get("startTime") or item.get("start") or item.get("startDateUtc") or "",
        end_time=item.get("endTime") or item.get("end") or item.get("endDateUtc") or "",
        duration=_duration_minutes(item.get("duration")),
        artists=[_parse_artist(a) for a in item.get("artists") or [] if isinstance(a, dict)],
        tags=[t for t in item.get("tags") or [] if isinstance(t, str)],
    )


def parse_events(data: dict) -> list[RadioCultEvent]:
    """Extract events from a schedule response.

    The schedule endpoint has answered with ``schedules``, ``events`` and
    ``schedule`` arrays over time; all three are accepted.
    """
    for key in ("schedules", "events", "schedule"):
        items = data.get(key)
        if isinstance(items, list):
            return [_parse_schedule_item(item) for item in items if isinstance(item, dict)]
    logger.error("Unexpected response format from schedule endpoint: %s", list(data.keys()))
    return []


def get_events(start: datetime, end: datetime, limit: int | None = None,
               force_refresh: bool = False) -> list[RadioCultEvent]:
    """Get scheduled events between start and end.

    Returns an empty list when RadioCult is not configured.
    """
    if not is_configured():
        logger.info("RadioCult not configured, returning empty events")
        return []

    params = {"startDate": start.isoformat(), "endDate": end.isoformat()}
    if limit:
        params["limit"] = str(limit)
    endpoint = f"/api/station/{settings.radiocult_station_id}/schedule?{urlencode(params)}"

    return cache.cached(
        f"radiocult:{endpoint}",
        lambda: parse_events(_fetch(endpoint)),
        tags=CACHE_TAGS,
        force_refresh=force_refresh,
    )


def get_artists(force_refresh: bool = False) -> list[RadioCultArtist]:
    """Get all artists for the station. Errors are logged and yield []."""
    endpoint = f"/api/station/{settings.radiocult_station_id}/artists"

    def _load() -> list[RadioCultArtist]:
        data = _fetch(endpoint)
        return [_parse_artist(a) for a in data.get("artists") or []]

    try:
        return cache.cached(f"radiocult:{endpoint}", _load, tags=CACHE_TAGS,
                            force_refresh=force_refresh)
    except (ConfigError, RadioCultError) as e:
        logger.error("Error fetching RadioCult artists: %s", e)
        return []


def get_tags(force_refresh: bool = False) -> list[dict]:
    """Get media tags (id, name, color). Errors are logged and yield []."""
    endpoint = f"/api/station/{settings.radiocult_station_id}/media/tag"
    try:
        return cache.cached(f"radiocult:{endpoint}", lambda: _fetch(endpoint).get("tags") or [],
                            tags=CACHE_TAGS, force_refresh=force_refresh)
    except (ConfigError, RadioCultError) as e:
        logger.error("Error fetching RadioCult tags: %s", e)
        return []


def split_live_schedule(events: list[RadioCultEvent], now: datetime) -> dict:
    """Split events into the one on air now, the next one, and the rest.

    Returns:
        Dict with current_event, upcoming_event and upcoming_events.
    """
    timed = []
    for event in events:
        start = parse_iso(event.start_time) if event.start_time else None
        end = parse_iso(event.end_time) if event.end_time else None
        if start is None:
            continue
        timed.append((start, end, event))
    timed.sort(key=lambda t: t[0])

    current = next(
        (event for start, end, event in timed if end is not None and start <= now <= end),
        None,
    )
    upcoming = [
        event for start, _end, event in timed
        if start > now and (current is None or event.id != current.id)
    ]
    return {
        "current_event": current,
        "upcoming_event": upcoming[0] if upcoming else None,
        "upcoming_events": upcoming[1:],
    }


def get_schedule_data(now: datetime | None = None) -> dict:
    """Current live event and upcoming events for the next 7 days.

    The query window starts on the hour so repeated calls share one cache entry.
    """
    now = now or datetime.now(UTC)
    window_start = now.replace(minute=0, second=0, microsecond=0)
    try:
        events = get_events(window_start, window_start + timedelta(days=7), limit=25)
    except (ConfigError, RadioCultError) as e:
        logger.error("Error getting schedule data: %s", e)
        events = []
    if not events:
        logger.info("No events returned from schedule for upcoming shows")
    return split_live_schedule(events, now)


def event_to_radio_show(event: RadioCultEvent) -> dict:
    """Shape a RadioCult event like a Cosmic episode object."""
    start = parse_iso(event.start_time) if event.start_time else None
    return {
        "id": event.id,
        "title": event.show_name,
        "slug": event.slug,
        "type": "episodes",
        "metadata": {
            "subtitle": event.show_name,
            "description": event.description or None,
            "image": {"url": event.image_url, "imgix_url": event.image_url} if event.image_url else None,
            "broadcast_date": start.date().isoformat() if start else None,
            "broadcast_time": start.strftime("%H:%M") if start else None,
            "duration": f"{event.duration}:00",
            "genres": [
                {"id": tag.lower().replace(" ", "-"), "slug": tag.lower().replace(" ", "-"), "title": tag}
                for tag in event.tags
            ],
            "regular_hosts": [
                {"id": a.id, "slug": a.slug, "title": a.name} for a in event.artists
            ],
            "source": "radiocult",
        },
    }


# --- Writes (secret key) ---

def create_show(name: str, description: str, artist_id: str) -> str:
    """Create a RadioCult show and return its id."""
    data = _post(f"/api/station/{settings.radiocult_station_id}/show",
                 {"name": name, "description": description, "artistId": artist_id})
    show_id = (data.get("show") or {}).get("id")
    if not show_id:
        raise RadioCultError("No show ID returned from RadioCult")
    logger.info("Created RadioCult show %s for '%s'", show_id, name)
    return show_id


def create_event(show_id: str, start: datetime, end: datetime, media_id: str,
                 description: str = "") -> str:
    """Schedule a pre-recorded media item as an event of show_id. Returns the event id."""
    data = _post(f"/api/station/{settings.radiocult_station_id}/event", {
        "showId": show_id,
        "startTime": start.astimezone(UTC).isoformat().replace("+00:00", "Z"),
        "endTime": end.astimezone(UTC).isoformat().replace("+00:00", "Z"),
        "mediaId": media_id,
        "description": description,
    })
    event_id = (data.get("event") or {}).get("id")
    if not event_id:
        raise RadioCultError("No event ID returned from RadioCult")
    logger.info("Scheduled RadioCult event %s for show %s", event_id, show_id)
    return event_id
