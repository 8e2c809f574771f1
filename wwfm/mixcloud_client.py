"""Mixcloud archive client."""

import logging
from datetime import UTC, datetime, timedelta

import requests

from config import settings
from wwfm import cache
from wwfm.date_utils import parse_iso
from wwfm.exceptions import MixcloudError
from wwfm.matching import name_to_slug

logger = logging.getLogger(__name__)

TIMEOUT = 15
CACHE_TAGS = ("mixcloud",)
STATION_TAG = "worldwide fm"
NEW_SHOW_DAYS = 30

# Largest first
PICTURE_SIZES = ["1024wx1024h", "extra_large", "large", "medium", "thumbnail", "small"]


def _get(path: str, params: dict | None = None) -> dict:
    url = f"{settings.mixcloud_api_url}{path}"
    try:
        resp = requests.get(url, params=params, timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise MixcloudError(f"Mixcloud request failed for {path}: {e}") from e
    if not resp.ok:
        raise MixcloudError(f"Mixcloud API error: {resp.status_code} {resp.reason}")
    try:
        return resp.json()
    except ValueError as e:
        raise MixcloudError(f"Mixcloud returned an undecodable body for {path}: {e}") from e


def filter_station_tags(tags: list[dict]) -> list[dict]:
    """Drop the station's own tag, which every upload carries."""
    return [t for t in tags if (t.get("name") or "").lower() != STATION_TAG]


def filter_shows(shows: list[dict], tag: str | None = None, search: str | None = None,
                 is_new: bool = False, now: datetime | None = None) -> list[dict]:
    """Filter cloudcasts by tag name, search term and recency."""
    result = list(shows)

    if tag:
        tag_lower = tag.lower()
        result = [
            s for s in result
            if any((t.get("name") or "").lower() == tag_lower
                   for t in filter_station_tags(s.get("tags") or []))
        ]

    if search:
        term = search.lower()
        result = [
            s for s in result
            if term in (s.get("name") or "").lower()
            or any(term in (t.get("name") or "").lower()
                   for t in filter_station_tags(s.get("tags") or []))
        ]

    if is_new:
        cutoff = (now or datetime.now(UTC)) - timedelta(days=NEW_SHOW_DAYS)
        kept = []
        for s in result:
            created = parse_iso(s.get("created_time") or "")
            if created and created > cutoff:
                kept.append(s)
        result = kept

    return result


def get_shows(limit: int = 20, offset: int = 0, tag: str | None = None,
              search: str | None = None, is_new: bool = False) -> dict:
    """Fetch a page of the station's cloudcasts.

    Returns:
        Dict with shows, total and has_next. Errors degrade to an empty page.
    """
    path = f"/{settings.mixcloud_account}/cloudcasts/"
    params = {"limit": limit, "offset": offset}
    try:
        data = cache.cached(f"mixcloud:{path}:{limit}:{offset}",
                            lambda: _get(path, params), tags=CACHE_TAGS)
    except MixcloudError as e:
        logger.error("Error fetching Mixcloud shows: %s", e)
        return {"shows": [], "total": 0, "has_next": False}

    shows = filter_shows(data.get("data") or [], tag=tag, search=search, is_new=is_new)
    paging = data.get("paging") or {}
    return {
        "shows": shows,
        "total": paging.get("total") or len(shows),
        "has_next": bool(paging.get("next")),
    }


def get_show(key: str) -> dict | None:
    """Fetch one cloudcast by key ("/worldwidefm/some-show/")."""
    show_key = key if key.startswith("/") else f"/{key}"
    try:
        return cache.cached(f"mixcloud:{show_key}", lambda: _get(show_key), tags=CACHE_TAGS)
    except MixcloudError as e:
        logger.error("Mixcloud API error for show %s: %s", show_key, e)
        return None


def largest_picture(pictures: dict | None) -> str:
    pictures = pictures or {}
    for size in PICTURE_SIZES:
        if pictures.get(size):
            return pictures[size]
    return ""


def format_audio_length(seconds: int) -> str:
    """Seconds to M:SS, e.g. 3725 -> "62:05"."""
    return f"{seconds // 60}:{seconds % 60:02d}"


def to_radio_show(show: dict) -> dict:
    """Shape a Mixcloud cloudcast like a Cosmic radio-show object."""
    image = largest_picture(show.get("pictures"))
    return {
        "id": show.get("key", ""),
        "title": show.get("name", ""),
        "slug": show.get("key", ""),
        "type": "radio-shows",
        "metadata": {
            "subtitle": show.get("name", ""),
            "description": show.get("name", ""),
            "image": {"url": image, "imgix_url": image},
            "broadcast_date": show.get("created_time"),
            "duration": format_audio_length(int(show.get("audio_length") or 0)),
            "player": show.get("url"),
            "genres": [
                {"id": name_to_slug(t["name"]), "slug": name_to_slug(t["name"]), "title": t["name"]}
                for t in filter_station_tags(show.get("tags") or [])
                if t.get("name")
            ],
            "regular_hosts": [
                {"id": name_to_slug(h.get("name", "")), "slug": h.get("username", ""),
                 "title": h.get("name", "")}
                for h in show.get("hosts") or []
            ],
            "locations": [],
            "takeovers": [],
            "source": "mixcloud",
        },
    }
