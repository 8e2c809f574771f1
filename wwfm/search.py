"""Site search over Cosmic content and the Mixcloud archive."""

import logging
from dataclasses import asdict

from wwfm import cache, cosmic_client, mixcloud_client
from wwfm.exceptions import ConfigError, CosmicAPIError
from wwfm.models import FilterItem, SearchResult

logger = logging.getLogger(__name__)

SEARCH_TYPES = ["episodes", "radio-shows", "posts", "videos", "takeovers", "events"]
CACHE_TAGS = ("search", "episodes", "posts", "videos", "takeovers")

# Cosmic object type for each search type
_COSMIC_TYPES = {
    "episodes": "episode",
    "radio-shows": "radio-shows",
    "posts": "posts",
    "videos": "videos",
    "takeovers": "takeovers",
    "events": "events",
}
_SEARCH_PROPS = "id,slug,title,metadata,created_at"
_SEARCH_LIMIT = 1000


def _text(value) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _image(meta: dict) -> str | None:
    image = meta.get("image")
    if not isinstance(image, dict):
        return None
    return image.get("imgix_url") or image.get("url") or None


def _filter_items(values, item_type: str) -> list[FilterItem]:
    return [
        FilterItem(title=v.get("title", ""), slug=v.get("slug", ""), type=item_type)
        for v in values or []
        if isinstance(v, dict)
    ]


def normalize_object(item: dict, result_type: str) -> SearchResult | None:
    """Convert one Cosmic object to a SearchResult. Untitled objects yield None."""
    title = _text(item.get("title"))
    if not title:
        return None
    meta = item.get("metadata") or {}
    with_people = result_type in ("episodes", "radio-shows")
    return SearchResult(
        id=item.get("id", ""),
        type=result_type,
        slug=item.get("slug", ""),
        title=title,
        description=_text(meta.get("description")) or _text(meta.get("excerpt"))
        or _text(meta.get("subtitle")),
        image=_image(meta),
        date=_text(meta.get("broadcast_date")) or _text(meta.get("date")) or item.get("created_at"),
        genres=_filter_items(meta.get("categories") or meta.get("genres"), "genres"),
        locations=_filter_items(meta.get("locations"), "locations"),
        hosts=_filter_items(meta.get("regular_hosts"), "hosts") if with_people else [],
        takeovers=_filter_items(meta.get("takeovers"), "takeovers") if with_people else [],
    )


def normalize_mixcloud_show(show: dict) -> SearchResult | None:
    title = _text(show.get("name"))
    if not title:
        return None
    key = show.get("key", "")
    pictures = show.get("pictures") or {}
    return SearchResult(
        id=key,
        type="radio-shows",
        slug=key.strip("/").split("/")[-1] or key,
        title=title,
        description=_text(show.get("description")) or title,
        image=pictures.get("extra_large"),
        date=_text(show.get("created_time")),
        # Mixcloud tags are free text and are not used as genres
        hosts=[
            FilterItem(title=h.get("name", ""), slug=h.get("username", ""), type="hosts")
            for h in show.get("hosts") or []
            if isinstance(h, dict)
        ],
    )


def dedupe_radio_shows(mixcloud: list[SearchResult], cosmic: list[SearchResult]) -> list[SearchResult]:
    """Merge radio shows by slug, Mixcloud first."""
    seen: set[str] = set()
    result = []
    for show in [*mixcloud, *cosmic]:
        if not show.slug or show.slug in seen:
            continue
        seen.add(show.slug)
        result.append(show)
    return result


def _fetch_type(result_type: str) -> list[SearchResult]:
    try:
        objects, _ = cosmic_client.find_objects(
            _COSMIC_TYPES[result_type], props=_SEARCH_PROPS, limit=_SEARCH_LIMIT, depth=1,
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.warning("[Search] Failed to fetch %s: %s", result_type, e)
        return []
    return [r for r in (normalize_object(o, result_type) for o in objects) if r]


def fetch_all_content() -> list[SearchResult]:
    """Every searchable item, normalized. Cached under the ``search`` tag."""

    def _load() -> list[SearchResult]:
        cosmic_results = {t: _fetch_type(t) for t in SEARCH_TYPES}
        mixcloud = [
            r for r in (normalize_mixcloud_show(s)
                        for s in mixcloud_client.get_shows(limit=100)["shows"])
            if r
        ]
        radio_shows = dedupe_radio_shows(mixcloud, cosmic_results.pop("radio-shows"))
        results = [*radio_shows]
        for items in cosmic_results.values():
            results.extend(items)
        logger.info("[Search] Indexed %d items", len(results))
        return results

    return cache.cached("search:all", _load, tags=CACHE_TAGS)


def _matches(result: SearchResult, term: str) -> bool:
    haystacks = [result.title, result.description or ""]
    haystacks.extend(f.title for f in [*result.genres, *result.locations, *result.hosts, *result.takeovers])
    return any(term in (h or "").lower() for h in haystacks)


def search(results: list[SearchResult], term: str | None = None,
           types: list[str] | None = None, genre: str | None = None,
           limit: int | None = None) -> list[SearchResult]:
    """Filter search results.

    Args:
        results: Items from fetch_all_content().
        term: Case-insensitive text matched against title, description and
            genre/location/host/takeover names.
        types: Restrict to these result types.
        genre: Restrict to items carrying this genre slug.
        limit: Maximum number of results.

    Returns:
        Matching results, newest first.
    """
    needle = (term or "").strip().lower()
    matched = [
        r for r in results
        if (not types or r.type in types)
        and (not genre or any(g.slug == genre for g in r.genres))
        and (not needle or _matches(r, needle))
    ]
    matched.sort(key=lambda r: r.date or "", reverse=True)
    return matched[:limit] if limit else matched


def to_dict(result: SearchResult) -> dict:
    return asdict(result)
