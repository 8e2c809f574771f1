"""In-process TTL cache with tag-based invalidation.

Reads from Cosmic, RadioCult and Mixcloud are cached for ``cache_ttl_seconds``
under one or more tags. Content webhooks invalidate by tag so that edits in
the CMS show up without waiting for the TTL to lapse.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from config import settings

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_entries: dict[str, tuple[float, Any]] = {}
_tags: dict[str, set[str]] = {}


def _drop(key: str) -> bool:
    """Remove key and its tag registrations. Caller holds the lock."""
    if _entries.pop(key, None) is None:
        return False
    for tag in [t for t, keys in _tags.items() if key in keys]:
        _tags[tag].discard(key)
        if not _tags[tag]:
            del _tags[tag]
    return True


def _sweep(now: float) -> None:
    for key in [k for k, (expires_at, _) in _entries.items() if expires_at < now]:
        _drop(key)


def get(key: str) -> Any | None:
    """Return a cached value, or None when missing or expired."""
    with _lock:
        entry = _entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            _drop(key)
            return None
        return value


def put(key: str, value: Any, tags: tuple[str, ...] = (), ttl: float | None = None) -> None:
    """Store a value under key, registering it with each tag.

    Expired entries are swept on every write.
    """
    ttl = settings.cache_ttl_seconds if ttl is None else ttl
    with _lock:
        now = time.monotonic()
        _sweep(now)
        _entries[key] = (now + ttl, value)
        for tag in tags:
            _tags.setdefault(tag, set()).add(key)


def size() -> int:
    with _lock:
        return len(_entries)


def cached(key: str, loader: Callable[[], Any], tags: tuple[str, ...] = (),
           force_refresh: bool = False) -> Any:
    """Return the cached value for key, calling loader on a miss."""
    if not force_refresh:
        value = get(key)
        if value is not None:
            return value
    value = loader()
    put(key, value, tags)
    return value


def invalidate_tag(tag: str) -> int:
    """Drop every entry registered under tag. Returns the number dropped."""
    with _lock:
        dropped = sum(1 for key in list(_tags.get(tag, ())) if _drop(key))
        _tags.pop(tag, None)
    logger.info("Invalidated cache tag '%s' (%d entries)", tag, dropped)
    return dropped


def clear() -> None:
    """Drop everything."""
    with _lock:
        _entries.clear()
        _tags.clear()
