"""Cache revalidation driven by Cosmic content webhooks."""

import hmac
import logging
from dataclasses import dataclass

from wwfm import cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevalidationRule:
    tag: str | None
    paths: tuple[str, ...]
    detail_prefix: str | None


_EPISODES = RevalidationRule("episodes", ("/", "/shows"), "/episode")
_HOSTS = RevalidationRule("hosts", ("/",), "/hosts")
_POSTS = RevalidationRule("posts", ("/", "/editorial"), "/editorial")
_DEFAULT = RevalidationRule(None, ("/", "/shows"), None)

RULES: dict[str, RevalidationRule] = {
    "episode": _EPISODES,
    "episodes": _EPISODES,
    "regular-hosts": _HOSTS,
    "hosts": _HOSTS,
    "takeovers": RevalidationRule("takeovers", ("/",), "/takeovers"),
    "genres": RevalidationRule("genres", ("/shows",), "/genre"),
    "posts": _POSTS,
    "editorial": _POSTS,
    "videos": RevalidationRule("videos", ("/", "/videos"), "/videos"),
}

# Search results are built from every content type
_ALWAYS_INVALIDATE = ("search",)


def secrets_match(provided: str | None, expected: str) -> bool:
    """Constant-time comparison. An unset expected secret never matches."""
    if not expected or provided is None:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def extract_object(body: dict) -> tuple[str | None, str | None]:
    """(object_type, slug) from a webhook body; the object may sit under data.object."""
    data = body.get("data") or {}
    nested = data.get("object") or {}
    return data.get("type") or nested.get("type"), data.get("slug") or nested.get("slug")


def revalidate_for(object_type: str | None, slug: str | None = None) -> list[str]:
    """Invalidate cached data for a changed object.

    Returns:
        The cache tags and page paths revalidated, detail page first.
    """
    rule = RULES.get(object_type or "", _DEFAULT)
    if rule is _DEFAULT:
        logger.info("Unknown object type: %s, revalidating common pages", object_type)

    revalidated: list[str] = []
    if slug and rule.detail_prefix:
        revalidated.append(f"{rule.detail_prefix}/{slug}")
    if rule.tag:
        cache.invalidate_tag(rule.tag)
        revalidated.append(rule.tag)
    for tag in _ALWAYS_INVALIDATE:
        cache.invalidate_tag(tag)
    revalidated.extend(rule.paths)

    logger.info("Revalidated: %s", ", ".join(revalidated))
    return revalidated
