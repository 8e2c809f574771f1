"""Allowlist HTML sanitization for CMS-authored content."""

import logging
import re
from dataclasses import dataclass, replace

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

# Removed together with their content
DROP_TAGS = {"script", "style", "noscript", "template", "object", "embed"}

URI_ATTRIBUTES = {"href", "src", "action", "formaction", "xlink:href"}

_BASE_TAGS = [
    "p", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "dl", "dt", "dd",
    "a", "img", "br", "hr", "div", "span",
    "strong", "b", "em", "i", "u", "s",
    "blockquote", "pre", "code",
]
_TABLE_TAGS = ["kbd", "samp", "table", "thead", "tbody", "tr", "th", "td", "caption", "colgroup", "col"]


@dataclass(frozen=True)
class SanitizeOptions:
    allowed_tags: frozenset[str]
    allowed_attributes: frozenset[str]
    allowed_schemes: tuple[str, ...] = ("http", "https", "mailto", "tel")
    remove_embed_cards: bool = False


DEFAULT_OPTIONS = SanitizeOptions(
    allowed_tags=frozenset(_BASE_TAGS + _TABLE_TAGS),
    allowed_attributes=frozenset([
        "href", "src", "alt", "title", "width", "height", "class", "id",
        "style", "target", "rel", "data-*", "aria-*",
    ]),
)

EDITORIAL_OPTIONS = replace(
    DEFAULT_OPTIONS,
    allowed_tags=frozenset(_BASE_TAGS),
    allowed_attributes=frozenset(["href", "src", "alt", "title", "class", "id"]),
)

EMBED_OPTIONS = replace(
    DEFAULT_OPTIONS,
    allowed_tags=frozenset(_BASE_TAGS + ["iframe", "figure", "figcaption"]),
    allowed_attributes=frozenset([
        "href", "src", "alt", "title", "class", "id", "width", "height",
        "frameborder", "allow", "allowfullscreen", "loading", "referrerpolicy",
        "sandbox", "style", "scrolling", "data-*", "rel", "target",
    ]),
    remove_embed_cards=True,
)


def _attribute_allowed(name: str, allowed: frozenset[str]) -> bool:
    name = name.lower()
    if name in allowed:
        return True
    return any(
        pattern.endswith("*") and name.startswith(pattern[:-1])
        for pattern in allowed
    )


def _uri_allowed(value: str, schemes: tuple[str, ...]) -> bool:
    # Strip whitespace and control characters browsers ignore inside schemes
    cleaned = re.sub(r"[\x00-\x20]", "", value).lower()
    match = re.match(r"^([a-z][a-z0-9+.\-]*):", cleaned)
    if not match:
        # Relative URLs and fragments
        return True
    return match.group(1) in schemes


def _clean(html: str, options: SanitizeOptions) -> str:
    soup = BeautifulSoup(html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    if options.remove_embed_cards:
        for a_tag in soup.find_all("a"):
            classes = a_tag.get("class") or []
            if "embedly-card" in classes or a_tag.has_attr("data-card-branding"):
                a_tag.decompose()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        name = tag.name.lower()
        if name in DROP_TAGS:
            tag.decompose()
            continue
        if name not in options.allowed_tags:
            tag.unwrap()
            continue
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            if not _attribute_allowed(attr, options.allowed_attributes) or attr.lower().startswith("on"):
                del tag.attrs[attr]
                continue
            if attr.lower() in URI_ATTRIBUTES:
                text = " ".join(value) if isinstance(value, list) else str(value)
                if not _uri_allowed(text, options.allowed_schemes):
                    del tag.attrs[attr]

    return str(soup)


def sanitize_html(html: str | None, options: SanitizeOptions = DEFAULT_OPTIONS) -> str:
    """Sanitize HTML against an allowlist, keeping the text of removed tags.

    Args:
        html: Raw HTML. Non-string or empty input yields "".
        options: Tag/attribute/scheme allowlists.

    Returns:
        Sanitized HTML.
    """
    if not html or not isinstance(html, str):
        return ""
    return _clean(html, options)


def sanitize_tracklist(html: str | None) -> str:
    return sanitize_html(html, DEFAULT_OPTIONS)


def sanitize_editorial_content(html: str | None) -> str:
    """Stricter rules for editorial bodies: no tables, few attributes."""
    return sanitize_html(html, EDITORIAL_OPTIONS)


def sanitize_editorial_with_embeds(html: str | None) -> str:
    """Editorial bodies that may carry iframes (video/audio embeds)."""
    return sanitize_html(html, EMBED_OPTIONS)


MODES = {
    "default": sanitize_html,
    "tracklist": sanitize_tracklist,
    "editorial": sanitize_editorial_content,
    "embeds": sanitize_editorial_with_embeds,
}
