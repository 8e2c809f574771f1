"""SEO metadata (title, description, Open Graph, Twitter card, robots)."""

import logging

from bs4 import BeautifulSoup

from config import settings

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "/favicon.svg"
DEFAULT_KEYWORDS = ["radio", "music", "independent", "worldwide fm", "shows", "mixes", "playlists"]
LOCALE = "en_US"
OG_IMAGE_WIDTH = 1200
OG_IMAGE_HEIGHT = 630
DESCRIPTION_MAX_CHARS = 300


def _site_suffix(title: str) -> str:
    return f"{title} - {settings.site_name}"


def _plain_text(html: str | None) -> str:
    """Descriptions are often rich text; metadata wants plain text."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
    return text[:DESCRIPTION_MAX_CHARS]


def _image_url(meta: dict) -> str | None:
    image = meta.get("image") if isinstance(meta.get("image"), dict) else {}
    return meta.get("external_image_url") or image.get("imgix_url") or image.get("url")


def generate_base_metadata(title: str, description: str, keywords: list[str] | None = None,
                           image: str | None = None, canonical: str | None = None,
                           no_index: bool = False, og_title: str | None = None,
                           og_description: str | None = None, og_image: str | None = None) -> dict:
    """Build a page's metadata with site-wide defaults.

    Open Graph fields fall back to the regular title, description and image.
    """
    final_og_title = og_title or title
    final_og_description = og_description or description
    final_og_image = og_image or image or DEFAULT_IMAGE

    if no_index:
        robots: str | dict = "noindex, nofollow"
    else:
        robots = {
            "index": True,
            "follow": True,
            "googleBot": {
                "index": True,
                "follow": True,
                "max-video-preview": -1,
                "max-image-preview": "large",
                "max-snippet": -1,
            },
        }

    return {
        "title": title,
        "description": description,
        "keywords": keywords or list(DEFAULT_KEYWORDS),
        "openGraph": {
            "title": final_og_title,
            "description": final_og_description,
            "type": "website",
            "locale": LOCALE,
            "siteName": settings.site_name,
            "images": [{
                "url": final_og_image,
                "width": OG_IMAGE_WIDTH,
                "height": OG_IMAGE_HEIGHT,
                "alt": final_og_title,
            }],
        },
        "twitter": {
            "card": "summary_large_image",
            "title": final_og_title,
            "description": final_og_description,
            "images": [final_og_image],
        },
        "robots": robots,
        "alternates": {"canonical": canonical or settings.base_url},
    }


def generate_episode_metadata(episode: dict) -> dict:
    meta = episode.get("metadata") or {}
    title = episode.get("title") or "Episode"
    description = (
        _plain_text(meta.get("description"))
        or _plain_text(meta.get("subtitle"))
        or f"Listen to {title} on {settings.site_name}"
    )
    genre_keywords = [g.get("title", "").lower() for g in meta.get("genres") or [] if isinstance(g, dict)]
    return generate_base_metadata(
        title=_site_suffix(title),
        description=description,
        keywords=["radio show", "music", "worldwide fm", *genre_keywords, title.lower()],
        image=_image_url(meta),
        canonical=f"{settings.base_url}/episode/{episode.get('slug', '')}",
    )


def generate_show_metadata(show: dict) -> dict:
    meta = show.get("metadata") or {}
    seo = meta.get("seo") or {}
    title = seo.get("title") or show.get("title") or "Show"
    description = (
        _plain_text(meta.get("description"))
        or _plain_text(meta.get("subtitle"))
        or f"Listen to {title} on {settings.site_name}"
    )
    return generate_base_metadata(
        title=_site_suffix(title),
        description=description,
        keywords=["radio show", "music", "worldwide fm", title.lower()],
        image=_image_url(meta),
    )


def generate_post_metadata(post: dict) -> dict:
    """Posts prefer their SEO fields and fall back to excerpt and image."""
    meta = post.get("metadata") or {}
    seo = meta.get("seo") or {}
    og_image = (seo.get("og_image") or {}).get("imgix_url") if isinstance(seo.get("og_image"), dict) else None

    title = seo.get("title") or post.get("title") or "Article"
    description = (
        seo.get("description")
        or _plain_text(meta.get("excerpt"))
        or _plain_text(meta.get("description"))
        or f"Read {title} on {settings.site_name}"
    )
    category_keywords = [
        c.get("title", "").lower() for c in meta.get("categories") or [] if isinstance(c, dict)
    ]
    return generate_base_metadata(
        title=_site_suffix(title),
        description=description,
        keywords=["article", "music journalism", "worldwide fm", *category_keywords, title.lower()],
        image=og_image or _image_url(meta),
        canonical=f"{settings.base_url}/editorial/{post.get('slug', '')}",
        og_title=_site_suffix(seo["og_title"]) if seo.get("og_title") else None,
        og_description=seo.get("og_description") or None,
        og_image=og_image,
    )


def generate_video_metadata(video: dict) -> dict:
    meta = video.get("metadata") or {}
    title = video.get("title") or "Video"
    return generate_base_metadata(
        title=_site_suffix(title),
        description=_plain_text(meta.get("description")) or f"Watch {title} on {settings.site_name}",
        keywords=["video", "music video", "worldwide fm", title.lower()],
        image=_image_url(meta),
    )


def generate_not_found_metadata() -> dict:
    return generate_base_metadata(
        title=_site_suffix("Not Found"),
        description="The page you are looking for could not be found.",
        no_index=True,
    )


# Route kind -> (Cosmic object type, builder)
GENERATORS = {
    "episode": ("episode", generate_episode_metadata),
    "show": ("radio-shows", generate_show_metadata),
    "post": ("posts", generate_post_metadata),
    "video": ("videos", generate_video_metadata),
}
