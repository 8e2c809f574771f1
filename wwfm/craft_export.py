"""Export sections, entries and assets from the legacy Craft CMS element API."""

import json
import logging
from pathlib import Path

import requests

from config import settings
from wwfm.exceptions import ConfigError, MigrationError

logger = logging.getLogger(__name__)

TIMEOUT = 60


def _headers() -> dict:
    if not settings.craft_token:
        raise ConfigError("Please set the CRAFT_TOKEN environment variable")
    return {"Authorization": f"Bearer {settings.craft_token}"}


def fetch_endpoint(path: str) -> dict:
    """GET a Craft element API endpoint, following pagination links.

    Returns:
        {"data": [...all pages...], "meta": {...last page meta...}}.

    Raises:
        MigrationError: On HTTP or decoding errors.
    """
    url = f"{settings.craft_url.rstrip('/')}/api/{path}"
    items: list = []
    meta: dict = {}
    while url:
        try:
            resp = requests.get(url, headers=_headers(), timeout=TIMEOUT)
            resp.raise_for_status()
            body = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise MigrationError(f"Error fetching {path}: {e}") from e

        items.extend(body.get("data") or [])
        meta = body.get("meta") or {}
        url = ((meta.get("pagination") or {}).get("links") or {}).get("next")
    return {"data": items, "meta": meta}


def _write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Wrote %s", path)


def export_all(out_dir: Path | None = None) -> dict[str, int]:
    """Export every section, its entries and all assets into JSON files.

    A section that fails to export is logged and skipped.

    Returns:
        Mapping of exported file stem to item count.
    """
    if not settings.craft_url:
        raise ConfigError("Please set the CRAFT_URL environment variable")
    out = out_dir or settings.craft_export_dir
    out.mkdir(parents=True, exist_ok=True)

    counts: dict[str, int] = {}
    sections = fetch_endpoint("entries/sections")
    _write_json(out / "sections.json", sections)
    counts["sections"] = len(sections["data"])

    for section in sections["data"]:
        handle = section.get("handle")
        if not handle:
            continue
        try:
            entries = fetch_endpoint(f"entries/{handle}")
        except MigrationError as e:
            logger.error("Skipping section %s: %s", handle, e)
            continue
        _write_json(out / f"{handle}.json", entries)
        counts[handle] = len(entries["data"])

    assets = fetch_endpoint("assets")
    _write_json(out / "assets.json", assets)
    counts["assets"] = len(assets["data"])

    logger.info("Export completed into %s: %s", out, counts)
    return counts


def load_export(name: str, export_dir: Path | None = None) -> list[dict]:
    """Read the items of one exported file ("radio-shows", "assets", ...)."""
    path = (export_dir or settings.craft_export_dir) / f"{name}.json"
    if not path.exists():
        raise MigrationError(f"Export file not found: {path}. Run craft_export first.")
    data = json.loads(path.read_text(encoding="utf-8"))
    return data.get("data", []) if isinstance(data, dict) else data
