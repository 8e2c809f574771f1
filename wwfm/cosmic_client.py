"""Thin wrapper around the Cosmic CMS REST API (v3)."""

import json
import logging
import time
from typing import Any

import requests

from config import settings
from wwfm.exceptions import ConfigError, CosmicAPIError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [2, 5, 10]  # seconds to wait between retries
PAGE_SIZE = 100
MEDIA_PAGE_SIZE = 1000
TIMEOUT = 30


def _bucket_url(path: str, write: bool = False) -> str:
    if not settings.cosmic_bucket_slug:
        raise ConfigError("No COSMIC_BUCKET_SLUG configured")
    base = settings.cosmic_write_api_url if write else settings.cosmic_api_url
    return f"{base}/buckets/{settings.cosmic_bucket_slug}{path}"


def _request(method: str, url: str, params: dict | None = None,
             payload: dict | None = None, write: bool = False) -> dict:
    """Make a Cosmic API call with retry on 429/5xx errors.

    Raises:
        CosmicAPIError: On any other non-2xx response or after all retries fail.
    """
    headers = {"content-type": "application/json"}
    if write:
        if not settings.cosmic_write_key:
            raise ConfigError("No COSMIC_WRITE_KEY configured")
        headers["authorization"] = f"Bearer {settings.cosmic_write_key}"

    last_error = None
    for attempt in range(MAX_RETRIES):
        try:
            resp = requests.request(
                method, url, params=params, json=payload, headers=headers, timeout=TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            last_error = str(e)
            if attempt < MAX_RETRIES - 1:
                wait = RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)]
                logger.warning(
                    "Cosmic API error (attempt %d/%d): %s, retrying in %ds...",
                    attempt + 1, MAX_RETRIES, e, wait,
                )
                time.sleep(wait)
            continue

        if resp.status_code == 429 or resp.status_code >= 500:
            wait = RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)]
            logger.warning(
                "Cosmic API %d (attempt %d/%d), retrying in %ds...",
                resp.status_code, attempt + 1, MAX_RETRIES, wait,
            )
            last_error = f"{resp.status_code}: {resp.text[:200]}"
            if attempt < MAX_RETRIES - 1:
                time.sleep(wait)
            continue

        if not resp.ok:
            raise CosmicAPIError(
                f"Cosmic API {method} {url} failed: {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise CosmicAPIError(
                f"Cosmic API {method} {url} returned an undecodable body: {e}",
                status_code=resp.status_code,
            ) from e

    raise CosmicAPIError(f"Cosmic API failed after {MAX_RETRIES} retries: {last_error}")


def _read_params(**extra: Any) -> dict:
    params = {"read_key": settings.cosmic_read_key}
    params.update({k: v for k, v in extra.items() if v is not None})
    return params


def find_objects(object_type: str, query: dict | None = None, props: str | None = None,
                 limit: int = PAGE_SIZE, skip: int = 0, depth: int | None = None,
                 sort: str | None = None, status: str | None = "published") -> tuple[list[dict], int]:
    """Query objects of one type.

    Args:
        object_type: Cosmic object type slug, e.g. "episode".
        query: Extra query filters, e.g. {"metadata.broadcast_date": "2025-01-07"}.
        props: Comma-separated props to return.
        status: "published", "any", or None to use the API default.

    Returns:
        Tuple of (objects, total). No matches (HTTP 404) is ([], 0).
    """
    full_query = {"type": object_type, **(query or {})}
    params = _read_params(
        query=json.dumps(full_query), props=props, limit=limit, skip=skip,
        depth=depth, sort=sort, status=status,
    )
    try:
        data = _request("GET", _bucket_url("/objects"), params=params)
    except CosmicAPIError as e:
        if e.status_code == 404:
            return [], 0
        raise
    objects = data.get("objects") or []
    return objects, data.get("total", len(objects))


def find_all_objects(object_type: str, query: dict | None = None, props: str | None = None,
                     depth: int | None = None, sort: str | None = None,
                     status: str | None = "published", page_size: int = PAGE_SIZE) -> list[dict]:
    """Fetch every object of a type, paging with limit/skip until a short page."""
    results: list[dict] = []
    skip = 0
    while True:
        page, _ = find_objects(object_type, query=query, props=props, limit=page_size,
                               skip=skip, depth=depth, sort=sort, status=status)
        results.extend(page)
        if len(page) < page_size:
            break
        skip += len(page)
    logger.info("Fetched %d '%s' objects from Cosmic", len(results), object_type)
    return results


def find_one(object_type: str, object_id: str | None = None, slug: str | None = None,
             depth: int | None = None, status: str | None = "published") -> dict | None:
    """Find a single object by id or slug. Returns None when not found."""
    query: dict = {}
    if object_id:
        query["id"] = object_id
    if slug:
        query["slug"] = slug
    objects, _ = find_objects(object_type, query=query, limit=1, depth=depth, status=status)
    return objects[0] if objects else None


def insert_object(payload: dict) -> dict:
    """Create an object. Returns the created object."""
    data = _request("POST", _bucket_url("/objects", write=True), payload=payload, write=True)
    created = data.get("object", data)
    logger.info("Created %s '%s'", payload.get("type"), payload.get("title"))
    return created


def update_object(object_id: str, patch: dict) -> dict:
    """Patch an object's fields (metadata keys are merged server-side)."""
    data = _request("PATCH", _bucket_url(f"/objects/{object_id}", write=True),
                    payload=patch, write=True)
    logger.info("Updated object %s", object_id)
    return data.get("object", data)


def delete_object(object_id: str) -> None:
    """Delete an object by id."""
    _request("DELETE", _bucket_url(f"/objects/{object_id}", write=True), write=True)
    logger.info("Deleted object %s", object_id)


def list_media(props: str = "id,name,original_name,url,imgix_url") -> list[dict]:
    """Fetch every media item in the bucket."""
    media: list[dict] = []
    skip = 0
    while True:
        params = _read_params(props=props, limit=MEDIA_PAGE_SIZE, skip=skip, sort="-order")
        try:
            data = _request("GET", _bucket_url("/media"), params=params)
        except CosmicAPIError as e:
            if e.status_code == 404:
                break
            raise
        page = data.get("media") or []
        media.extend(page)
        if len(page) < MEDIA_PAGE_SIZE:
            break
        skip += MEDIA_PAGE_SIZE
    logger.info("Fetched %d media items from Cosmic", len(media))
    return media
