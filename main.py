"""FastAPI app: schedule page, content API routes and webhooks."""

import asyncio
import html as html_mod
import logging
from dataclasses import asdict
from datetime import UTC, datetime

import stripe
from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from config import settings
from wwfm import (
    cache,
    cosmic_client,
    craft_export,
    membership,
    metadata,
    mixcloud_client,
    radiocult_client,
    revalidation,
    sanitize,
    schedule,
    search,
    sync,
)
from wwfm.date_utils import UK_WEEK_DAYS
from wwfm.exceptions import (
    ConfigError,
    CosmicAPIError,
    MigrationError,
    RadioCultError,
    WebhookSignatureError,
)
from wwfm.models import WeeklySchedule

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}
MAX_PAGE_SIZE = 100

app = FastAPI(title=settings.site_name, description="Worldwide FM content service")


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


# --- Health ---

@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "cosmic_configured": bool(settings.cosmic_bucket_slug and settings.cosmic_read_key),
        "radiocult_configured": radiocult_client.is_configured(),
        "stripe_configured": bool(settings.stripe_webhook_secret),
    }


# --- Schedule ---

def _schedule_payload(result: WeeklySchedule) -> dict:
    return {
        "items": [asdict(item) for item in result.items],
        "day_dates": result.day_dates,
        "is_active": result.is_active,
        "error": result.error,
    }


@app.get("/api/schedule")
async def api_schedule():
    """The reconciled schedule for the current UK week."""
    result = await asyncio.to_thread(schedule.get_weekly_schedule)
    return JSONResponse(_schedule_payload(result), status_code=500 if result.error else 200)


@app.get("/schedule")
async def schedule_page():
    """Server-rendered weekly schedule."""
    result = await asyncio.to_thread(schedule.get_weekly_schedule)
    return HTMLResponse(content=_render_schedule_html(result))


# --- Live ---

@app.get("/api/live/current")
async def api_live_current():
    """The event on air right now, never cached."""
    try:
        data = await asyncio.to_thread(radiocult_client.get_schedule_data)
    except Exception as e:
        logger.error("Error fetching current live event: %s", e)
        return JSONResponse(
            {"success": False, "error": "Failed to fetch current live event",
             "current_event": None, "is_live": False},
            status_code=500,
            headers=NO_STORE_HEADERS,
        )
    current = data["current_event"]
    upcoming = data["upcoming_event"]
    return JSONResponse(
        {
            "success": True,
            "current_event": asdict(current) if current else None,
            "upcoming_event": asdict(upcoming) if upcoming else None,
            "is_live": current is not None,
        },
        headers={**NO_STORE_HEADERS, "X-Content-Type-Options": "nosniff"},
    )


# --- Mixcloud archive ---

@app.get("/api/mixcloud")
async def api_mixcloud(
    limit: int = Query(default=20),
    offset: int = Query(default=0),
    tag: str = Query(default=""),
    search_term: str = Query(default="", alias="search"),
    is_new: bool = Query(default=False),
):
    """Proxy to the station's Mixcloud cloudcasts."""
    result = await asyncio.to_thread(
        mixcloud_client.get_shows,
        limit=_clamp(limit, 1, MAX_PAGE_SIZE),
        offset=max(offset, 0),
        tag=tag or None,
        search=search_term or None,
        is_new=is_new,
    )
    return JSONResponse(result)


# --- Search ---

@app.get("/api/search")
async def api_search(
    q: str = Query(default=""),
    content_type: str = Query(default="", alias="type"),
    genre: str = Query(default=""),
    limit: int = Query(default=100),
):
    """Search every content type. ``type`` is a comma-separated list."""
    types = [t.strip() for t in content_type.split(",") if t.strip()]
    unknown = [t for t in types if t not in search.SEARCH_TYPES]
    if unknown:
        return JSONResponse({"error": f"Unknown type: {', '.join(unknown)}"}, status_code=400)
    try:
        content = await asyncio.to_thread(search.fetch_all_content)
    except Exception as e:
        logger.error("[api/search] error: %s", e)
        return JSONResponse({"results": [], "error": "search_failed"}, status_code=500)
    results = search.search(content, term=q, types=types or None, genre=genre or None,
                            limit=_clamp(limit, 1, 200))
    logger.info("[api/search] query=%r results=%d", q, len(results))
    return JSONResponse({"results": [search.to_dict(r) for r in results]})


# --- Episodes and hosts ---

@app.get("/api/episodes/{slug}")
async def api_episode(slug: str):
    """A single published episode by slug."""
    try:
        episode = await asyncio.to_thread(
            cache.cached, f"episode:slug={slug}",
            lambda: cosmic_client.find_one("episode", slug=slug, depth=2),
            ("episodes",),
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error fetching episode %s: %s", slug, e)
        return JSONResponse({"error": "Failed to fetch episode"}, status_code=500)
    if not episode:
        return JSONResponse({"error": "Episode not found"}, status_code=404)
    return JSONResponse(episode)


@app.get("/api/hosts/{slug}/episodes")
async def api_host_episodes(slug: str, limit: int = Query(default=20), offset: int = Query(default=0)):
    """Episodes featuring a host, newest broadcast first."""
    limit = _clamp(limit, 1, MAX_PAGE_SIZE)
    offset = max(offset, 0)

    def _load() -> dict | None:
        host = cosmic_client.find_one("regular-hosts", slug=slug)
        if not host:
            return None
        episodes, total = cosmic_client.find_objects(
            "episode",
            query={"metadata.regular_hosts": host["id"]},
            props="id,slug,title,metadata,created_at",
            limit=limit,
            skip=offset,
            sort="-metadata.broadcast_date",
            depth=1,
        )
        return {
            "host": {"id": host["id"], "slug": host.get("slug"), "title": host.get("title")},
            "episodes": episodes,
            "total": total,
            "has_next": len(episodes) == limit and offset + limit < total,
        }

    try:
        result = await asyncio.to_thread(
            cache.cached, f"host-episodes:{slug}:{limit}:{offset}", _load, ("hosts", "episodes"),
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error fetching host episodes for %s: %s", slug, e)
        return JSONResponse({"error": "Failed to fetch episodes"}, status_code=500)
    if result is None:
        return JSONResponse({"error": "Host not found"}, status_code=404)
    return JSONResponse(result)


@app.get("/api/takeovers/{takeover_id}/episodes")
async def api_takeover_episodes(takeover_id: str, limit: int = Query(default=20),
                                offset: int = Query(default=0)):
    """Episodes belonging to a takeover, newest broadcast first."""
    limit = _clamp(limit, 1, MAX_PAGE_SIZE)
    offset = max(offset, 0)

    def _load() -> dict:
        episodes, total = cosmic_client.find_objects(
            "episode",
            query={"metadata.takeovers": takeover_id},
            props="id,slug,title,metadata,created_at",
            limit=limit,
            skip=offset,
            sort="-metadata.broadcast_date",
            depth=1,
        )
        return {
            "episodes": episodes,
            "total": total,
            "has_next": len(episodes) == limit and offset + limit < total,
        }

    try:
        result = await asyncio.to_thread(
            cache.cached, f"takeover-episodes:{takeover_id}:{limit}:{offset}", _load,
            ("takeovers", "episodes"),
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error fetching takeover episodes for %s: %s", takeover_id, e)
        return JSONResponse({"error": "Failed to fetch episodes"}, status_code=500)
    return JSONResponse(result)


@app.post("/api/episodes/by-ids")
async def api_episodes_by_ids(request: Request):
    """Episodes (any status) for a list of ids. Body: {"ids": [...]}."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"episodes": [], "error": "Invalid JSON body"}, status_code=400)
    ids = body.get("ids") if isinstance(body, dict) else None
    if not isinstance(ids, list) or not ids:
        return JSONResponse({"episodes": []})
    ids = [str(i) for i in ids[:MAX_PAGE_SIZE]]
    try:
        episodes, _ = await asyncio.to_thread(
            cosmic_client.find_objects,
            "episode",
            query={"id": {"$in": ids}},
            props="id,slug,title,type,metadata,created_at,modified_at",
            limit=len(ids),
            depth=1,
            status="any",
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error in /api/episodes/by-ids: %s", e)
        return JSONResponse({"episodes": [], "error": "Failed to fetch"}, status_code=500)
    return JSONResponse({"episodes": episodes})


# --- Posts ---

@app.get("/api/posts")
async def api_posts(skip: int = Query(default=0), limit: int = Query(default=6)):
    """Published editorial posts, newest first."""
    limit = _clamp(limit, 1, MAX_PAGE_SIZE)
    skip = max(skip, 0)
    try:
        posts, total = await asyncio.to_thread(
            cache.cached, f"posts:{skip}:{limit}",
            lambda: cosmic_client.find_objects("posts", limit=limit, skip=skip,
                                               sort="-metadata.date", depth=1),
            ("posts",),
        )
    except (CosmicAPIError, ConfigError) as e:
        logger.error("[api/posts] Error fetching posts: %s", e)
        return JSONResponse({"posts": [], "total": 0, "error": str(e)}, status_code=500)
    logger.info("[api/posts] skip=%d limit=%d found=%d", skip, limit, len(posts))
    return JSONResponse({"posts": posts, "total": total})


# --- Metadata ---

@app.get("/api/metadata/{kind}/{slug}")
async def api_metadata(kind: str, slug: str):
    """SEO metadata for an episode, show, post or video page."""
    if kind not in metadata.GENERATORS:
        return JSONResponse({"error": f"Unknown kind: {kind}"}, status_code=400)
    object_type, generate = metadata.GENERATORS[kind]
    try:
        obj = await asyncio.to_thread(cosmic_client.find_one, object_type, slug=slug, depth=1)
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error fetching %s %s for metadata: %s", kind, slug, e)
        return JSONResponse({"error": "Failed to fetch content"}, status_code=500)
    if not obj:
        return JSONResponse(metadata.generate_not_found_metadata(), status_code=404)
    return JSONResponse(generate(obj))


# --- Sanitization ---

@app.post("/api/sanitize-content")
async def api_sanitize_content(request: Request):
    """Sanitize HTML. Body: {"html": "...", "mode": "default|tracklist|editorial|embeds"}."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    content = body.get("html", body.get("content"))
    mode = body.get("mode") or body.get("type") or "default"
    if not content or not isinstance(content, str):
        return JSONResponse({"error": "html is required and must be a string"}, status_code=400)
    if mode not in sanitize.MODES:
        return JSONResponse({"error": f"Unknown mode: {mode}"}, status_code=400)

    sanitized = sanitize.MODES[mode](content)
    return JSONResponse({
        "original_length": len(content),
        "sanitized_length": len(sanitized),
        "sanitized_content": sanitized,
        "mode": mode,
    })


# --- Webhooks ---

@app.post("/api/cosmic-webhook")
async def api_cosmic_webhook(request: Request):
    """Revalidate cached content when an object changes in Cosmic."""
    provided = request.headers.get("x-cosmic-webhook-secret")
    if not revalidation.secrets_match(provided, settings.cosmic_webhook_secret):
        logger.warning("Invalid Cosmic webhook secret received")
        return JSONResponse({"message": "Unauthorized"}, status_code=401)

    try:
        body = await request.json()
        event_type = body.get("type")
        object_type, slug = revalidation.extract_object(body)
        revalidated = revalidation.revalidate_for(object_type, slug)
    except Exception as e:
        logger.error("Error processing Cosmic webhook: %s", e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    logger.info("Cosmic webhook %s for %s/%s processed", event_type, object_type, slug or "unknown")
    return JSONResponse({
        "success": True,
        "revalidated": revalidated,
        "message": f"Successfully processed {event_type} for {object_type}",
        "timestamp": datetime.now(UTC).isoformat(),
    })


@app.post("/api/revalidate")
async def api_revalidate(secret: str = Query(default=""), tag: str = Query(default="mixcloud")):
    """Manually drop a cache tag (the Mixcloud archive by default)."""
    if not revalidation.secrets_match(secret, settings.revalidate_secret):
        logger.warning("Invalid revalidation secret received")
        return JSONResponse({"message": "Invalid token"}, status_code=401)
    dropped = cache.invalidate_tag(tag)
    return JSONResponse({
        "revalidated": True,
        "tag": tag,
        "entries": dropped,
        "now": datetime.now(UTC).isoformat(),
    })


@app.post("/api/stripe/webhook")
async def api_stripe_webhook(request: Request):
    """Apply Stripe subscription lifecycle events to Cosmic users."""
    payload = await request.body()
    try:
        event = membership.verify_event(payload, request.headers.get("stripe-signature"))
    except WebhookSignatureError as e:
        logger.error("%s", e)
        return JSONResponse({"error": "Invalid signature"}, status_code=400)
    except ConfigError as e:
        logger.error("Stripe webhook not configured: %s", e)
        return JSONResponse({"error": "Webhook not configured"}, status_code=500)

    try:
        await asyncio.to_thread(membership.handle_event, event)
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error processing webhook %s: %s", event["type"], e)
        return JSONResponse({"error": "Webhook processing failed"}, status_code=500)
    return JSONResponse({"received": True})


@app.post("/api/stripe/create-checkout-session")
async def api_create_checkout_session(request: Request):
    """Start a membership checkout. Body: {"email", "firstName", "lastName", "userId"}."""
    if not settings.stripe_secret_key:
        return JSONResponse({"error": "Stripe not configured"}, status_code=503)
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    email, first_name, last_name = body.get("email"), body.get("firstName"), body.get("lastName")
    if not email or not first_name or not last_name:
        return JSONResponse({"error": "Missing required fields"}, status_code=400)

    try:
        url = await asyncio.to_thread(
            membership.create_checkout_session, email, first_name, last_name,
            body.get("userId") or "",
        )
    except (stripe.StripeError, ConfigError) as e:
        logger.error("Error creating checkout session: %s", e)
        return JSONResponse({"error": "Failed to create checkout session"}, status_code=500)
    return JSONResponse({"url": url})


# --- Cron syncs ---

def _cron_denied(request: Request) -> JSONResponse | None:
    """Error response unless the request carries ``Authorization: Bearer <CRON_SECRET>``."""
    if not settings.cron_secret:
        logger.error("CRON_SECRET environment variable not set")
        return JSONResponse({"error": "Cron job not configured"}, status_code=500)
    header = request.headers.get("authorization") or ""
    token = header.removeprefix("Bearer ") if header.startswith("Bearer ") else None
    if not revalidation.secrets_match(token, settings.cron_secret):
        logger.warning("Unauthorized cron request")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    return None


@app.api_route("/api/cron/sync-radiocult", methods=["GET", "POST"])
async def api_cron_sync_radiocult(request: Request, days_back: int = Query(default=7, alias="daysBack"),
                                  days_ahead: int = Query(default=30, alias="daysAhead")):
    """Create Cosmic episodes for RadioCult events that have none."""
    denied = _cron_denied(request)
    if denied:
        return denied
    logger.info("Starting RadioCult sync (%d days back, %d days ahead)", days_back, days_ahead)
    try:
        result = await asyncio.to_thread(sync.sync_radiocult_to_cosmic, days_back, days_ahead)
    except (RadioCultError, CosmicAPIError, ConfigError) as e:
        logger.error("Error in sync-radiocult cron job: %s", e)
        return JSONResponse({"error": "Internal server error", "message": str(e)}, status_code=500)
    return JSONResponse({
        "success": True,
        "message": (f"Sync complete: {result['created']} created, {result['skipped']} skipped, "
                    f"{result['errors']} errors"),
        **result,
        "timestamp": datetime.now(UTC).isoformat(),
    })


@app.get("/api/cron/sync-episodes")
async def api_cron_sync_episodes(request: Request):
    """Schedule uploaded Cosmic episodes as RadioCult events."""
    denied = _cron_denied(request)
    if denied:
        return denied
    if not (settings.radiocult_station_id and settings.radiocult_secret_key):
        return JSONResponse({"error": "RadioCult credentials not configured"}, status_code=500)
    try:
        result = await asyncio.to_thread(sync.sync_episodes_to_radiocult)
    except (CosmicAPIError, ConfigError) as e:
        logger.error("Error in sync-episodes cron job: %s", e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return JSONResponse({"success": True, **result, "timestamp": datetime.now(UTC).isoformat()})


@app.get("/api/cron/sync-player-urls")
async def api_cron_sync_player_urls(request: Request):
    """Copy legacy Craft player URLs onto migrated radio shows missing one."""
    denied = _cron_denied(request)
    if denied:
        return denied

    def _run() -> dict:
        craft_entries = craft_export.fetch_endpoint(f"entries/{sync.PLAYER_SECTION}")["data"]
        objects = cosmic_client.find_all_objects(sync.PLAYER_OBJECT_TYPE,
                                                 props="id,title,slug,metadata", status="any")
        return sync.sync_player_urls(craft_entries, objects)

    try:
        result = await asyncio.to_thread(_run)
    except (MigrationError, CosmicAPIError, ConfigError) as e:
        logger.error("Error in sync-player-urls cron job: %s", e)
        return JSONResponse({"success": False, "error": str(e),
                             "timestamp": datetime.now(UTC).isoformat()}, status_code=500)
    return JSONResponse({
        "success": True,
        "message": "Player URL sync completed",
        **result,
        "timestamp": datetime.now(UTC).isoformat(),
    })


# --- Schedule HTML ---

def _render_schedule_html(result: WeeklySchedule) -> str:
    """Render the weekly schedule as a styled HTML page."""
    sections = []
    for day in UK_WEEK_DAYS:
        items = [i for i in result.items if i.show_day == day]
        if not items:
            continue
        date = result.day_dates.get(day, "")
        rows = []
        for item in items:
            name = html_mod.escape(item.name)
            if item.url:
                name = f'<a href="{html_mod.escape(item.url, quote=True)}">{name}</a>'
            hosts = html_mod.escape(", ".join(item.hosts))
            badge = ' <span class="badge">Replay</span>' if item.is_replay else ""
            rows.append(
                f'<li><span class="time">{item.show_time}</span>'
                f'<span class="name">{name}{badge}</span>'
                f'<span class="hosts">{hosts}</span></li>'
            )
        sections.append(
            f'<section><h2>{day} <span class="date">{date}</span></h2>'
            f'<ul>{"".join(rows)}</ul></section>'
        )

    if result.error:
        body = f'<p class="empty">{html_mod.escape(result.error)}</p>'
    elif sections:
        body = "\n".join(sections)
    else:
        body = '<p class="empty">No shows scheduled this week.</p>'

    site_name = html_mod.escape(settings.site_name)
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Schedule - {site_name}</title>
<style>
  :root {{
    --bg: #f6f4ef;
    --border: #1a1a1a;
    --text: #1a1a1a;
    --text-dim: #6b6b6b;
    --accent: #88ca4f;
  }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{
    font-family: 'Helvetica Neue', Arial, sans-serif;
    background: var(--bg); color: var(--text);
    min-height: 100vh;
  }}
  header {{
    border-bottom: 1px solid var(--border);
    padding: 16px 24px;
  }}
  header h1 {{ font-size: 18px; font-weight: 700; letter-spacing: 2px; text-transform: uppercase; }}
  .container {{ max-width: 920px; margin: 0 auto; padding: 32px 24px; }}
  section {{ margin-bottom: 32px; }}
  h2 {{ font-size: 15px; text-transform: uppercase; border-bottom: 1px solid var(--border); padding-bottom: 6px; }}
  h2 .date {{ color: var(--text-dim); font-weight: 400; margin-left: 8px; }}
  ul {{ list-style: none; }}
  li {{ display: grid; grid-template-columns: 72px 1fr 1fr; gap: 12px; padding: 10px 0; border-bottom: 1px dashed #ccc; font-size: 13px; }}
  .time {{ font-family: 'SF Mono', 'Consolas', monospace; }}
  .hosts {{ color: var(--text-dim); }}
  .badge {{ background: var(--accent); font-size: 10px; padding: 1px 6px; margin-left: 6px; text-transform: uppercase; }}
  a {{ color: inherit; }}
  .empty {{ color: var(--text-dim); font-size: 13px; }}
</style>
</head>
<body>
  <header><h1>{site_name} &middot; Schedule</h1></header>
  <div class="container">
{body}
  </div>
</body>
</html>"""
