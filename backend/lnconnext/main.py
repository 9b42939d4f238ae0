"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the lnconnext community
directory. Controllers are intentionally thin: they read the JSON body,
resolve the caller, validate, delegate to services and wrap the result
in the `{"success": true, "data": ..., "status": 200}` envelope.

Endpoints implemented (all POST with a JSON body unless noted):
- /api/bitcoiner/{create,get,list,update,delete}
- /api/organizer/{create,get,list,update,delete,events,search,stats}
- /api/event/{create,get,list,update,delete,upcoming,past,search}
- /api/user/{create,get}
- GET /api/calendar
- GET /sitemap.xml, /.well-known/lnurlp/{name}, /manifest.webmanifest, /offline
- GET /, /health
"""

from fastapi import FastAPI, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from datetime import date
from typing import Optional
import os
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, validators
from .auth import CurrentUser, get_current_user, get_optional_user
from .config import settings
from .errors import NotFoundError, ValidationError, register_error_handlers
from .models import utcnow
from .utils import sitemap
from .utils.calendar import VIEWS
from .utils.rate_limit import WriteThrottle

app = FastAPI(title="lnconnext API")
logger = logging.getLogger("lnconnext.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
write_throttle = WriteThrottle(
    max_requests=settings.WRITE_RATE_LIMIT_PER_MIN,
    window_seconds=settings.WRITE_RATE_LIMIT_WINDOW_SECONDS,
)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)
create_db_and_tables()


def _request_log_line(request: Request, req_id: str, started: float, status_code: Optional[int] = None) -> str:
    record = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        record["status_code"] = status_code
    return json.dumps(record, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        if request.url.path.startswith("/api"):
            logger.exception("request_failed %s", _request_log_line(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        logger.info("request_done %s", _request_log_line(request, req_id, started, response.status_code))
    return response


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


async def read_json(request: Request, allow_empty: bool = False) -> dict:
    """Decode the request body as a JSON object."""
    body = await request.body()
    if not body.strip():
        if allow_empty:
            return {}
        raise ValidationError("Invalid JSON format")
    try:
        payload = json.loads(body, parse_constant=_reject_constant)
    except ValueError:
        raise ValidationError("Invalid JSON format")
    return validators.require_object(payload)


def ok(data) -> dict:
    return {"success": True, "data": jsonable_encoder(data), "status": 200}


def write_user(request: Request, user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Authenticated caller for write endpoints, throttled per uid and route."""
    write_throttle.check(user.uid, request.url.path)
    return user


def _search_query(payload: dict) -> str:
    query = payload.get("query")
    if not query or not isinstance(query, str) or not query.strip():
        raise ValidationError("Search query is required")
    return query.strip()


# -- bitcoiner ---------------------------------------------------------------

@app.post("/api/bitcoiner/create")
async def create_bitcoiner(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    data = validators.validate_bitcoiner(await read_json(request))
    return ok(services.BitcoinerService(db).create(data, user))


@app.post("/api/bitcoiner/get")
async def get_bitcoiner(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    bitcoiner_id = validators.require_id(payload, message="Bitcoiner ID is required")
    return ok(services.BitcoinerService(db).get(bitcoiner_id))


@app.post("/api/bitcoiner/list")
async def list_bitcoiners(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    filters = validators.validate_directory_filters(await read_json(request))
    return ok(services.BitcoinerService(db).list(filters))


@app.post("/api/bitcoiner/update")
async def update_bitcoiner(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    bitcoiner_id = validators.require_id(payload, message="Bitcoiner ID is required")
    data = validators.validate_bitcoiner(payload)
    return ok(services.BitcoinerService(db).update(bitcoiner_id, data, user))


@app.post("/api/bitcoiner/delete")
async def delete_bitcoiner(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    bitcoiner_id = validators.require_id(payload, message="Bitcoiner ID is required")
    return ok(services.BitcoinerService(db).delete(bitcoiner_id, user))


# -- organizer ---------------------------------------------------------------

@app.post("/api/organizer/create")
async def create_organizer(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    data = validators.validate_organizer(await read_json(request))
    return ok(services.OrganizerService(db).create(data, user))


@app.post("/api/organizer/get")
async def get_organizer(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    organizer_id = validators.require_id(payload, message="Organizer ID is required")
    return ok(services.OrganizerService(db).get(organizer_id))


@app.post("/api/organizer/list")
async def list_organizers(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    filters = validators.validate_directory_filters(await read_json(request))
    return ok(services.OrganizerService(db).list(filters))


@app.post("/api/organizer/update")
async def update_organizer(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    organizer_id = validators.require_id(payload, message="Organizer ID is required")
    data = validators.validate_organizer(payload)
    return ok(services.OrganizerService(db).update(organizer_id, data, user))


@app.post("/api/organizer/delete")
async def delete_organizer(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    organizer_id = validators.require_id(payload, message="Organizer ID is required")
    return ok(services.OrganizerService(db).delete(organizer_id, user))


@app.post("/api/organizer/events")
async def organizer_events(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    organizer_id = validators.require_id(payload, key="organizerId", message="Organizer ID is required")
    return ok(services.OrganizerService(db).events_for(organizer_id))


@app.post("/api/organizer/search")
async def search_organizers(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    query = _search_query(await read_json(request))
    return ok(services.OrganizerService(db).search(query))


@app.post("/api/organizer/stats")
async def organizer_stats(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    organizer_id = validators.require_id(payload, key="organizerId", message="Organizer ID is required")
    return ok(services.OrganizerService(db).stats(organizer_id))


# -- event -------------------------------------------------------------------

@app.post("/api/event/create")
async def create_event(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    data = validators.validate_event(await read_json(request))
    return ok(services.EventService(db).create(data, user))


@app.post("/api/event/get")
async def get_event(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    event_id = validators.require_id(payload, message="Event ID is required")
    return ok(services.EventService(db).get(event_id))


@app.post("/api/event/list")
async def list_events(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    filters = validators.validate_event_filters(await read_json(request))
    return ok(services.EventService(db).list(filters))


@app.post("/api/event/update")
async def update_event(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    event_id = validators.require_id(payload, message="Event ID is required")
    data = validators.validate_event(payload)
    return ok(services.EventService(db).update(event_id, data, user))


@app.post("/api/event/delete")
async def delete_event(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(write_user)):
    payload = await read_json(request)
    event_id = validators.require_id(payload, message="Event ID is required")
    return ok(services.EventService(db).delete(event_id, user))


@app.post("/api/event/upcoming")
async def upcoming_events(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request, allow_empty=True)
    limit = validators.parse_limit(payload.get("limit"), 10)
    return ok(services.EventService(db).upcoming(limit))


@app.post("/api/event/past")
async def past_events(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request, allow_empty=True)
    limit = validators.parse_limit(payload.get("limit"), 10)
    return ok(services.EventService(db).past(limit))


@app.post("/api/event/search")
async def search_events(request: Request, db: Session = Depends(get_session), user: Optional[CurrentUser] = Depends(get_optional_user)):
    payload = await read_json(request)
    query = _search_query(payload)
    filters = payload.get("filters") or {}
    if not isinstance(filters, dict):
        raise ValidationError("filters must be an object")
    organizer_id = filters.get("organizerId")
    if organizer_id is not None and not isinstance(organizer_id, str):
        raise ValidationError("organizerId must be a string")
    limit = validators.parse_limit(filters.get("limit"), 50) or 50
    return ok(services.EventService(db).search(query, organizer_id or None, limit))


# -- user --------------------------------------------------------------------

@app.post("/api/user/create")
async def create_user(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(get_current_user)):
    await read_json(request, allow_empty=True)
    return ok(services.UserService(db).create(user))


@app.post("/api/user/get")
async def get_user(request: Request, db: Session = Depends(get_session), user: CurrentUser = Depends(get_current_user)):
    await read_json(request, allow_empty=True)
    return ok(services.UserService(db).get(user))


# -- public pages ------------------------------------------------------------

@app.get("/api/calendar")
def calendar_view(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    day: int = Query(1, ge=1, le=31),
    view: str = "month",
    db: Session = Depends(get_session),
):
    """Calendar grid for the month (or the week containing `day`)."""
    if view not in VIEWS:
        raise ValidationError(f"view must be one of: {', '.join(VIEWS)}")
    today = utcnow().date()
    try:
        anchor = date(year or today.year, month or today.month, day)
    except ValueError:
        raise ValidationError("Invalid calendar date")
    return ok(services.EventService(db).calendar(view, anchor, today))


@app.get("/sitemap.xml")
def sitemap_xml(db: Session = Depends(get_session)):
    entries = services.SitemapService(db).entries()
    return Response(content=sitemap.render(entries), media_type="application/xml")


@app.get("/.well-known/lnurlp/{name}")
def lnurlp(name: str):
    """LNURL-pay metadata for the configured lightning address."""
    if name != settings.LNURL_NAME:
        raise NotFoundError("Unknown lightning address")
    identifier = f"{settings.LNURL_NAME}@{settings.LNURL_DOMAIN}"
    metadata = json.dumps([["text/plain", f"Payment to {settings.LNURL_NAME}"], ["text/identifier", identifier]])
    return JSONResponse({
        "tag": "payRequest",
        "callback": settings.LNURL_CALLBACK,
        "minSendable": settings.LNURL_MIN_SENDABLE,
        "maxSendable": settings.LNURL_MAX_SENDABLE,
        "metadata": metadata,
    })


WEB_MANIFEST = {
    "name": "Bitcoin Events & Community",
    "short_name": "Bitcoin Events",
    "description": "Discover Bitcoin community events, organizers, and connect with fellow Bitcoiners",
    "start_url": "/",
    "display": "standalone",
    "background_color": "#ffffff",
    "theme_color": "#f7931a",
    "icons": [
        {"src": "/icon-192.png", "sizes": "192x192", "type": "image/png"},
        {"src": "/icon-512.png", "sizes": "512x512", "type": "image/png"},
    ],
    "categories": ["social", "business", "productivity"],
    "lang": "en",
    "orientation": "portrait",
}


@app.get("/manifest.webmanifest")
def manifest():
    return JSONResponse(WEB_MANIFEST, media_type="application/manifest+json")


@app.get("/offline", response_class=HTMLResponse)
def offline():
    """Fallback page the service worker serves when the network is down."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <meta name="viewport" content="width=device-width, initial-scale=1" />
      <title>You're Offline</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; background: #f9fafb; }
        .card { max-width: 420px; margin: 0 auto; padding: 24px; border: 1px solid #ddd; border-radius: 8px; background: #fff; text-align: center; }
        button, a.button { display: block; margin: 8px 0; padding: 8px; border-radius: 6px; }
        button { background: #ea580c; color: #fff; border: 0; width: 100%; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>You're Offline</h1>
        <p>It looks like you're not connected to the internet. Some features may not be available,
        but you can still browse cached content.</p>
        <button onclick="window.location.reload()">Try Again</button>
        <a class="button" href="/">Go Home</a>
        <p>While offline, you can still:</p>
        <ul>
          <li>View cached bitcoiner profiles</li>
          <li>Browse previously loaded events</li>
          <li>Access saved organizer information</li>
        </ul>
      </div>
    </body>
    </html>
    """


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>lnconnext API</title>
      <link rel="manifest" href="/manifest.webmanifest" />
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #f7931a; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>lnconnext API</h1>
        <p>Bitcoin community directory and event listing.</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/api/calendar">This month's calendar</a></li>
          <li><a href="/sitemap.xml">Sitemap</a></li>
        </ul>
        <p>Write endpoints need an <code>Authorization: Bearer &lt;token&gt;</code> header.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
