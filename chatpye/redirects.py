import logging
import re
from typing import Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import RedirectResponse

from .config import Settings
from .errors import InvalidRequestError

logger = logging.getLogger(__name__)

VIDEO_ID_RE = re.compile(r"[A-Za-z0-9_-]{11}")

router = APIRouter()


def app_link(app_url: str, video_id: Optional[str] = None) -> str:
    if not video_id:
        return app_url
    return f"{app_url}?{urlencode({'videoId': video_id})}"


def video_id_from_path(path: str, v: Optional[str] = None) -> Optional[str]:
    """Resolve ?v=ID, /v/ID, /watchID or /ID to a video id."""
    candidate = v
    if not candidate:
        parts = [p for p in path.split("/") if p]
        if parts:
            if parts[0] == "v" and len(parts) > 1:
                candidate = parts[1]
            elif parts[0].startswith("watch"):
                candidate = parts[0][len("watch"):]
            else:
                candidate = parts[0]
    if candidate and VIDEO_ID_RE.fullmatch(candidate):
        return candidate
    return None


def canonical_redirect(host: str, scheme: str, path: str, query: str,
                       canonical_hosts: Dict[str, str], app_url: str,
                       force_https: bool = False) -> Optional[str]:
    """Where a request for host/path should go instead, or None if it is already canonical."""
    hostname = (host or "").split(":", 1)[0].lower()
    suffix = path + (f"?{query}" if query else "")

    # a host mapped onto itself is already canonical
    if hostname in canonical_hosts and canonical_hosts[hostname] != hostname:
        v = None
        for pair in query.split("&") if query else []:
            if pair.startswith("v="):
                v = pair[2:]
        video_id = video_id_from_path(path, v)
        if video_id:
            return app_link(app_url, video_id)
        return f"https://{canonical_hosts[hostname]}{suffix}"

    if hostname.startswith("www."):
        return f"https://{host[len('www.'):]}{suffix}"

    if force_https and scheme == "http" and hostname not in ("localhost", "127.0.0.1"):
        return f"https://{host}{suffix}"

    return None


def _settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/api/redirect")
async def short_link(request: Request, v: Optional[str] = None):
    return RedirectResponse(app_link(_settings(request).app_url, v))


@router.get("/youtube-redirect")
@router.get("/youtube-redirect/{path:path}")
async def youtube_redirect(request: Request, path: str = "", v: Optional[str] = None):
    video_id = video_id_from_path(path, v)
    if not video_id:
        raise InvalidRequestError("Video ID not found in URL")
    return RedirectResponse(app_link(_settings(request).app_url, video_id))


def install_canonical_redirects(app: FastAPI, settings: Settings):
    @app.middleware("http")
    async def canonical_host(request: Request, call_next):
        if request.url.path.startswith("/api"):
            return await call_next(request)
        scheme = request.headers.get("x-forwarded-proto", request.url.scheme)
        target = canonical_redirect(
            request.headers.get("host", ""),
            scheme,
            request.url.path,
            request.url.query,
            settings.canonical_hosts,
            settings.app_url,
            settings.force_https,
        )
        if target:
            logger.info("Redirecting %s%s to %s", request.headers.get("host", ""), request.url.path, target)
            return RedirectResponse(target)
        return await call_next(request)
