"""Request identity: DJ sessions, CSRF, the attendee cookie and access logging

DJ sessions are issued by the identity provider and shared through Redis
(``session:{sid}`` -> user id). Attendees never log in; they get an opaque
cookie on first contact.
"""
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import Depends, Header, HTTPException, Request, Response

from heydj.core.config import settings
from heydj.db.redis import get_session, get_csrf_token, check_rate_limit as redis_check_rate_limit

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

SESSION_COOKIE = "session_id"
ATTENDEE_COOKIE = "attendee_id"
ATTENDEE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
MAX_ATTENDEE_ID_LENGTH = 64

DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


# ============================================================================
# DJ SESSION
# ============================================================================

def require_auth(request: Request) -> str:
    """Dependency: the logged-in DJ's user id, or 401"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        raise HTTPException(401, "Not authenticated. Please log in.")

    user_id = get_session(session_id)
    if not user_id:
        raise HTTPException(401, "Session expired. Please log in again.")
    return user_id


def require_csrf(
    request: Request,
    user_id: str = Depends(require_auth),
    x_csrf_token: Optional[str] = Header(None, alias="X-CSRF-Token")
) -> str:
    """Dependency for state-changing DJ routes: session plus matching X-CSRF-Token"""
    expected = get_csrf_token(request.cookies.get(SESSION_COOKIE))
    if expected and x_csrf_token and secrets.compare_digest(x_csrf_token, expected):
        return user_id

    security_logger.warning(
        f"CSRF check failed - User: {user_id}, IP: {_client_ip(request)}, Path: {request.url.path}"
    )
    raise HTTPException(403, "Invalid or missing CSRF token")


# ============================================================================
# ATTENDEE IDENTITY
# ============================================================================

def get_attendee_id(request: Request, response: Response) -> str:
    """Dependency: the attendee's opaque id, issuing a cookie when missing or malformed"""
    attendee_id = request.cookies.get(ATTENDEE_COOKIE)
    if attendee_id and len(attendee_id) <= MAX_ATTENDEE_ID_LENGTH:
        return attendee_id

    attendee_id = secrets.token_urlsafe(24)
    response.set_cookie(
        key=ATTENDEE_COOKIE,
        value=attendee_id,
        max_age=ATTENDEE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )
    return attendee_id


# ============================================================================
# RATE LIMITING & ORIGIN CHECKS
# ============================================================================

def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_client_identifier(
    request: Request,
    session_id: Optional[str] = None,
    attendee_id: Optional[str] = None
) -> str:
    """Rate limit bucket: the DJ session, else the attendee cookie, else the client IP.

    Attendees at one venue usually share a NAT address, so their cookie is the bucket.
    """
    if session_id:
        return f"session:{session_id}"
    if attendee_id and len(attendee_id) <= MAX_ATTENDEE_ID_LENGTH:
        return f"attendee:{attendee_id}"
    return f"ip:{_client_ip(request)}"


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """True while ``identifier`` is under its limit. ``strict`` applies the write limit."""
    return redis_check_rate_limit(identifier, strict=strict)


def get_allowed_origins() -> List[str]:
    """Frontend origin, plus local dev servers outside production"""
    origins = [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "development":
        origins.extend(o for o in DEV_ORIGINS if o not in origins)
    return origins


def validate_origin_referer(request: Request) -> bool:
    """Check the Origin header (or the Referer's origin) against the allow list"""
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")

    # Tools like curl send neither header
    if not origin and not referer:
        return settings.ENVIRONMENT == "development"

    if not origin:
        parsed = urlparse(referer)
        origin = f"{parsed.scheme}://{parsed.netloc}"

    allowed = {o.rstrip("/") for o in get_allowed_origins() if o}
    return origin.rstrip("/") in allowed


# ============================================================================
# ACCESS LOG
# ============================================================================

def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """One JSON line per request on the api_access channel; warnings for failures"""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": request.url.query or None,
        "session": f"{session_id[:16]}..." if session_id else None,
        "attendee": bool(request.cookies.get(ATTENDEE_COOKIE)),
        "client_ip": _client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "status_code": status_code,
        "error": error,
    }

    line = f"API Access: {json.dumps(entry)}"
    if error or status_code >= 400:
        api_access_logger.warning(line)
    else:
        api_access_logger.info(line)
