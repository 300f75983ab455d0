"""HTTP middleware and the fallback error handler"""
import logging

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from heydj.core.security import (
    SESSION_COOKIE, ATTENDEE_COOKIE, get_allowed_origins, get_client_identifier, check_rate_limit,
    validate_origin_referer, log_api_access
)

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

# Server-to-server callers; never rate limited
UNTHROTTLED_PATHS = ("/webhook", "/health", "/metrics")

# Reachable from anywhere (attendee QR links, Stripe, cron)
PUBLIC_PATHS = (
    "/api/auth/csrf",
    "/api/contact",
    "/webhook",
    "/check-user-exists",
    "/downgrade-expired",
    "/metrics",
    "/health",
)
PUBLIC_PREFIXES = ("/api/public/",)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def setup_cors_middleware(app):
    """Credentialed CORS for the frontend origins"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _rejection(request: Request, status_code: int, message: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"error": message})
    origin = request.headers.get("Origin")
    if origin and origin in get_allowed_origins():
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


async def security_middleware(request: Request, call_next):
    """Throttle, check origins on writes, then log every request on the way out"""
    session_id = request.cookies.get(SESSION_COOKIE)
    path = request.url.path
    status_code = 500
    error = None

    try:
        if path not in UNTHROTTLED_PATHS:
            attendee_id = request.cookies.get(ATTENDEE_COOKIE) if path.startswith(PUBLIC_PREFIXES) else None
            identifier = get_client_identifier(request, session_id, attendee_id)
            is_state_changing = request.method in ["POST", "PATCH", "DELETE", "PUT"]
            if not check_rate_limit(identifier, strict=is_state_changing):
                status_code = 429
                error = "Rate limit exceeded"
                security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
                return _rejection(request, 429, "Rate limit exceeded. Please try again later.")

        if (
            not is_public_path(path)
            and request.method in ["POST", "PATCH", "DELETE", "PUT"]
            and not validate_origin_referer(request)
        ):
            status_code = 403
            error = "Invalid origin or referer"
            security_logger.warning(f"Origin/Referer validation failed - Path: {path}")
            return _rejection(request, 403, "Invalid origin or referer")

        response = await call_next(request)
        status_code = response.status_code
        return response

    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def global_exception_handler(request: Request, exc: Exception):
    """Last-resort handler: log the traceback, hide the details"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
