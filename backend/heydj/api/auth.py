"""Session helper routes. Login itself is handled by the identity provider."""
from fastapi import APIRouter, Depends, Request

from heydj.core.security import SESSION_COOKIE, require_auth
from heydj.db.redis import get_or_create_csrf_token

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/csrf")
def get_csrf(request: Request, user_id: str = Depends(require_auth)):
    """CSRF token bound to the caller's session"""
    return {"csrf_token": get_or_create_csrf_token(request.cookies.get(SESSION_COOKIE))}
