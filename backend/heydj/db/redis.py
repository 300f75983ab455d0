"""Redis client for sessions, counters and caching"""
import json
import logging
import secrets
from typing import Optional, Dict

import redis

from heydj.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


# Session TTL (30 days)
SESSION_TTL = 30 * 24 * 60 * 60

# Rate limiting configuration
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_REQUESTS = 600
RATE_LIMIT_STRICT_WINDOW = 60
RATE_LIMIT_STRICT_REQUESTS = 120

# Attendee request counters outlive any single event night
ATTENDEE_QUOTA_TTL = 7 * 24 * 60 * 60

# Cache TTLs
SETTINGS_CACHE_TTL = 5 * 60
PLAN_CACHE_TTL = 5 * 60


# ============================================================================
# SESSIONS & CSRF
# ============================================================================

def get_session(session_id: str) -> Optional[str]:
    """Get user_id from session"""
    return get_redis_client().get(f"session:{session_id}")


def set_csrf_token(session_id: str, token: str) -> None:
    """Store CSRF token in Redis"""
    get_redis_client().setex(f"csrf:{session_id}", SESSION_TTL, token)


def get_csrf_token(session_id: str) -> Optional[str]:
    """Get CSRF token from Redis"""
    return get_redis_client().get(f"csrf:{session_id}")


def get_or_create_csrf_token(session_id: str) -> str:
    """Get existing CSRF token or create new one if it doesn't exist"""
    csrf_token = get_csrf_token(session_id)
    if not csrf_token:
        csrf_token = secrets.token_urlsafe(32)
        set_csrf_token(session_id, csrf_token)
    return csrf_token


# ============================================================================
# RATE LIMITING
# ============================================================================

def increment_rate_limit(identifier: str, window: int) -> int:
    """Increment a fixed-window counter and return the current count.

    The TTL is only set when the key is created so the window does not slide.
    """
    key = f"ratelimit:{identifier}"
    client = get_redis_client()
    count = client.incr(key)
    if count == 1:
        client.expire(key, window)
    return int(count)


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit using Redis. Returns True if allowed, False if rate limited."""
    window = RATE_LIMIT_STRICT_WINDOW if strict else RATE_LIMIT_WINDOW
    max_requests = RATE_LIMIT_STRICT_REQUESTS if strict else RATE_LIMIT_REQUESTS
    return increment_rate_limit(identifier, window) <= max_requests


# ============================================================================
# ATTENDEE QUOTA & VOTE COOLDOWN
# ============================================================================

def _quota_key(event_id: str, attendee_id: str) -> str:
    return f"quota:{event_id}:{attendee_id}"


def get_attendee_request_count(event_id: str, attendee_id: str) -> int:
    """Number of submissions an attendee has made for an event"""
    count = get_redis_client().get(_quota_key(event_id, attendee_id))
    return int(count) if count else 0


def reserve_attendee_request(event_id: str, attendee_id: str, limit: int) -> Optional[int]:
    """Atomically take one request slot.

    Returns the new count, or None if the attendee is already at ``limit``
    (in which case nothing is consumed).
    """
    key = _quota_key(event_id, attendee_id)
    client = get_redis_client()
    count = client.incr(key)
    if count == 1:
        client.expire(key, ATTENDEE_QUOTA_TTL)
    if count > limit:
        client.decr(key)
        return None
    return int(count)


def release_attendee_request(event_id: str, attendee_id: str) -> None:
    """Give back a slot taken by reserve_attendee_request (submission failed)"""
    key = _quota_key(event_id, attendee_id)
    client = get_redis_client()
    if client.decr(key) < 0:
        client.set(key, 0, ex=ATTENDEE_QUOTA_TTL)


def acquire_vote_cooldown(attendee_id: str, song_id: str, cooldown_ms: int) -> bool:
    """SET NX PX guard against rapid vote toggling. True if the toggle may proceed."""
    result = get_redis_client().set(f"vote_cooldown:{attendee_id}:{song_id}", "1", nx=True, px=cooldown_ms)
    return result is True


# ============================================================================
# CACHES
# ============================================================================

def get_cached_settings(user_id: str, category: str) -> Optional[Dict]:
    """Get cached user settings from Redis"""
    cached = get_redis_client().get(f"cache:settings:{user_id}:{category}")
    if cached:
        return json.loads(cached)
    return None


def set_cached_settings(user_id: str, category: str, values: Dict) -> None:
    """Cache user settings in Redis"""
    get_redis_client().setex(f"cache:settings:{user_id}:{category}", SETTINGS_CACHE_TTL, json.dumps(values))


def invalidate_settings_cache(user_id: str, category: str) -> None:
    """Drop cached settings. Best-effort: a Redis failure must not break the write."""
    try:
        get_redis_client().delete(f"cache:settings:{user_id}:{category}")
    except Exception as e:
        logger.warning(f"Failed to invalidate settings cache for user {user_id}: {e}")


def get_cached_plan(user_id: str) -> Optional[Dict]:
    """Get the cached plan snapshot for a user"""
    cached = get_redis_client().get(f"cache:plan:{user_id}")
    if cached:
        return json.loads(cached)
    return None


def set_cached_plan(user_id: str, snapshot: Dict) -> None:
    """Cache a plan snapshot"""
    get_redis_client().setex(f"cache:plan:{user_id}", PLAN_CACHE_TTL, json.dumps(snapshot))


def invalidate_plan_cache(user_id: str) -> None:
    """Drop the cached plan snapshot after any write to the user's subscription fields"""
    try:
        get_redis_client().delete(f"cache:plan:{user_id}")
    except Exception as e:
        logger.warning(f"Failed to invalidate plan cache for user {user_id}: {e}")
