# core/rate_limiter.py

from typing import Dict, NamedTuple, Optional, Tuple
import time

from fastapi import HTTPException, Request

from core.logging_config import get_logger

log = get_logger("rate_limiter")


# In-memory sliding window, per process.
# Several workers each keep their own window.
_rate_limit_store: Dict[str, list] = {}
_rate_limit_windows: Dict[str, int] = {}

# Seconds between sweeps for keys whose window has fully elapsed
PRUNE_INTERVAL_SECONDS = 60
_last_prune = 0.0


class RateLimit(NamedTuple):
    scope: str
    max_requests: int
    window_seconds: int


RESET_PASSWORD_LIMIT = RateLimit("reset_password", 5, 15 * 60)
LOGIN_LIMIT = RateLimit("login", 10, 60)
SIGNUP_LIMIT = RateLimit("signup", 5, 60 * 60)


def reset_rate_limits():
    global _last_prune
    _rate_limit_store.clear()
    _rate_limit_windows.clear()
    _last_prune = 0.0


def prune_rate_limits(now: Optional[float] = None) -> int:
    """Drop keys with no request left inside their window. Returns how many went."""
    global _last_prune
    now = time.time() if now is None else now
    _last_prune = now

    expired = [
        key for key, stamps in _rate_limit_store.items()
        if not stamps or stamps[-1] <= now - _rate_limit_windows.get(key, 0)
    ]
    for key in expired:
        _rate_limit_store.pop(key, None)
        _rate_limit_windows.pop(key, None)

    if expired:
        log.debug(f"Pruned {len(expired)} idle rate limit keys")
    return len(expired)


def check_rate_limit(
    identifier: str,
    max_requests: int = 10,
    window_seconds: int = 60,
) -> Tuple[bool, int, int]:
    """
    Record one request for `identifier`.

    Returns:
        (allowed, remaining, retry_after_seconds)
    """
    now = time.time()
    if now - _last_prune >= PRUNE_INTERVAL_SECONDS:
        prune_rate_limits(now)

    window_start = now - window_seconds
    _rate_limit_windows[identifier] = window_seconds

    requests = [ts for ts in _rate_limit_store.get(identifier, []) if ts > window_start]

    if len(requests) >= max_requests:
        _rate_limit_store[identifier] = requests
        retry_after = int(requests[0] + window_seconds - now) + 1
        return False, 0, max(retry_after, 1)

    requests.append(now)
    _rate_limit_store[identifier] = requests
    return True, max_requests - len(requests), 0


def get_rate_limit_identifier(request: Request, user_id: Optional[str] = None) -> str:
    """user id when known, otherwise the client IP (first X-Forwarded-For hop)."""
    if user_id:
        return f"user:{user_id}"

    client_ip = request.client.host if request.client else "unknown"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()

    return f"ip:{client_ip}"


def require_rate_limit(
    request: Request,
    limit: RateLimit,
    identifier: Optional[str] = None,
) -> int:
    """
    Raises 429 with Retry-After once `limit` is exhausted.
    Returns the number of requests left in the window.
    """
    if identifier is None:
        identifier = get_rate_limit_identifier(request)

    key = f"{limit.scope}:{identifier}"
    allowed, remaining, retry_after = check_rate_limit(key, limit.max_requests, limit.window_seconds)

    if not allowed:
        log.warning(f"Rate limit hit: {key}")
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Try again in {retry_after} seconds.",
            headers={
                "X-RateLimit-Limit": str(limit.max_requests),
                "X-RateLimit-Window": str(limit.window_seconds),
                "Retry-After": str(retry_after),
            },
        )

    return remaining
