# core/rate_limiter.py

"""
Sliding-window rate limits, per process.

Two things are guessable by brute force and get a limit: the building
access codes behind ``/auth/join`` (per client IP) and the 6-digit gate
codes behind ``/visitors/validate-code`` (per gate terminal user).
"""

import time
from collections import defaultdict, deque
from threading import Lock
from typing import Optional

from fastapi import HTTPException, Request


_windows: dict[str, deque] = defaultdict(deque)
_lock = Lock()


def check_rate_limit(identifier: str, max_requests: int = 10, window_seconds: int = 60) -> tuple[bool, int]:
    """Record one hit for ``identifier``. Returns (allowed, remaining)."""
    now = time.monotonic()

    with _lock:
        hits = _windows[identifier]
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()

        if len(hits) >= max_requests:
            return False, 0

        hits.append(now)
        return True, max_requests - len(hits)


def reset_rate_limits():
    with _lock:
        _windows.clear()


def get_rate_limit_identifier(request: Request, user_id: Optional[str] = None) -> str:
    """
    Authenticated callers are limited per user, anonymous ones per client IP
    (first X-Forwarded-For hop when behind a proxy).
    """
    if user_id:
        return f"user:{user_id}"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"

    return f"ip:{request.client.host if request.client else 'unknown'}"


def require_rate_limit(
    request: Request,
    identifier: Optional[str] = None,
    max_requests: int = 10,
    window_seconds: int = 60,
    scope: str = "default",
) -> int:
    """Raise 429 once ``identifier`` exceeds the limit for ``scope``."""
    identifier = identifier or get_rate_limit_identifier(request)

    allowed, remaining = check_rate_limit(f"{scope}:{identifier}", max_requests, window_seconds)

    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many attempts. Try again in {window_seconds} seconds.",
            headers={
                "X-RateLimit-Limit": str(max_requests),
                "X-RateLimit-Window": str(window_seconds),
                "Retry-After": str(window_seconds),
            },
        )

    return remaining
