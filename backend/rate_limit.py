"""
GameOn Rate Limiting
In-memory sliding-window limiter keyed by client address.
One instance lives in app.extensions['rate_limiter']; counters reset on restart
and are not shared across processes.
"""

import threading
import time
import logging
from collections import deque
from functools import wraps
from flask import request, jsonify, current_app

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# bucket -> max requests per window
RATE_LIMITS = {
    'registration': 10,
    'waitinglist': 10,
    'events': 30,
    'default': 100,
}


def get_client_ip(req=None) -> str:
    """Resolve the caller address, honouring proxy headers"""
    req = req or request
    forwarded_for = req.headers.get('X-Forwarded-For')
    if forwarded_for:
        first_hop = forwarded_for.split(',')[0].strip()
        if first_hop:
            return first_hop
    real_ip = req.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return req.remote_addr or 'unknown'


class RateLimitResult:
    def __init__(self, allowed: bool, limit: int, remaining: int, reset_at: float, retry_after: int):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after = retry_after

    def headers(self) -> dict:
        headers = {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(int(self.reset_at)),
        }
        if not self.allowed:
            headers['Retry-After'] = str(self.retry_after)
        return headers


class RateLimiter:
    """Sliding window counter per (bucket, client)"""

    def __init__(self, limits: dict = None, window_seconds: int = WINDOW_SECONDS, clock=time.time):
        self.limits = dict(limits or RATE_LIMITS)
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def limit_for(self, bucket: str) -> int:
        return self.limits.get(bucket, self.limits.get('default', RATE_LIMITS['default']))

    def hit(self, bucket: str, client: str) -> RateLimitResult:
        """Register one request and report whether it is within the limit"""
        limit = self.limit_for(bucket)
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now

            hits = self._hits.setdefault((bucket, client), deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= limit:
                oldest = hits[0]
                reset_at = oldest + self.window_seconds
                retry_after = max(1, int(reset_at - now + 0.999))
                return RateLimitResult(False, limit, 0, reset_at, retry_after)

            hits.append(now)
            reset_at = hits[0] + self.window_seconds
            return RateLimitResult(True, limit, limit - len(hits), reset_at, 0)

    def _sweep(self, window_start: float):
        """Drop clients with no hits left in the window. Caller holds the lock."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()


def rate_limited(bucket: str = 'default'):
    """Decorator rejecting requests over the bucket's limit with 429"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            limiter = current_app.extensions.get('rate_limiter')
            if limiter is None:
                return f(*args, **kwargs)

            client = get_client_ip()
            result = limiter.hit(bucket, client)
            if not result.allowed:
                logger.warning(f"Rate limit exceeded for {client} on '{bucket}'")
                response = jsonify({
                    'success': False,
                    'message': 'Too many requests. Please try again later.'
                })
                response.status_code = 429
                response.headers.update(result.headers())
                return response

            return f(*args, **kwargs)
        return decorated_function
    return decorator
