"""
Process-local TTL cache used for user role lookups.
Entries live in memory only and are not shared between worker processes.
"""

import threading
import time


class TTLCache:
    """Small thread-safe key/value cache with per-entry expiry"""

    def __init__(self, ttl_seconds: float, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def set(self, key, value, ttl_seconds: float = None):
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def invalidate(self, *keys):
        with self._lock:
            for key in keys:
                if key is not None:
                    self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)
