"""Bounded LRU cache with expiry for computed assessments."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Iterable, Optional, Tuple


def pair_cache_key(medications: Iterable[str], payload: Any = None) -> str:
    """Return an order-independent, case-insensitive key for ``medications``.

    When ``payload`` is given its canonical JSON digest is appended so two
    requests for the same pair with different evidence do not collide.
    """

    names = sorted(str(name).strip().lower() for name in medications if str(name).strip())
    key = "|".join(names)
    if payload is not None:
        encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        key = f"{key}#{hashlib.sha1(encoded).hexdigest()}"
    return key


class AssessmentCache:
    """Least-recently-used cache whose entries expire after ``ttl`` seconds.

    ``ttl`` of ``None`` disables expiry.  ``clock`` is injectable so expiry can
    be tested without sleeping.
    """

    def __init__(
        self,
        maxsize: int = 256,
        ttl: Optional[float] = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        expires_at = self._clock() + self.ttl if self.ttl is not None else float("inf")
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "maxsize": self.maxsize,
                "ttl": self.ttl,
                "hits": self.hits,
                "misses": self.misses,
            }
