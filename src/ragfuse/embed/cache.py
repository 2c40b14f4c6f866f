"""LRU caching for cross-encoder relevance scores."""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from threading import Lock


class ScoreCache:
    """Thread-safe LRU cache keyed by (namespace, query, passage)."""

    def __init__(self, max_size: int = 4096) -> None:
        self._cache: OrderedDict[str, float] = OrderedDict()
        self._max_size = max_size
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def _key(self, namespace: str, query: str, passage: str) -> str:
        h = hashlib.sha256()
        for part in (namespace, query, passage):
            h.update(part.encode())
            h.update(b"\x00")
        return h.hexdigest()

    def get(self, namespace: str, query: str, passage: str) -> float | None:
        k = self._key(namespace, query, passage)
        with self._lock:
            if k in self._cache:
                self._cache.move_to_end(k)
                self.hits += 1
                return self._cache[k]
            self.misses += 1
            return None

    def put(self, namespace: str, query: str, passage: str, score: float) -> None:
        if self._max_size <= 0:
            return
        k = self._key(namespace, query, passage)
        with self._lock:
            if k in self._cache:
                self._cache.move_to_end(k)
            else:
                if len(self._cache) >= self._max_size:
                    self._cache.popitem(last=False)
            self._cache[k] = score

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0
