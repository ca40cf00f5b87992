"""
ResponseCache — bounded, time-limited cache of provider answers.

Keyed on the normalized question, its intent and the workout context it was
asked in. Only provider answers are cached; tool answers are already cheap
and fallback answers must not hide a recovered provider.
"""

import copy
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

import config
from domain import RequestContext, Response

logger = logging.getLogger(__name__)


class ResponseCache:

    def __init__(self, max_size: int = config.CACHE_MAX_ENTRIES,
                 ttl: float = config.CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Response]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self):
        return len(self._entries)

    @staticmethod
    def cacheable(request: RequestContext) -> bool:
        # conversation turns depend on history, media on bytes we never hash
        return bool(request.text) and not request.conversation_id and not request.has_media

    @staticmethod
    def key(request: RequestContext, category: str) -> str:
        normalized = " ".join((request.text or "").lower().split())
        context = json.dumps(request.domain_state, sort_keys=True, default=str)
        raw = f"{category}\x00{normalized}\x00{context}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def get(self, request: RequestContext, category: str) -> Optional[Response]:
        """Return a copy of the cached answer, tagged cached=True, or None."""
        if not self.cacheable(request):
            return None
        key = self.key(request, category)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] <= self._clock():
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            response = copy.deepcopy(entry[1])
        response.metadata.extra["cached"] = True
        return response

    def put(self, request: RequestContext, category: str, response: Response):
        if not self.cacheable(request) or response.is_fallback:
            return
        key = self.key(request, category)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (self._clock() + self.ttl, copy.deepcopy(response))

    def clear(self):
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }
