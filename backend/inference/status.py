"""
ProviderStatusBoard — polling-safe status table for reasoning providers.

Adapters report every attempt here (trying -> success | failed). Writes are
serialized by a threading.Lock held only for the record mutation; readers
get copies and never block on a network call. Listeners are called after
the lock is released, with a copy of the updated record.

Usage:
    board = ProviderStatusBoard()
    board.register("groq", Capability.FAST)
    board.add_listener(lambda rec: print(rec.provider_id, rec.state))
"""

import copy
import logging
import threading
import time
from typing import Callable, Optional

from domain import Capability, ProviderRecord, ProviderState

logger = logging.getLogger(__name__)

StatusListener = Callable[[ProviderRecord], None]


class ProviderStatusBoard:

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._records: dict[str, ProviderRecord] = {}
        self._listeners: list[StatusListener] = []
        self._lock = threading.Lock()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    # ── Registration ──

    def register(self, provider_id: str, capability: Capability = Capability.FAST):
        with self._lock:
            if provider_id not in self._records:
                self._records[provider_id] = ProviderRecord(provider_id, capability)

    def add_listener(self, listener: StatusListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ── Writes ──

    def mark_trying(self, provider_id: str):
        def apply(rec: ProviderRecord):
            rec.state = ProviderState.TRYING
            rec.total_attempts += 1
        self._update(provider_id, apply)

    def mark_success(self, provider_id: str, latency: float):
        def apply(rec: ProviderRecord):
            rec.state = ProviderState.SUCCESS
            rec.last_latency = latency
            rec.last_error = None
            rec.consecutive_failures = 0
            rec.rate_limited_until = None
        self._update(provider_id, apply)

    def mark_failure(self, provider_id: str, error: str, latency: Optional[float] = None,
                     rate_limited_for: Optional[float] = None):
        now = self._clock()

        def apply(rec: ProviderRecord):
            rec.state = ProviderState.FAILED
            rec.last_error = error
            rec.last_failure_at = now
            rec.consecutive_failures += 1
            rec.total_failures += 1
            if latency is not None:
                rec.last_latency = latency
            if rate_limited_for is not None:
                rec.rate_limited_until = now + rate_limited_for
        self._update(provider_id, apply)

    def reset(self, provider_id: str):
        """Back to idle with a clean failure streak."""
        def apply(rec: ProviderRecord):
            rec.state = ProviderState.IDLE
            rec.consecutive_failures = 0
            rec.rate_limited_until = None
            rec.last_error = None
        self._update(provider_id, apply)

    def _update(self, provider_id: str, apply: Callable[[ProviderRecord], None]):
        with self._lock:
            rec = self._records.get(provider_id)
            if rec is None:
                rec = ProviderRecord(provider_id)
                self._records[provider_id] = rec
            apply(rec)
            updated = copy.copy(rec)
        self._notify(updated)

    def _notify(self, record: ProviderRecord):
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception as e:
                logger.warning("Status listener failed for %s: %s", record.provider_id, e)

    # ── Reads ──

    def get(self, provider_id: str) -> Optional[ProviderRecord]:
        with self._lock:
            rec = self._records.get(provider_id)
            return copy.copy(rec) if rec else None

    def snapshot(self) -> dict[str, ProviderRecord]:
        with self._lock:
            return {pid: copy.copy(rec) for pid, rec in self._records.items()}

    def is_penalized(self, provider_id: str, failure_threshold: int,
                     penalty_seconds: float, now: Optional[float] = None) -> bool:
        """True while a provider is rate limited or on a recent failure streak."""
        rec = self.get(provider_id)
        if rec is None:
            return False
        now = self._clock() if now is None else now
        if rec.rate_limited_until is not None and rec.rate_limited_until > now:
            return True
        if rec.consecutive_failures >= failure_threshold and rec.last_failure_at is not None:
            return now - rec.last_failure_at < penalty_seconds
        return False
