"""Content-addressed cache for scored match lists."""
from __future__ import annotations

import hashlib
import json
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Sequence

from job_matching.config import CacheSettings
from job_matching.log import get_logger
from job_matching.models import JobCandidate, MatchResult, UserProfile

log = get_logger(__name__)

KEY_VERSION = "v1"


class CacheStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Any | None:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class TTLMemoryStore(CacheStore):
    """In-process LRU store with per-entry expiry."""

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = (self._clock() + self.ttl_seconds, value)
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)


class MatchCache:
    def __init__(self, store: CacheStore | None = None, enabled: bool = True) -> None:
        self.store = store or TTLMemoryStore()
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> MatchCache:
        store = TTLMemoryStore(settings.ttl_seconds, settings.max_entries)
        return cls(store, enabled=settings.enabled)

    @staticmethod
    def key_for(profile: UserProfile, jobs: Sequence[JobCandidate]) -> str:
        """Stable key over the profile's scoring fields and the ordered job ids."""
        payload = {
            "version": KEY_VERSION,
            "profile": profile.scoring_fields(),
            "jobs": [job.id for job in jobs],
        }
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()

    def get(self, key: str) -> list[MatchResult] | None:
        if not self.enabled:
            return None
        hit = self.store.get(key)
        if hit is None:
            return None
        log.debug("Match cache hit %s", key[:12])
        return list(hit)

    def set(self, key: str, results: Sequence[MatchResult]) -> None:
        if not self.enabled:
            return
        self.store.set(key, tuple(results))
