"""Persist signup matches and relaxation events (in memory or CSV with file locking)."""
from __future__ import annotations

import csv
import fcntl
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from job_matching.log import get_logger
from job_matching.models import MatchResult, RelaxationEvent, UserProfile

log = get_logger(__name__)

MATCH_HEADERS: list[str] = [
    "user_email", "job_id", "job_hash", "title", "company", "url",
    "match_score", "confidence_score", "match_reason", "score_source",
    "method", "matched_at",
]
EVENT_HEADERS: list[str] = [
    "user_email", "level", "dimension", "preferences_before",
    "preferences_after", "matches_found", "timestamp",
]


class MatchRepository(ABC):
    @abstractmethod
    def existing_match_count(self, email: str) -> int:
        pass

    @abstractmethod
    def save_matches(
        self, profile: UserProfile, matches: Sequence[MatchResult], method: str
    ) -> int:
        pass

    @abstractmethod
    def save_relaxation_events(
        self, profile: UserProfile, events: Sequence[RelaxationEvent]
    ) -> None:
        pass


def _match_row(profile: UserProfile, m: MatchResult, method: str) -> dict[str, str]:
    return {
        "user_email": profile.email,
        "job_id": m.job.id,
        "job_hash": m.job.job_hash,
        "title": m.job.title,
        "company": m.job.company,
        "url": m.job.url,
        "match_score": str(m.match_score),
        "confidence_score": str(m.confidence_score),
        "match_reason": m.match_reason,
        "score_source": m.score_source,
        "method": method,
        "matched_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M"),
    }


def _event_row(profile: UserProfile, e: RelaxationEvent) -> dict[str, str]:
    return {
        "user_email": profile.email,
        "level": str(e.level),
        "dimension": e.dimension,
        "preferences_before": json.dumps(e.preferences_before, sort_keys=True),
        "preferences_after": json.dumps(e.preferences_after, sort_keys=True),
        "matches_found": str(e.matches_found),
        "timestamp": e.timestamp.isoformat(),
    }


class MemoryMatchRepository(MatchRepository):
    def __init__(self) -> None:
        self.matches: list[dict[str, str]] = []
        self.events: list[dict[str, str]] = []

    def existing_match_count(self, email: str) -> int:
        return sum(1 for r in self.matches if r["user_email"] == email)

    def save_matches(
        self, profile: UserProfile, matches: Sequence[MatchResult], method: str
    ) -> int:
        self.matches.extend(_match_row(profile, m, method) for m in matches)
        return len(matches)

    def save_relaxation_events(
        self, profile: UserProfile, events: Sequence[RelaxationEvent]
    ) -> None:
        self.events.extend(_event_row(profile, e) for e in events)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class CsvMatchRepository(MatchRepository):
    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self.matches_csv = self.data_dir / "user_matches.csv"
        self.events_csv = self.data_dir / "relaxation_events.csv"

    def _ensure(self, path: Path, headers: list[str]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            with open(path, "w", newline="", encoding="utf-8") as f:
                _lock(f)
                csv.writer(f).writerow(headers)
                _unlock(f)
            log.info("Created tracker → %s", path.name)

    def _append(self, path: Path, headers: list[str], rows: list[dict[str, str]]) -> None:
        self._ensure(path, headers)
        with open(path, "a", newline="", encoding="utf-8") as f:
            _lock(f)
            csv.DictWriter(f, fieldnames=headers).writerows(rows)
            _unlock(f)

    def read_matches(self) -> list[dict[str, str]]:
        self._ensure(self.matches_csv, MATCH_HEADERS)
        with open(self.matches_csv, "r", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            rows = list(csv.DictReader(f))
            _unlock(f)
        return rows

    def existing_match_count(self, email: str) -> int:
        return sum(1 for r in self.read_matches() if r.get("user_email") == email)

    def save_matches(
        self, profile: UserProfile, matches: Sequence[MatchResult], method: str
    ) -> int:
        rows = [_match_row(profile, m, method) for m in matches]
        if rows:
            self._append(self.matches_csv, MATCH_HEADERS, rows)
            log.debug("Tracked %d matches for %s", len(rows), profile.email)
        return len(rows)

    def save_relaxation_events(
        self, profile: UserProfile, events: Sequence[RelaxationEvent]
    ) -> None:
        rows = [_event_row(profile, e) for e in events]
        if rows:
            self._append(self.events_csv, EVENT_HEADERS, rows)
