"""Signup-time matching: fetch candidates, run the tier strategy, persist, report."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from job_matching.cache import MatchCache
from job_matching.config import MatchingSettings
from job_matching.log import get_logger
from job_matching.models import MatchResult, RelaxationEvent, Tier, UserProfile
from job_matching.scorer import AIScorer, build_scoring_client
from job_matching.sources import CandidateSource, get_source
from job_matching.strategies import StrategyResult, get_strategy
from job_matching.telemetry import (
    FALLBACK_MATCH,
    SIGNUP_COMPLETED,
    SIGNUP_NO_MATCHES,
    TelemetrySink,
    build_telemetry,
)
from job_matching.tracker import CsvMatchRepository, MatchRepository, MemoryMatchRepository

log = get_logger(__name__)

DATABASE_ERROR = "DATABASE_ERROR"
NO_JOBS_AVAILABLE = "NO_JOBS_AVAILABLE"


@dataclass
class MatchingOutcome:
    email: str
    tier: Tier
    matches: list[MatchResult] = field(default_factory=list)
    records: list[dict[str, Any]] = field(default_factory=list)
    events: list[RelaxationEvent] = field(default_factory=list)
    method: str = ""
    error: str | None = None
    filter_stage: str = ""
    available_jobs_count: int = 0
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def match_count(self) -> int:
        return len(self.matches)


class SignupMatchingService:
    """Owns the cache and wires the tier strategy for each signup."""

    def __init__(
        self,
        settings: MatchingSettings,
        source: CandidateSource,
        scorer: AIScorer,
        cache: MatchCache | None = None,
        telemetry: TelemetrySink | None = None,
        repository: MatchRepository | None = None,
        use_cache: bool = True,
        timer: Callable[[], float] = time.monotonic,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.source = source
        self.scorer = scorer
        self.cache = cache if cache is not None else MatchCache.from_settings(settings.cache)
        self.telemetry = telemetry or build_telemetry(settings.telemetry_url)
        self.repository = repository or MemoryMatchRepository()
        self.use_cache = use_cache
        self._timer = timer
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> SignupMatchingService:
        scorer = AIScorer(build_scoring_client(settings.scorer), settings.scorer)
        return cls(
            settings,
            source=get_source(settings),
            scorer=scorer,
            repository=CsvMatchRepository(settings.data_dir),
        )

    def run(self, profile: UserProfile) -> MatchingOutcome:
        strategy = get_strategy(
            profile.tier, self.settings, self.scorer, self.cache,
            use_cache=self.use_cache, clock=self._clock,
        )
        outcome = MatchingOutcome(email=profile.email, tier=profile.tier)

        if self._existing_matches(profile):
            log.info("Matches already exist for %s — skipping", profile.email)
            outcome.method = "idempotent"
            return outcome

        started = self._timer()
        try:
            candidates = self.source.fetch_candidates(strategy.settings, profile)
        except Exception as exc:
            log.error("Candidate fetch failed for %s: %s", profile.email, exc)
            outcome.error = DATABASE_ERROR
            outcome.filter_stage = "fetch_failed"
            outcome.duration_ms = self._elapsed_ms(started)
            self._emit(SIGNUP_NO_MATCHES, self._properties(profile, outcome))
            return outcome

        outcome.available_jobs_count = len(candidates)
        if not candidates:
            log.warning("No active jobs available for %s", profile.email)
            outcome.error = NO_JOBS_AVAILABLE
            outcome.filter_stage = "no_jobs"
            outcome.duration_ms = self._elapsed_ms(started)
            self._emit(SIGNUP_NO_MATCHES, self._properties(profile, outcome))
            return outcome

        result = strategy.run(profile, candidates)
        outcome.duration_ms = self._elapsed_ms(started)
        outcome.matches = result.matches
        outcome.records = strategy.present(result.matches)
        outcome.events = result.events
        outcome.method = result.method
        outcome.error = result.error
        outcome.filter_stage = result.filter_stage

        self._persist(profile, result)

        event = SIGNUP_COMPLETED if outcome.match_count else SIGNUP_NO_MATCHES
        self._emit(event, self._properties(profile, outcome))
        if result.summary is not None:
            self._emit(FALLBACK_MATCH, result.summary.as_properties())

        log.info(
            "[%s] %s → %d matches via %s in %dms",
            profile.tier.value, profile.email, outcome.match_count,
            outcome.method, outcome.duration_ms,
        )
        return outcome

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self._timer() - started) * 1000))

    def _existing_matches(self, profile: UserProfile) -> int:
        try:
            return self.repository.existing_match_count(profile.email)
        except Exception as exc:
            log.warning("Idempotency check failed for %s: %s", profile.email, exc)
            return 0

    def _persist(self, profile: UserProfile, result: StrategyResult) -> None:
        try:
            self.repository.save_matches(profile, result.matches, result.method)
            self.repository.save_relaxation_events(profile, result.events)
        except Exception as exc:
            log.error("Failed to persist matches for %s: %s", profile.email, exc)

    @staticmethod
    def _properties(profile: UserProfile, outcome: MatchingOutcome) -> dict[str, Any]:
        return {
            "tier": profile.tier.value,
            "cities": list(profile.target_cities),
            "career_path": list(profile.career_paths),
            "available_jobs_count": outcome.available_jobs_count,
            "filter_stage": outcome.filter_stage,
            "duration_ms": outcome.duration_ms,
            "match_count": outcome.match_count,
            "method": outcome.method,
            "error": outcome.error,
        }

    def _emit(self, event: str, properties: dict[str, Any]) -> None:
        try:
            self.telemetry.emit(event, properties)
        except Exception as exc:
            log.warning("Telemetry sink failed for %s: %s", event, exc)
