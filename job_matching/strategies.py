"""Tier-aware matching: filter, relax, score, and cut to the tier's quota.

Free and premium share one pipeline; they differ only in their
``TierSettings`` (quota, pool sizes, freshness windows, display fields).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from job_matching.cache import MatchCache
from job_matching.config import MatchingSettings, TierSettings
from job_matching.fallback import backfill
from job_matching.filters import FilterCriteria, JobFilter, diversify_sample
from job_matching.log import get_logger
from job_matching.models import JobCandidate, MatchResult, RelaxationEvent, Tier, UserProfile
from job_matching.relaxation import FallbackSummary, NextStep, RelaxationPlanner
from job_matching.scorer import AIScorer, ScorerNotInitializedError

log = get_logger(__name__)

SCORER_NOT_INITIALIZED = "SCORER_NOT_INITIALIZED"


@dataclass
class StrategyResult:
    matches: list[MatchResult]
    filtered: list[JobCandidate]
    criteria: FilterCriteria
    original_criteria: FilterCriteria
    events: list[RelaxationEvent] = field(default_factory=list)
    summary: FallbackSummary | None = None
    method: str = "ai"
    error: str | None = None

    @property
    def filter_stage(self) -> str:
        return self.criteria.stage

    @property
    def relaxed(self) -> bool:
        return bool(self.events)


class MatchingStrategy:
    tier: Tier

    def __init__(
        self,
        settings: TierSettings,
        scorer: AIScorer,
        cache: MatchCache | None = None,
        job_filter: JobFilter | None = None,
        use_cache: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if settings.tier is not self.tier:
            raise ValueError(
                f"{type(self).__name__} needs {self.tier.value} settings, got {settings.tier.value}"
            )
        self.settings = settings
        self.scorer = scorer
        self.cache = cache
        self.use_cache = use_cache
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.job_filter = job_filter or JobFilter(self._clock)

    @property
    def target_count(self) -> int:
        return self.settings.target_count

    def run(self, profile: UserProfile, candidates: Sequence[JobCandidate]) -> StrategyResult:
        original = FilterCriteria.from_profile(profile, self.settings)
        criteria = original
        planner = RelaxationPlanner(self.settings.relaxation_order, self._clock)
        needed = self.settings.min_required

        filtered = self.job_filter.apply(candidates, criteria)
        while True:
            step = planner.plan(criteria, len(filtered), needed)
            if not isinstance(step, NextStep):
                break
            criteria = step.criteria
            filtered = self.job_filter.apply(candidates, criteria)

        log.info(
            "[%s] %d of %d candidates pass filters at stage %s",
            self.tier.value, len(filtered), len(candidates), criteria.stage,
        )

        pool = diversify_sample(
            filtered,
            profile.target_cities,
            self.settings.max_jobs_for_ai,
            self.settings.max_per_source,
        )
        matches, method, error = self._score(profile, pool)

        matches = sorted(matches, key=lambda m: m.match_score, reverse=True)[: self.target_count]
        if self.settings.backfill_with_rules and len(matches) < self.target_count:
            extra = backfill(
                profile, pool, matches, self.target_count - len(matches), self._clock()
            )
            if extra:
                method = "rules_only" if not matches else f"{method}_plus_rules"
                matches = sorted(
                    matches + extra, key=lambda m: m.match_score, reverse=True
                )[: self.target_count]

        summary = None
        if planner.level:
            summary = planner.summary(profile.email, original, criteria, len(filtered), needed)

        return StrategyResult(
            matches=matches,
            filtered=filtered,
            criteria=criteria,
            original_criteria=original,
            events=planner.events,
            summary=summary,
            method=method,
            error=error,
        )

    def _score(
        self, profile: UserProfile, pool: list[JobCandidate]
    ) -> tuple[list[MatchResult], str, str | None]:
        if not pool:
            return [], "no_candidates", None

        cache = self.cache if self.use_cache else None
        key = MatchCache.key_for(profile, pool) if cache is not None else ""
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                return cached, "cache", None

        try:
            run = self.scorer.run(profile, pool)
        except ScorerNotInitializedError as exc:
            log.error("[%s] %s", self.tier.value, exc)
            return [], "scorer_unavailable", SCORER_NOT_INITIALIZED

        if cache is not None and run.complete:
            cache.set(key, run.results)
        return run.results, "ai", None

    def present(self, matches: Sequence[MatchResult]) -> list[dict[str, Any]]:
        """Flatten matches for display using this tier's field set."""
        rows: list[dict[str, Any]] = []
        for m in matches:
            row: dict[str, Any] = {
                "job_id": m.job.id,
                "match_score": m.match_score,
                "confidence_score": m.confidence_score,
                "match_reason": m.match_reason,
                "score_source": m.score_source,
            }
            for name in self.settings.display_fields:
                row[name] = _display_value(m, name)
            rows.append(row)
        return rows


def _display_value(match: MatchResult, name: str) -> Any:
    job = match.job
    if name == "score_breakdown":
        return match.score_breakdown.as_dict()
    if name == "categories":
        return sorted(job.categories)
    if name == "visa_friendly":
        return job.visa_friendly.value
    if name == "posted_at":
        return job.posted_at.isoformat() if job.posted_at else None
    return getattr(job, name, None)


class FreeMatchingStrategy(MatchingStrategy):
    tier = Tier.FREE


class PremiumMatchingStrategy(MatchingStrategy):
    tier = Tier.PREMIUM


_STRATEGIES: dict[Tier, type[MatchingStrategy]] = {
    Tier.FREE: FreeMatchingStrategy,
    Tier.PREMIUM: PremiumMatchingStrategy,
}


def get_strategy(
    tier: Tier | str,
    settings: MatchingSettings,
    scorer: AIScorer,
    cache: MatchCache | None = None,
    **kwargs: Any,
) -> MatchingStrategy:
    key = Tier.parse(tier)
    return _STRATEGIES[key](settings.tier(key), scorer, cache, **kwargs)
