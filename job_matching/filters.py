"""Deterministic candidate filters shared by the strict and relaxed passes."""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable

from job_matching.config import TierSettings
from job_matching.log import get_logger
from job_matching.models import WILDCARD_CAREER, JobCandidate, UserProfile, VisaFriendliness

log = get_logger(__name__)


class Dimension(str, Enum):
    FRESHNESS = "freshness"
    VISA = "visa"
    CAREER_PATH = "career_path"
    CITY = "city"


@dataclass(frozen=True)
class FilterCriteria:
    """Immutable filter settings; ``relaxed`` only ever grows."""

    cities: tuple[str, ...] = ()
    career_paths: tuple[str, ...] = ()
    freshness_days: int | None = None
    relaxed_freshness_days: int | None = None
    requires_visa: bool = False
    relaxed: frozenset[Dimension] = frozenset()

    @classmethod
    def from_profile(cls, profile: UserProfile, tier: TierSettings) -> FilterCriteria:
        return cls(
            cities=tuple(c for c in profile.target_cities if c.strip()),
            career_paths=tuple(p for p in profile.career_paths if p.strip()),
            freshness_days=tier.freshness_days,
            relaxed_freshness_days=tier.relaxed_freshness_days,
            requires_visa=profile.needs_sponsorship,
        )

    @property
    def wildcard_career(self) -> bool:
        return not self.career_paths or any(
            p.lower() == WILDCARD_CAREER for p in self.career_paths
        )

    @property
    def window_days(self) -> int | None:
        if Dimension.FRESHNESS in self.relaxed:
            return self.relaxed_freshness_days
        return self.freshness_days

    @property
    def stage(self) -> str:
        if not self.relaxed:
            return "strict"
        return "relaxed:" + ",".join(sorted(d.value for d in self.relaxed))

    def is_enforced(self, dimension: Dimension) -> bool:
        """True while relaxing *dimension* could still admit more jobs."""
        if dimension in self.relaxed:
            return False
        if dimension is Dimension.FRESHNESS:
            if self.freshness_days is None:
                return False
            wider = self.relaxed_freshness_days
            return wider is None or wider > self.freshness_days
        if dimension is Dimension.VISA:
            return self.requires_visa
        if dimension is Dimension.CAREER_PATH:
            return not self.wildcard_career
        return bool(self.cities)

    def relax(self, dimension: Dimension) -> FilterCriteria:
        return replace(self, relaxed=self.relaxed | {dimension})

    def describe(self) -> dict[str, Any]:
        return {
            "cities": [] if Dimension.CITY in self.relaxed else list(self.cities),
            "career_paths": (
                [] if Dimension.CAREER_PATH in self.relaxed else list(self.career_paths)
            ),
            "freshness_days": self.window_days,
            "visa_required": self.requires_visa and Dimension.VISA not in self.relaxed,
            "relaxed": sorted(d.value for d in self.relaxed),
        }


class JobFilter:
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def apply(
        self, candidates: Iterable[JobCandidate], criteria: FilterCriteria
    ) -> list[JobCandidate]:
        """Return candidates passing every non-relaxed rule, in input order."""
        now = self._clock()
        result = [
            job for job in candidates
            if self._city_ok(job, criteria)
            and self._career_ok(job, criteria)
            and self._visa_ok(job, criteria)
            and self._fresh_ok(job, criteria, now)
        ]
        log.debug("Filter [%s] kept %d jobs", criteria.stage, len(result))
        return result

    @staticmethod
    def _city_ok(job: JobCandidate, criteria: FilterCriteria) -> bool:
        if Dimension.CITY in criteria.relaxed or not criteria.cities:
            return True
        city = (job.city or "").strip().lower()
        # Unknown location is kept.
        if not city:
            return True
        return any(target.lower() in city for target in criteria.cities)

    @staticmethod
    def _career_ok(job: JobCandidate, criteria: FilterCriteria) -> bool:
        if Dimension.CAREER_PATH in criteria.relaxed or criteria.wildcard_career:
            return True
        wanted = {p.lower() for p in criteria.career_paths}
        return any(c.lower() in wanted for c in job.categories)

    @staticmethod
    def _visa_ok(job: JobCandidate, criteria: FilterCriteria) -> bool:
        if Dimension.VISA in criteria.relaxed or not criteria.requires_visa:
            return True
        return job.visa_friendly is not VisaFriendliness.FALSE

    @staticmethod
    def _fresh_ok(job: JobCandidate, criteria: FilterCriteria, now: datetime) -> bool:
        window = criteria.window_days
        if window is None or job.posted_at is None:
            return True
        return job.posted_at >= now - timedelta(days=window)


def diversify_sample(
    jobs: list[JobCandidate],
    target_cities: Iterable[str],
    max_jobs: int,
    max_per_source: int = 3,
) -> list[JobCandidate]:
    """Cap the scoring pool at *max_jobs*, balancing cities and sources.

    Each target city gets an equal share of the pool, with at most
    *max_per_source* jobs from one source during that pass. Any space left
    is filled in original order without the source cap. The returned list
    keeps the input order.
    """
    if len(jobs) <= max_jobs:
        return list(jobs)

    cities = [c.lower() for c in target_cities if c.strip()]
    chosen: set[int] = set()
    per_source: Counter[str] = Counter()

    def take(idx: int, job: JobCandidate) -> None:
        chosen.add(idx)
        per_source[job.source] += 1

    if cities:
        quota = math.ceil(max_jobs / len(cities))
        for city in cities:
            taken = 0
            for idx, job in enumerate(jobs):
                if taken >= quota or len(chosen) >= max_jobs:
                    break
                if idx in chosen or city not in (job.city or "").lower():
                    continue
                if per_source[job.source] >= max_per_source:
                    continue
                take(idx, job)
                taken += 1
    else:
        for idx, job in enumerate(jobs):
            if len(chosen) >= max_jobs:
                break
            if per_source[job.source] < max_per_source:
                take(idx, job)

    for idx, job in enumerate(jobs):
        if len(chosen) >= max_jobs:
            break
        if idx not in chosen:
            take(idx, job)

    return [job for idx, job in enumerate(jobs) if idx in chosen]
