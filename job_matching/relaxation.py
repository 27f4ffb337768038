"""Progressive filter relaxation when a signup yields too few matches."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Union

from job_matching.config import DEFAULT_RELAXATION_ORDER
from job_matching.filters import Dimension, FilterCriteria
from job_matching.log import get_logger
from job_matching.models import RelaxationEvent

log = get_logger(__name__)


@dataclass(frozen=True)
class Satisfied:
    criteria: FilterCriteria


@dataclass(frozen=True)
class NextStep:
    criteria: FilterCriteria
    dimension: Dimension
    level: int


@dataclass(frozen=True)
class Exhausted:
    criteria: FilterCriteria


PlanResult = Union[Satisfied, NextStep, Exhausted]


@dataclass(frozen=True)
class FallbackSummary:
    user_email: str
    original_preferences: dict[str, Any]
    final_preferences: dict[str, Any]
    relaxation_level: int
    relaxation_path: list[str]
    matches_found: int
    min_matches_required: int
    missing_criteria: list[str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_properties(self) -> dict[str, Any]:
        return {
            "user_email": self.user_email,
            "original_preferences": self.original_preferences,
            "final_preferences": self.final_preferences,
            "relaxation_level": self.relaxation_level,
            "relaxation_path": list(self.relaxation_path),
            "matches_found": self.matches_found,
            "min_matches_required": self.min_matches_required,
            "missing_criteria": list(self.missing_criteria),
            "timestamp": self.timestamp.isoformat(),
        }


class RelaxationPlanner:
    """Walks a fixed ladder of dimensions, relaxing one more per step.

    Usage: filter with the current criteria, then call ``plan`` with the
    number of jobs that pass. The count also closes the event for the level
    that produced it, so ``events`` holds exactly one entry per attempted
    level.
    """

    def __init__(
        self,
        order: Iterable[str | Dimension] = DEFAULT_RELAXATION_ORDER,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.order: tuple[Dimension, ...] = tuple(Dimension(d) for d in order)
        if len(set(self.order)) != len(self.order):
            raise ValueError(f"Relaxation order repeats a dimension: {self.order}")
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._events: list[RelaxationEvent] = []
        self._pending: NextStep | None = None
        self._pending_before: dict[str, Any] = {}
        self._relaxed: frozenset[Dimension] = frozenset()
        self._path: list[Dimension] = []

    @property
    def events(self) -> list[RelaxationEvent]:
        return list(self._events)

    @property
    def level(self) -> int:
        return len(self._path)

    @property
    def path(self) -> list[str]:
        return [d.value for d in self._path]

    def plan(self, criteria: FilterCriteria, found: int, min_required: int) -> PlanResult:
        if not self._relaxed <= criteria.relaxed:
            tightened = sorted(d.value for d in self._relaxed - criteria.relaxed)
            raise ValueError(f"Criteria re-tightened relaxed dimensions: {tightened}")

        if self._pending is not None:
            step = self._pending
            self._events.append(
                RelaxationEvent(
                    level=step.level,
                    dimension=step.dimension.value,
                    preferences_before=self._pending_before,
                    preferences_after=step.criteria.describe(),
                    matches_found=found,
                    timestamp=self._clock(),
                )
            )
            log.info(
                "Relaxation level %d (%s) → %d jobs", step.level, step.dimension.value, found
            )
            self._pending = None

        if found >= min_required:
            return Satisfied(criteria)

        for dimension in self.order:
            if not criteria.is_enforced(dimension):
                continue
            relaxed = criteria.relax(dimension)
            self._path.append(dimension)
            self._relaxed = relaxed.relaxed
            step = NextStep(criteria=relaxed, dimension=dimension, level=len(self._path))
            self._pending = step
            self._pending_before = criteria.describe()
            return step

        log.info("Relaxation exhausted at level %d with %d jobs", self.level, found)
        return Exhausted(criteria)

    def summary(
        self,
        email: str,
        original: FilterCriteria,
        final: FilterCriteria,
        matches_found: int,
        min_required: int,
    ) -> FallbackSummary:
        return FallbackSummary(
            user_email=email,
            original_preferences=original.describe(),
            final_preferences=final.describe(),
            relaxation_level=self.level,
            relaxation_path=self.path,
            matches_found=matches_found,
            min_matches_required=min_required,
            missing_criteria=[d.value for d in self._path],
            timestamp=self._clock(),
        )
