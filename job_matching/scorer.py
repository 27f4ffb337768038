"""Score candidate jobs against a profile with an LLM, in fixed-size batches."""
from __future__ import annotations

import json
import math
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from job_matching.config import ScorerSettings
from job_matching.log import get_logger
from job_matching.models import (
    MAX_REASON_LENGTH,
    JobCandidate,
    MatchResult,
    ScoreBreakdown,
    UserProfile,
)
from job_matching.prompts import build_user_prompt, system_prompt
from job_matching.retry import RetryPolicy

log = get_logger(__name__)

DEFAULT_CONFIDENCE = 85
DEFAULT_REASON = "AI analyzed match"


class MatchingError(Exception):
    """Base class for matching pipeline errors."""


class ScorerNotInitializedError(MatchingError):
    """No scoring client is configured (missing API key)."""


class ResponseParseError(MatchingError):
    """Model output for a batch could not be read as JSON."""


# ── Model output schema ────────────────────────────────────────────────


def _clamp(value: float) -> float:
    if math.isnan(value):
        raise ValueError("score is NaN")
    return max(0.0, min(100.0, value))


class RawBreakdown(BaseModel):
    model_config = ConfigDict(extra="ignore")

    skills: Optional[float] = None
    experience: Optional[float] = None
    location: Optional[float] = None
    company: Optional[float] = None
    overall: Optional[float] = None
    career_progression: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("career_progression", "careerProgression")
    )


class RawMatch(BaseModel):
    """One element of the model's JSON array, before it is tied to a job."""

    model_config = ConfigDict(extra="ignore")

    job_index: int = Field(validation_alias=AliasChoices("jobIndex", "job_index"))
    match_score: float = Field(
        validation_alias=AliasChoices("matchScore", "match_score", "score")
    )
    confidence_score: float = Field(
        default=DEFAULT_CONFIDENCE,
        validation_alias=AliasChoices("confidenceScore", "confidence_score"),
    )
    match_reason: str = Field(
        default=DEFAULT_REASON,
        validation_alias=AliasChoices("matchReason", "match_reason", "reason"),
    )
    score_breakdown: Optional[RawBreakdown] = Field(
        default=None, validation_alias=AliasChoices("scoreBreakdown", "score_breakdown")
    )

    @field_validator("match_score", "confidence_score")
    @classmethod
    def _clamp_score(cls, v: float) -> float:
        return _clamp(v)

    @field_validator("match_reason", mode="before")
    @classmethod
    def _default_reason(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_REASON
        return v

    def to_result(self, job: JobCandidate) -> MatchResult:
        breakdown = (
            ScoreBreakdown(**self.score_breakdown.model_dump())
            if self.score_breakdown is not None
            else ScoreBreakdown()
        )
        return MatchResult(
            job=job,
            match_score=int(round(self.match_score)),
            confidence_score=int(round(self.confidence_score)),
            match_reason=self.match_reason.strip()[:MAX_REASON_LENGTH],
            score_breakdown=breakdown,
            score_source="ai",
        )


def _extract_items(content: str) -> list[Any]:
    text = re.sub(r"```(?:json)?", "", content).strip()
    arr_start = text.find("[")
    obj_start = text.find("{")
    items = None
    if obj_start != -1 and (arr_start == -1 or obj_start < arr_start):
        try:
            data = json.loads(text[obj_start:text.rfind("}") + 1])
        except json.JSONDecodeError as exc:
            if arr_start == -1:
                raise ResponseParseError(f"invalid JSON in model output: {exc}") from exc
            data = None
        if isinstance(data, dict):
            items = data.get("matches")
    if items is None:
        if arr_start == -1:
            raise ResponseParseError("no JSON array in model output")
        try:
            items = json.loads(text[arr_start:text.rfind("]") + 1])
        except json.JSONDecodeError as exc:
            raise ResponseParseError(f"invalid JSON in model output: {exc}") from exc
    if not isinstance(items, list):
        raise ResponseParseError("model output has no list of matches")
    return items


def parse_batch_response(
    content: str | None, batch: Sequence[JobCandidate]
) -> list[MatchResult]:
    """Map model output onto the batch's jobs.

    Raises ResponseParseError when the output is empty or not JSON. Single
    elements with a bad index or unusable scores are dropped.
    """
    if not content or not content.strip():
        raise ResponseParseError("empty model output")

    results: list[MatchResult] = []
    seen: set[int] = set()
    for item in _extract_items(content):
        if not isinstance(item, dict):
            continue
        try:
            raw = RawMatch.model_validate(item)
        except ValidationError as exc:
            log.debug("Dropping malformed match item: %s", exc.errors()[:1])
            continue
        if not 0 <= raw.job_index < len(batch) or raw.job_index in seen:
            log.debug("Dropping match with job index %d", raw.job_index)
            continue
        seen.add(raw.job_index)
        results.append(raw.to_result(batch[raw.job_index]))
    return results


# ── Scoring clients ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScoringRequest:
    system_prompt: str
    user_prompt: str
    model: str
    max_tokens: int
    temperature: float


class ScoringClient(ABC):
    @abstractmethod
    def complete(self, request: ScoringRequest) -> str | None:
        """Return the raw text content of the model's reply."""


class OpenAIScoringClient(ScoringClient):
    """Chat-completions client; any OpenAI-compatible base_url works."""

    def __init__(self, api_key: str, base_url: str = "", timeout: float = 30.0) -> None:
        from openai import OpenAI

        kwargs: dict[str, Any] = {"api_key": api_key, "timeout": timeout}
        if base_url:
            kwargs["base_url"] = base_url
        self._client = OpenAI(**kwargs)

    def complete(self, request: ScoringRequest) -> str | None:
        r = self._client.chat.completions.create(
            model=request.model,
            messages=[
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
        if not r.choices:
            return None
        return r.choices[0].message.content


def build_scoring_client(settings: ScorerSettings) -> ScoringClient | None:
    if not settings.api_key:
        log.warning("No OPENAI_API_KEY — AI scoring unavailable")
        return None
    return OpenAIScoringClient(settings.api_key, settings.base_url, settings.timeout)


# ── Scorer ─────────────────────────────────────────────────────────────


@dataclass
class ScoringRun:
    results: list[MatchResult] = field(default_factory=list)
    batches: int = 0
    failed_batches: int = 0

    @property
    def complete(self) -> bool:
        return self.failed_batches == 0


class AIScorer:
    def __init__(
        self,
        client: ScoringClient | None,
        settings: ScorerSettings | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.settings = settings or ScorerSettings()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.retry_base_delay,
        )
        self._client = client
        self._sleep = sleep

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    def score(self, profile: UserProfile, jobs: Sequence[JobCandidate]) -> list[MatchResult]:
        return self.run(profile, jobs).results

    def run(self, profile: UserProfile, jobs: Sequence[JobCandidate]) -> ScoringRun:
        """Score *jobs* batch by batch; results sorted by match score, best first."""
        if self._client is None:
            raise ScorerNotInitializedError(
                "scorer not initialized: OpenAI API key not configured, AI matching unavailable"
            )

        size = self.settings.batch_size
        batches = [list(jobs[i:i + size]) for i in range(0, len(jobs), size)]
        run = ScoringRun(batches=len(batches))
        sys_prompt = system_prompt(profile.tier)

        for n, batch in enumerate(batches):
            if n:
                (self._sleep or time.sleep)(self.settings.batch_delay)
            try:
                found = self._score_batch(sys_prompt, profile, batch)
            except Exception as exc:
                run.failed_batches += 1
                log.warning("Scoring batch %d/%d failed: %s", n + 1, len(batches), exc)
                continue
            log.debug("Batch %d/%d → %d matches", n + 1, len(batches), len(found))
            run.results.extend(found)

        run.results.sort(key=lambda r: r.match_score, reverse=True)
        log.info(
            "Scored %d jobs in %d batches → %d matches (%d failed batches)",
            len(jobs), run.batches, len(run.results), run.failed_batches,
        )
        return run

    def _score_batch(
        self, sys_prompt: str, profile: UserProfile, batch: list[JobCandidate]
    ) -> list[MatchResult]:
        request = ScoringRequest(
            system_prompt=sys_prompt,
            user_prompt=build_user_prompt(profile, batch),
            model=self.settings.model,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
        )
        content = self.retry_policy.call(self._client.complete, request, sleep=self._sleep)
        return parse_batch_response(content, batch)
