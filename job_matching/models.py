"""Data models for candidate jobs, signup profiles, and scored matches."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

MAX_REASON_LENGTH = 500
WILDCARD_CAREER = "all-categories"

_CITIZEN_MARKERS = ("citizen", "permanent", "settled", "resident")
_SPONSOR_MARKERS = ("sponsor", "visa-required", "visa required", "non-eu", "non-uk")


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: Any) -> Tier:
        """Map a subscription value onto a tier; missing means free."""
        if isinstance(value, Tier):
            return value
        if not value:
            return cls.FREE
        key = str(value).strip().lower()
        # Premium signups awaiting payment are matched as premium.
        if key == "premium_pending":
            return cls.PREMIUM
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown subscription tier: {value!r}") from None


class VisaFriendliness(str, Enum):
    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Any) -> VisaFriendliness:
        if value is None or value == "":
            return cls.UNKNOWN
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE
        key = str(value).strip().lower()
        if key in ("true", "yes", "1"):
            return cls.TRUE
        if key in ("false", "no", "0"):
            return cls.FALSE
        return cls.UNKNOWN


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 string (or datetime) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return tuple(p.strip() for p in value.split(",") if p.strip())
    return tuple(str(v).strip() for v in value if str(v).strip())


@dataclass(frozen=True)
class JobCandidate:
    id: str
    title: str
    company: str
    city: str | None = None
    country: str | None = None
    description: str = ""
    categories: frozenset[str] = frozenset()
    visa_friendly: VisaFriendliness = VisaFriendliness.UNKNOWN
    posted_at: datetime | None = None
    url: str = ""
    source: str = "unknown"
    job_hash: str = ""
    experience_required: str = ""
    work_environment: str = ""
    is_internship: bool = False
    is_graduate: bool = False
    raw: dict = field(default_factory=dict, compare=False, hash=False, repr=False)

    @property
    def location(self) -> str:
        return ", ".join(p for p in (self.city, self.country) if p)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> JobCandidate:
        """Build a candidate from a ``jobs`` table row."""
        visa = VisaFriendliness.from_value(row.get("visa_friendly"))
        if visa is not VisaFriendliness.TRUE and row.get("visa_sponsored") is True:
            visa = VisaFriendliness.TRUE
        job_hash = str(row.get("job_hash") or "")
        return cls(
            id=str(row.get("id") or job_hash),
            title=row.get("title") or "",
            company=row.get("company") or "",
            city=row.get("city") or None,
            country=row.get("country") or None,
            description=row.get("description") or "",
            categories=frozenset(_as_tuple(row.get("categories"))),
            visa_friendly=visa,
            posted_at=parse_timestamp(row.get("posted_at")),
            url=row.get("job_url") or row.get("url") or "",
            source=row.get("source") or "unknown",
            job_hash=job_hash,
            experience_required=row.get("experience_required") or "",
            work_environment=row.get("work_environment") or "",
            is_internship=bool(row.get("is_internship")),
            is_graduate=bool(row.get("is_graduate")),
            raw=dict(row),
        )


@dataclass(frozen=True)
class UserProfile:
    email: str
    tier: Tier = Tier.FREE
    target_cities: tuple[str, ...] = ()
    career_paths: tuple[str, ...] = ()
    entry_level_preference: str = ""
    visa_status: str = ""
    languages_spoken: tuple[str, ...] = ()
    work_environment: str = ""
    career_keywords: tuple[str, ...] = ()
    user_id: str | None = None
    full_name: str = ""

    @property
    def needs_sponsorship(self) -> bool:
        status = self.visa_status.strip().lower()
        if not status:
            return False
        if any(m in status for m in _SPONSOR_MARKERS):
            return "non-eu citizen" not in status and "non-uk citizen" not in status
        return not any(m in status for m in _CITIZEN_MARKERS)

    @property
    def wants_all_careers(self) -> bool:
        return not self.career_paths or any(
            p.lower() == WILDCARD_CAREER for p in self.career_paths
        )

    def scoring_fields(self) -> dict[str, Any]:
        """Fields that feed the scoring prompt; ``user_id`` and ``full_name`` are excluded."""
        return {
            "email": self.email,
            "tier": self.tier.value,
            "target_cities": list(self.target_cities),
            "career_paths": list(self.career_paths),
            "entry_level_preference": self.entry_level_preference,
            "visa_status": self.visa_status,
            "languages_spoken": list(self.languages_spoken),
            "work_environment": self.work_environment,
            "career_keywords": list(self.career_keywords),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProfile:
        """Accept the signup payload shape (``career_path`` may be str or list)."""
        email = (data.get("email") or "").strip().lower()
        if not email:
            raise ValueError("Profile is missing an email address")
        careers = data.get("career_paths", data.get("career_path"))
        return cls(
            email=email,
            tier=Tier.parse(data.get("tier", data.get("subscription_tier"))),
            target_cities=_as_tuple(data.get("target_cities") or data.get("cities")),
            career_paths=_as_tuple(careers),
            entry_level_preference=data.get("entry_level_preference") or "",
            visa_status=data.get("visa_status") or "",
            languages_spoken=_as_tuple(data.get("languages_spoken")),
            work_environment=data.get("work_environment") or "",
            career_keywords=_as_tuple(data.get("career_keywords")),
            user_id=data.get("user_id"),
            full_name=data.get("full_name") or "",
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    skills: float | None = None
    experience: float | None = None
    location: float | None = None
    company: float | None = None
    overall: float | None = None
    career_progression: float | None = None

    def as_dict(self) -> dict[str, float]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class MatchResult:
    job: JobCandidate
    match_score: int
    confidence_score: int
    match_reason: str
    score_breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    score_source: str = "ai"

    def __post_init__(self) -> None:
        if not 0 <= self.match_score <= 100:
            raise ValueError(f"match_score out of range: {self.match_score}")
        if not 0 <= self.confidence_score <= 100:
            raise ValueError(f"confidence_score out of range: {self.confidence_score}")
        if not self.match_reason:
            raise ValueError("match_reason must not be empty")
        if len(self.match_reason) > MAX_REASON_LENGTH:
            object.__setattr__(self, "match_reason", self.match_reason[:MAX_REASON_LENGTH])


@dataclass(frozen=True)
class RelaxationEvent:
    level: int
    dimension: str
    preferences_before: dict[str, Any]
    preferences_after: dict[str, Any]
    matches_found: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
