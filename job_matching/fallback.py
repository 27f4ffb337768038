"""Rule-based match scores used to backfill when AI returns too few matches."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from job_matching.log import get_logger
from job_matching.models import JobCandidate, MatchResult, ScoreBreakdown, UserProfile

log = get_logger(__name__)

BACKFILL_REASON = "Matched your city and career path preferences with good distribution"

ENTRY_LEVEL_TERMS: list[str] = ["entry", "junior", "graduate", "intern"]

TOP_TECH: list[str] = ["google", "microsoft", "amazon", "meta", "apple", "netflix"]
WELL_KNOWN_TECH: list[str] = [
    "spotify", "uber", "airbnb", "stripe", "shopify", "atlassian",
    "salesforce", "adobe", "nvidia", "tesla", "spacex", "palantir",
]
EARLY_CAREER_EMPLOYERS: list[str] = [
    "deloitte", "pwc", "kpmg", "accenture", "mckinsey", "bain",
    "bcg", "goldman sachs", "morgan stanley", "jp morgan", "blackrock",
]

MIN_SCORE = 0.55
MAX_SCORE = 0.90


def _company_bonus(company: str) -> float:
    name = (company or "").lower()
    if any(c in name for c in TOP_TECH):
        return 0.12
    if any(c in name for c in WELL_KNOWN_TECH):
        return 0.08
    if any(c in name for c in EARLY_CAREER_EMPLOYERS):
        return 0.05
    return 0.0


def rule_score(job: JobCandidate, profile: UserProfile, now: datetime | None = None) -> int:
    """Heuristic 0-100 score, bounded to 55-90 so it never outranks a strong AI match."""
    now = now or datetime.now(timezone.utc)
    score = 0.60

    cities = {c.lower() for c in profile.target_cities}
    if job.city and job.city.lower() in cities:
        score += 0.20

    careers = {p.lower() for p in profile.career_paths}
    categories = {c.lower() for c in job.categories}
    if careers & categories:
        score += 0.15
    elif "early-career" in categories:
        score += 0.08

    exp = job.experience_required.lower()
    if any(term in exp for term in ENTRY_LEVEL_TERMS):
        score += 0.08
    if job.is_internship or job.is_graduate:
        score += 0.05

    score += _company_bonus(job.company)                        # 0 – 0.12

    if job.posted_at is not None:
        age_days = (now - job.posted_at).total_seconds() / 86400
        if age_days <= 7:
            score += 0.03
        elif age_days <= 30:
            score += 0.02

    score = max(MIN_SCORE, min(MAX_SCORE, score))
    return int(round(score * 100))


def backfill(
    profile: UserProfile,
    pool: Iterable[JobCandidate],
    existing: list[MatchResult],
    needed: int,
    now: datetime | None = None,
) -> list[MatchResult]:
    """Rule-scored matches for up to *needed* pool jobs not already matched."""
    if needed <= 0:
        return []
    used = {m.job.id for m in existing}
    extra: list[MatchResult] = []
    for job in pool:
        if len(extra) >= needed:
            break
        if job.id in used:
            continue
        used.add(job.id)
        score = rule_score(job, profile, now)
        extra.append(
            MatchResult(
                job=job,
                match_score=score,
                confidence_score=score,
                match_reason=BACKFILL_REASON,
                score_breakdown=ScoreBreakdown(overall=float(score)),
                score_source="rules",
            )
        )
    if extra:
        log.info("Backfilled %d rule-scored matches for %s", len(extra), profile.email)
    return extra
