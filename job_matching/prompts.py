"""Prompt text for LLM match scoring."""
from __future__ import annotations

import re
from typing import Sequence

from job_matching.models import JobCandidate, Tier, UserProfile

DESCRIPTION_LIMIT = 300
_FIELD_LIMIT = 1000

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_LONG_WORD = re.compile(r"\b\w{100,}\b")

SYSTEM_PROMPTS: dict[Tier, str] = {
    Tier.FREE: (
        "You are an expert career counselor helping match job seekers with "
        "perfect job opportunities. Analyze job matches based on skills, "
        "experience, location preferences, and career goals."
    ),
    Tier.PREMIUM: (
        "You are an expert career counselor for early-career professionals. "
        "Analyze each job against the candidate's skills, experience, location "
        "preferences, and long-term career goals. Weigh mentorship, learning "
        "potential, and career progression, and explain each score precisely."
    ),
}

_OUTPUT_INSTRUCTIONS = """\
Return ONLY a JSON array, one object per job worth recommending:
[
  {
    "jobIndex": 0,
    "matchScore": 85,
    "confidenceScore": 90,
    "matchReason": "One or two sentences explaining the fit.",
    "scoreBreakdown": {"skills": 80, "experience": 90, "location": 100, "company": 70, "overall": 85}
  }
]
jobIndex is the number shown before each job. Scores are integers from 0 to 100."""


def sanitize(text: object) -> str:
    """Strip control characters and prompt-breaking braces; collapse whitespace."""
    if text is None:
        return ""
    cleaned = _CONTROL_CHARS.sub("", str(text))
    cleaned = re.sub(r"[`{}]", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = _LONG_WORD.sub("[LONG_WORD_REMOVED]", cleaned)
    return cleaned[:_FIELD_LIMIT].strip()


def _join(values: Sequence[str]) -> str:
    return ", ".join(sanitize(v) for v in values if sanitize(v))


def system_prompt(tier: Tier) -> str:
    return SYSTEM_PROMPTS[tier]


def _profile_section(profile: UserProfile) -> str:
    lines = [
        "User Profile:",
        f"- Email: {sanitize(profile.email)}",
        f"- Experience level: {sanitize(profile.entry_level_preference) or 'entry-level'}",
        f"- Target cities: {_join(profile.target_cities) or 'Any'}",
    ]
    if profile.languages_spoken:
        lines.append(f"- Languages: {_join(profile.languages_spoken)}")
    if profile.work_environment:
        lines.append(f"- Work environment: {sanitize(profile.work_environment)}")
    if profile.needs_sponsorship:
        lines.append("- Visa status: Requires sponsorship")
    return "\n".join(lines)


def _goals_section(profile: UserProfile) -> str:
    lines = [
        "Career Goals:",
        f"- Career paths: {_join(profile.career_paths) or 'Open to all career paths'}",
        "- Seeking entry-level and graduate opportunities",
    ]
    if profile.career_keywords:
        lines.append(f"- Keywords: {_join(profile.career_keywords)}")
    return "\n".join(lines)


def _job_line(index: int, job: JobCandidate) -> str:
    desc = sanitize(job.description)
    if len(desc) > DESCRIPTION_LIMIT:
        desc = desc[:DESCRIPTION_LIMIT].rstrip() + "..."
    return (
        f"{index}. {sanitize(job.title)} at {sanitize(job.company)} "
        f"({sanitize(job.location) or 'Location not specified'})\n"
        f"   {desc or 'No description provided'}"
    )


def build_user_prompt(profile: UserProfile, jobs: Sequence[JobCandidate]) -> str:
    """Scoring prompt for one batch; job numbering starts at 0."""
    if jobs:
        job_section = "Job Opportunities:\n" + "\n".join(
            _job_line(i, job) for i, job in enumerate(jobs)
        )
    else:
        job_section = "Job Opportunities: None available"
    return "\n\n".join([
        _profile_section(profile),
        _goals_section(profile),
        job_section,
        _OUTPUT_INSTRUCTIONS,
    ])
