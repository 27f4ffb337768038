"""In-memory job source for local runs and tests."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml

from job_matching.config import TierSettings
from job_matching.log import get_logger
from job_matching.models import JobCandidate, UserProfile
from job_matching.sources.base import CandidateSource

log = get_logger(__name__)


class StaticJobSource(CandidateSource):
    def __init__(self, jobs: Iterable[JobCandidate] = ()) -> None:
        self.jobs: list[JobCandidate] = list(jobs)

    @classmethod
    def from_file(cls, path: Path | str) -> StaticJobSource:
        """Load ``jobs`` table rows from a YAML (or JSON) list."""
        with open(path, "r", encoding="utf-8") as f:
            rows = yaml.safe_load(f) or []
        if isinstance(rows, dict):
            rows = rows.get("jobs", [])
        log.info("Loaded %d jobs from %s", len(rows), Path(path).name)
        return cls(JobCandidate.from_row(r) for r in rows)

    def fetch_candidates(self, tier: TierSettings, profile: UserProfile) -> list[JobCandidate]:
        return self.jobs[: tier.max_jobs_to_fetch]
