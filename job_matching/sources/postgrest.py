"""Active jobs from a Supabase / PostgREST ``jobs`` table."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import requests

from job_matching.config import TierSettings
from job_matching.log import get_logger
from job_matching.models import JobCandidate, UserProfile
from job_matching.retry import retry
from job_matching.sources.base import CandidateSource

log = get_logger(__name__)

JOB_COLUMNS: list[str] = [
    "id", "job_hash", "title", "company", "location", "city", "country",
    "job_url", "description", "experience_required", "work_environment",
    "source", "categories", "language_requirements", "posted_at", "created_at",
    "is_internship", "is_graduate", "visa_friendly", "visa_sponsored",
]


class PostgrestJobSource(CandidateSource):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "jobs",
        timeout: float = 20.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.api_key = api_key
        self.timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _params(self, tier: TierSettings) -> list[tuple[str, Any]]:
        params: list[tuple[str, Any]] = [
            ("select", ",".join(JOB_COLUMNS)),
            ("is_active", "eq.true"),
            ("status", "eq.active"),
            ("filtered_reason", "is.null"),
        ]
        # Fetch the widest window relaxation can reach; the filter narrows it.
        days = tier.relaxed_freshness_days if tier.freshness_days is not None else None
        if days is not None:
            since = (self._clock() - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")
            params.append(("or", f"(posted_at.gte.{since},posted_at.is.null)"))
        params.append(("order", "created_at.desc"))
        params.append(("limit", tier.max_jobs_to_fetch))
        return params

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError))
    def _fetch(self, params: list[tuple[str, Any]]) -> list[dict[str, Any]]:
        r = requests.get(
            self.endpoint,
            params=params,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected jobs payload: {type(data).__name__}")
        return data

    def fetch_candidates(self, tier: TierSettings, profile: UserProfile) -> list[JobCandidate]:
        rows = self._fetch(self._params(tier))
        jobs = [JobCandidate.from_row(row) for row in rows]
        log.info("Fetched %d active jobs for %s tier", len(jobs), tier.tier.value)
        return jobs
