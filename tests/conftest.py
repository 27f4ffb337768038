"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from job_matching.cache import MatchCache, TTLMemoryStore
from job_matching.config import (
    FREE_DISPLAY_FIELDS,
    PREMIUM_DISPLAY_FIELDS,
    CacheSettings,
    MatchingSettings,
    ScorerSettings,
    TierSettings,
)
from job_matching.models import JobCandidate, Tier, UserProfile, VisaFriendliness
from job_matching.scorer import AIScorer, ScoringClient
from job_matching.telemetry import MemoryTelemetry
from job_matching.tracker import MemoryMatchRepository

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_job(job_id, **overrides) -> JobCandidate:
    fields = {
        "id": str(job_id),
        "title": f"Graduate Analyst {job_id}",
        "company": "Acme Ltd",
        "city": "London",
        "country": "UK",
        "description": "Entry-level analyst role working with data.",
        "categories": frozenset({"tech"}),
        "visa_friendly": VisaFriendliness.UNKNOWN,
        "posted_at": NOW - timedelta(days=2),
        "url": f"https://example.com/jobs/{job_id}",
        "source": "test",
    }
    fields.update(overrides)
    return JobCandidate(**fields)


def make_profile(**overrides) -> UserProfile:
    fields = {
        "email": "grad@example.com",
        "tier": Tier.FREE,
        "target_cities": ("London",),
        "career_paths": ("tech",),
        "entry_level_preference": "entry-level",
        "visa_status": "eu-citizen",
        "career_keywords": ("Python", "SQL"),
    }
    fields.update(overrides)
    return UserProfile(**fields)


def tier_settings(tier: Tier, **overrides) -> TierSettings:
    if tier is Tier.FREE:
        fields = dict(
            target_count=5, freshness_days=30, relaxed_freshness_days=90,
            max_jobs_to_fetch=5000, max_jobs_for_ai=20, min_required=5,
            display_fields=FREE_DISPLAY_FIELDS,
        )
    else:
        fields = dict(
            target_count=15, freshness_days=7, relaxed_freshness_days=30,
            max_jobs_to_fetch=10000, max_jobs_for_ai=30, min_required=15,
            display_fields=PREMIUM_DISPLAY_FIELDS,
        )
    fields.update(overrides)
    return TierSettings(tier=tier, **fields)


def make_settings(free=None, premium=None, batch_delay=0.0) -> MatchingSettings:
    return MatchingSettings(
        tiers={
            Tier.FREE: free or tier_settings(Tier.FREE),
            Tier.PREMIUM: premium or tier_settings(Tier.PREMIUM),
        },
        scorer=ScorerSettings(api_key="test-key", batch_delay=batch_delay),
        cache=CacheSettings(),
    )


def respond_all(score=85, confidence=90, reason="Strong fit"):
    """Responder that scores every index of a five-job batch."""

    def responder(request):
        return json.dumps([
            {"jobIndex": i, "matchScore": score, "confidenceScore": confidence,
             "matchReason": reason}
            for i in range(5)
        ])

    return responder


class FakeScoringClient(ScoringClient):
    """Records requests and answers with a responder callable."""

    def __init__(self, responder=None):
        self.responder = responder or respond_all()
        self.requests = []

    @property
    def calls(self):
        return len(self.requests)

    def complete(self, request):
        self.requests.append(request)
        return self.responder(request)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def profile() -> UserProfile:
    return make_profile()


@pytest.fixture
def fake_client() -> FakeScoringClient:
    return FakeScoringClient()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def scorer(fake_client, sleeps) -> AIScorer:
    return AIScorer(fake_client, ScorerSettings(api_key="test-key"), sleep=sleeps.append)


@pytest.fixture
def cache() -> MatchCache:
    return MatchCache(TTLMemoryStore())


@pytest.fixture
def telemetry() -> MemoryTelemetry:
    return MemoryTelemetry()


@pytest.fixture
def repository() -> MemoryMatchRepository:
    return MemoryMatchRepository()
