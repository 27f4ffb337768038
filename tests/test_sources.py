"""
Tests for candidate sources.
"""

from dataclasses import replace

import pytest
import requests

from conftest import NOW, make_job, make_profile, make_settings, tier_settings
from job_matching.models import Tier, VisaFriendliness
from job_matching.sources import PostgrestJobSource, StaticJobSource, get_source
from job_matching.sources import postgrest


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


ROW = {
    "id": 42,
    "job_hash": "abc123",
    "title": "Junior Data Engineer",
    "company": "Stripe",
    "city": "Dublin",
    "country": "Ireland",
    "job_url": "https://example.com/42",
    "description": "Pipelines",
    "categories": ["tech", "data"],
    "posted_at": "2026-02-28T09:00:00Z",
    "visa_friendly": None,
    "visa_sponsored": True,
    "is_graduate": True,
    "source": "jobspy",
}


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append({"url": url, "params": params, "headers": headers})
        return FakeResponse([ROW])

    monkeypatch.setattr(postgrest.requests, "get", fake_get)
    return calls


class TestPostgrestJobSource:
    """Query shape and row mapping."""

    def test_query_params(self, captured):
        source = PostgrestJobSource("https://db.example.com/", "key-1", clock=lambda: NOW)
        source.fetch_candidates(tier_settings(Tier.PREMIUM), make_profile())
        (call,) = captured
        params = dict(call["params"])
        assert call["url"] == "https://db.example.com/rest/v1/jobs"
        assert params["is_active"] == "eq.true"
        assert params["status"] == "eq.active"
        assert params["filtered_reason"] == "is.null"
        assert params["order"] == "created_at.desc"
        assert params["limit"] == 10000
        assert params["or"] == "(posted_at.gte.2026-01-31T12:00:00Z,posted_at.is.null)"
        assert call["headers"]["apikey"] == "key-1"
        assert call["headers"]["Authorization"] == "Bearer key-1"

    def test_unbounded_window_has_no_date_filter(self, captured):
        source = PostgrestJobSource("https://db.example.com", "k", clock=lambda: NOW)
        source.fetch_candidates(
            tier_settings(Tier.FREE, relaxed_freshness_days=None), make_profile()
        )
        assert "or" not in dict(captured[0]["params"])

    def test_row_mapping(self, captured):
        source = PostgrestJobSource("https://db.example.com", "k", clock=lambda: NOW)
        (job,) = source.fetch_candidates(tier_settings(Tier.FREE), make_profile())
        assert job.id == "42"
        assert job.url == "https://example.com/42"
        assert job.categories == {"tech", "data"}
        assert job.visa_friendly is VisaFriendliness.TRUE
        assert job.posted_at.tzinfo is not None
        assert job.is_graduate

    def test_retries_then_raises(self, monkeypatch):
        monkeypatch.setattr("job_matching.retry.time.sleep", lambda s: None)
        call_count = [0]

        def failing_get(*args, **kwargs):
            call_count[0] += 1
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(postgrest.requests, "get", failing_get)
        source = PostgrestJobSource("https://db.example.com", "k")
        with pytest.raises(requests.ConnectionError):
            source.fetch_candidates(tier_settings(Tier.FREE), make_profile())
        assert call_count[0] == 3


class TestStaticJobSource:
    """Local job lists."""

    def test_respects_fetch_limit(self):
        source = StaticJobSource([make_job(i) for i in range(10)])
        jobs = source.fetch_candidates(tier_settings(Tier.FREE, max_jobs_to_fetch=4), make_profile())
        assert len(jobs) == 4

    def test_from_file(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text(
            "- id: a\n  title: Analyst\n  company: Acme\n  city: London\n"
            "  categories: [tech]\n  visa_friendly: false\n"
        )
        (job,) = StaticJobSource.from_file(path).jobs
        assert job.city == "London"
        assert job.visa_friendly is VisaFriendliness.FALSE
        assert job.posted_at is None


class TestGetSource:
    """Source selection from settings."""

    def test_postgrest_when_configured(self):
        settings = replace(make_settings(), supabase_url="https://db", supabase_key="k")
        assert isinstance(get_source(settings), PostgrestJobSource)

    def test_static_fallback(self):
        assert isinstance(get_source(make_settings()), StaticJobSource)
