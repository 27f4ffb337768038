"""
Tests for match and relaxation event persistence.
"""

import json

from conftest import NOW, make_job, make_profile
from job_matching.models import MatchResult, RelaxationEvent
from job_matching.tracker import CsvMatchRepository, MemoryMatchRepository


def matches(n):
    return [
        MatchResult(job=make_job(i), match_score=80 - i, confidence_score=90, match_reason="fit")
        for i in range(n)
    ]


def event(level=1):
    return RelaxationEvent(
        level=level, dimension="city",
        preferences_before={"cities": ["London"]}, preferences_after={"cities": []},
        matches_found=3, timestamp=NOW,
    )


class TestCsvMatchRepository:
    """CSV files under the data directory."""

    def test_save_and_count(self, tmp_path):
        repo = CsvMatchRepository(tmp_path / "data")
        profile = make_profile()
        assert repo.existing_match_count(profile.email) == 0
        assert repo.save_matches(profile, matches(3), "ai") == 3
        assert repo.existing_match_count(profile.email) == 3
        assert repo.existing_match_count("other@example.com") == 0

    def test_rows_content(self, tmp_path):
        repo = CsvMatchRepository(tmp_path)
        repo.save_matches(make_profile(), matches(1), "cache")
        (row,) = repo.read_matches()
        assert row["job_id"] == "0"
        assert row["match_score"] == "80"
        assert row["method"] == "cache"

    def test_empty_save_creates_nothing(self, tmp_path):
        repo = CsvMatchRepository(tmp_path)
        repo.save_matches(make_profile(), [], "ai")
        repo.save_relaxation_events(make_profile(), [])
        assert not repo.matches_csv.exists()
        assert not repo.events_csv.exists()

    def test_relaxation_events(self, tmp_path):
        repo = CsvMatchRepository(tmp_path)
        repo.save_relaxation_events(make_profile(), [event(1), event(2)])
        lines = repo.events_csv.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("user_email,level,dimension")


class TestMemoryMatchRepository:
    """In-memory repository used by local runs."""

    def test_round_trip(self):
        repo = MemoryMatchRepository()
        repo.save_matches(make_profile(), matches(2), "ai")
        repo.save_relaxation_events(make_profile(), [event()])
        assert repo.existing_match_count("grad@example.com") == 2
        assert json.loads(repo.events[0]["preferences_after"]) == {"cities": []}
