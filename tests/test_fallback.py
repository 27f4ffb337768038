"""
Tests for rule-based backfill scoring.
"""

from datetime import timedelta

from conftest import NOW, make_job, make_profile
from job_matching.fallback import backfill, rule_score
from job_matching.models import MatchResult


class TestRuleScore:
    """Heuristic score bounds and bonuses."""

    def test_floor(self):
        job = make_job(1, city="Paris", categories=frozenset(), posted_at=None)
        assert rule_score(job, make_profile(), NOW) == 60

    def test_city_and_career(self):
        job = make_job(1, posted_at=None)
        assert rule_score(job, make_profile(), NOW) == 90

    def test_early_career_and_company(self):
        job = make_job(
            1, city="Paris", categories=frozenset({"early-career"}),
            company="Deloitte UK", posted_at=NOW - timedelta(days=20),
        )
        assert rule_score(job, make_profile(), NOW) == 75

    def test_ceiling(self):
        job = make_job(1, company="Google", experience_required="graduate", is_graduate=True)
        assert rule_score(job, make_profile(), NOW) == 90


class TestBackfill:
    """Filling the quota with unmatched jobs."""

    def test_skips_already_matched(self):
        jobs = [make_job(i) for i in range(4)]
        existing = [MatchResult(job=jobs[1], match_score=99, confidence_score=90, match_reason="ai")]
        extra = backfill(make_profile(), jobs, existing, needed=2, now=NOW)
        assert [m.job.id for m in extra] == ["0", "2"]
        assert all(m.score_source == "rules" for m in extra)

    def test_nothing_needed(self):
        assert backfill(make_profile(), [make_job(1)], [], needed=0) == []
