"""
Tests for settings loading.
"""

import pytest

from job_matching.config import DEFAULT_RELAXATION_ORDER, load_settings
from job_matching.models import Tier

ENV_KEYS = [
    "OPENAI_API_KEY", "OPENAI_BASE_URL", "MATCHING_MODEL", "MATCHING_BATCH_DELAY",
    "SUPABASE_URL", "SUPABASE_KEY", "SUPABASE_SERVICE_ROLE_KEY", "TELEMETRY_URL",
    "MATCHING_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    """Built-in values when no config file exists."""

    def test_tier_table(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml")
        free, premium = settings.tier("free"), settings.tier(Tier.PREMIUM)
        assert (free.target_count, premium.target_count) == (5, 15)
        assert (free.freshness_days, premium.freshness_days) == (30, 7)
        assert (free.max_jobs_for_ai, premium.max_jobs_for_ai) == (20, 30)
        assert (free.max_jobs_to_fetch, premium.max_jobs_to_fetch) == (5000, 10000)
        assert free.min_required == 5
        assert free.relaxation_order == DEFAULT_RELAXATION_ORDER
        assert not free.backfill_with_rules

    def test_scorer_and_cache(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.scorer.model == "gpt-4o-mini"
        assert settings.scorer.batch_size == 5
        assert settings.scorer.batch_delay == 1.0
        assert settings.scorer.api_key == ""
        assert settings.cache.ttl_seconds == 1800
        assert settings.cache.max_entries == 10000


class TestYamlAndEnv:
    """File values and environment overrides."""

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "matching.yaml"
        path.write_text(
            "tiers:\n"
            "  free:\n"
            "    target_count: 3\n"
            "    relaxed_freshness_days: null\n"
            "    backfill_with_rules: true\n"
            "relaxation:\n"
            "  order: [city, visa]\n"
            "cache:\n"
            "  enabled: false\n"
        )
        settings = load_settings(path)
        free = settings.tier("free")
        assert free.target_count == 3
        assert free.min_required == 3
        assert free.relaxed_freshness_days is None
        assert free.backfill_with_rules
        assert free.relaxation_order == ("city", "visa")
        assert settings.tier("premium").target_count == 15
        assert settings.cache.enabled is False

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
        monkeypatch.setenv("MATCHING_MODEL", "gpt-4o")
        monkeypatch.setenv("MATCHING_BATCH_DELAY", "0.2")
        monkeypatch.setenv("SUPABASE_URL", "https://db.example.com")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.scorer.api_key == "sk-test"
        assert settings.scorer.model == "gpt-4o"
        assert settings.scorer.batch_delay == 0.2
        assert settings.supabase_url == "https://db.example.com"
        assert settings.supabase_key == "service-key"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("tiers:\n  premium:\n    target_count: 20\n")
        monkeypatch.setenv("MATCHING_CONFIG", str(path))
        assert load_settings().tier("premium").target_count == 20

    def test_invalid_batch_size(self, tmp_path):
        path = tmp_path / "matching.yaml"
        path.write_text("scorer:\n  batch_size: 0\n")
        with pytest.raises(ValueError):
            load_settings(path)

    def test_unknown_tier_lookup(self, tmp_path):
        with pytest.raises(ValueError):
            load_settings(tmp_path / "missing.yaml").tier("gold")

    def test_shipped_config_loads(self):
        settings = load_settings()
        assert settings.tier("premium").target_count == 15
