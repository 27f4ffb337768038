"""Load matching configuration from YAML and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from job_matching.log import get_logger
from job_matching.models import Tier

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
CONFIG_PATH: Path = CONFIG_DIR / "matching.yaml"
DATA_DIR: Path = ROOT_DIR / "data"

DEFAULT_RELAXATION_ORDER: tuple[str, ...] = ("freshness", "visa", "career_path", "city")

FREE_DISPLAY_FIELDS: tuple[str, ...] = ("title", "company", "location", "url")
PREMIUM_DISPLAY_FIELDS: tuple[str, ...] = FREE_DISPLAY_FIELDS + (
    "description", "country", "categories", "visa_friendly",
    "posted_at", "work_environment", "score_breakdown",
)

# Built-in tier table; config/matching.yaml overrides any key.
_TIER_DEFAULTS: dict[str, dict[str, Any]] = {
    "free": {
        "target_count": 5,
        "freshness_days": 30,
        "relaxed_freshness_days": 90,
        "max_jobs_to_fetch": 5000,
        "max_jobs_for_ai": 20,
        "max_per_source": 3,
        "display_fields": list(FREE_DISPLAY_FIELDS),
    },
    "premium": {
        "target_count": 15,
        "freshness_days": 7,
        "relaxed_freshness_days": 30,
        "max_jobs_to_fetch": 10000,
        "max_jobs_for_ai": 30,
        "max_per_source": 3,
        "display_fields": list(PREMIUM_DISPLAY_FIELDS),
    },
}


@dataclass(frozen=True)
class TierSettings:
    tier: Tier
    target_count: int
    freshness_days: int | None
    relaxed_freshness_days: int | None
    max_jobs_to_fetch: int
    max_jobs_for_ai: int
    min_required: int
    max_per_source: int = 3
    backfill_with_rules: bool = False
    relaxation_order: tuple[str, ...] = DEFAULT_RELAXATION_ORDER
    display_fields: tuple[str, ...] = FREE_DISPLAY_FIELDS


@dataclass(frozen=True)
class ScorerSettings:
    api_key: str = ""
    base_url: str = ""
    model: str = "gpt-4o-mini"
    max_tokens: int = 2000
    temperature: float = 0.3
    batch_size: int = 5
    batch_delay: float = 1.0
    max_attempts: int = 1
    retry_base_delay: float = 1.0
    timeout: float = 30.0


@dataclass(frozen=True)
class CacheSettings:
    enabled: bool = True
    ttl_seconds: float = 1800.0
    max_entries: int = 10000


@dataclass(frozen=True)
class MatchingSettings:
    tiers: dict[Tier, TierSettings]
    scorer: ScorerSettings = field(default_factory=ScorerSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    supabase_url: str = ""
    supabase_key: str = ""
    telemetry_url: str = ""
    data_dir: Path = DATA_DIR

    def tier(self, tier: Tier | str) -> TierSettings:
        key = Tier.parse(tier)
        if key not in self.tiers:
            raise ValueError(f"No settings configured for tier {key.value!r}")
        return self.tiers[key]


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _build_tier(name: str, raw: dict[str, Any], order: tuple[str, ...]) -> TierSettings:
    tier = Tier.parse(name)
    merged = {**_TIER_DEFAULTS.get(tier.value, {}), **(raw or {})}
    target = int(merged["target_count"])
    return TierSettings(
        tier=tier,
        target_count=target,
        freshness_days=_optional_int(merged.get("freshness_days")),
        relaxed_freshness_days=_optional_int(merged.get("relaxed_freshness_days")),
        max_jobs_to_fetch=int(merged["max_jobs_to_fetch"]),
        max_jobs_for_ai=int(merged["max_jobs_for_ai"]),
        min_required=int(merged.get("min_required") or target),
        max_per_source=int(merged.get("max_per_source", 3)),
        backfill_with_rules=bool(merged.get("backfill_with_rules", False)),
        relaxation_order=tuple(merged.get("relaxation_order") or order),
        display_fields=tuple(merged.get("display_fields") or FREE_DISPLAY_FIELDS),
    )


def load_settings(path: Path | str | None = None) -> MatchingSettings:
    """Read matching.yaml (if present) and apply environment overrides."""
    config_path = Path(path or get_env("MATCHING_CONFIG") or CONFIG_PATH)
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    else:
        log.info("No config at %s — using built-in defaults", config_path)

    order = tuple(
        (data.get("relaxation") or {}).get("order") or DEFAULT_RELAXATION_ORDER
    )
    tier_data = data.get("tiers") or {}
    names = set(_TIER_DEFAULTS) | set(tier_data)
    tiers = {
        Tier.parse(name): _build_tier(name, tier_data.get(name) or {}, order)
        for name in names
    }

    sc = data.get("scorer") or {}
    scorer = ScorerSettings(
        api_key=get_env("OPENAI_API_KEY"),
        base_url=get_env("OPENAI_BASE_URL", sc.get("base_url") or ""),
        model=get_env("MATCHING_MODEL") or sc.get("model", "gpt-4o-mini"),
        max_tokens=int(sc.get("max_tokens", 2000)),
        temperature=float(sc.get("temperature", 0.3)),
        batch_size=int(sc.get("batch_size", 5)),
        batch_delay=float(get_env("MATCHING_BATCH_DELAY") or sc.get("batch_delay", 1.0)),
        max_attempts=int(sc.get("max_attempts", 1)),
        retry_base_delay=float(sc.get("retry_base_delay", 1.0)),
        timeout=float(sc.get("timeout", 30.0)),
    )
    if scorer.batch_size < 1:
        raise ValueError("scorer.batch_size must be at least 1")

    cc = data.get("cache") or {}
    cache = CacheSettings(
        enabled=bool(cc.get("enabled", True)),
        ttl_seconds=float(cc.get("ttl_seconds", 1800)),
        max_entries=int(cc.get("max_entries", 10000)),
    )

    return MatchingSettings(
        tiers=tiers,
        scorer=scorer,
        cache=cache,
        supabase_url=get_env("SUPABASE_URL"),
        supabase_key=get_env("SUPABASE_KEY") or get_env("SUPABASE_SERVICE_ROLE_KEY"),
        telemetry_url=get_env("TELEMETRY_URL", data.get("telemetry_url") or ""),
        data_dir=Path(data.get("data_dir") or DATA_DIR),
    )


def load_profile(path: Path | str) -> dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}
