#!/usr/bin/env python3
"""Run signup matching for one profile.

Usage: python run_matching.py [profile.yaml] [--jobs jobs.yaml]
"""
from __future__ import annotations

import sys
from pathlib import Path

from job_matching.config import CONFIG_DIR, load_profile, load_settings
from job_matching.log import get_logger
from job_matching.models import UserProfile
from job_matching.service import SignupMatchingService
from job_matching.sources import StaticJobSource

log = get_logger(__name__)


def main(argv: list[str]) -> int:
    args = list(argv)
    jobs_path = None
    if "--jobs" in args:
        i = args.index("--jobs")
        jobs_path = args[i + 1] if i + 1 < len(args) else None
        del args[i:i + 2]
    profile_path = Path(args[0]) if args else CONFIG_DIR / "profile.yaml"

    if not profile_path.exists():
        log.error("No profile at %s (see config/profile.example.yaml)", profile_path)
        return 1

    settings = load_settings()
    service = SignupMatchingService.from_settings(settings)
    if jobs_path:
        service.source = StaticJobSource.from_file(jobs_path)

    profile = UserProfile.from_dict(load_profile(profile_path))
    outcome = service.run(profile)

    log.info("Run complete.")
    log.info("  Method: %s", outcome.method)
    log.info("  Available jobs: %d", outcome.available_jobs_count)
    log.info("  Filter stage: %s", outcome.filter_stage)
    log.info("  Matches: %d", outcome.match_count)
    for row in outcome.records:
        log.info("    %3d  %s @ %s", row["match_score"], row.get("title"), row.get("company"))
    if outcome.error:
        log.warning("  Error: %s", outcome.error)
    return 0 if outcome.success else 2


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
