from .base import CandidateSource
from .postgrest import PostgrestJobSource
from .static import StaticJobSource

from job_matching.config import MatchingSettings
from job_matching.log import get_logger

log = get_logger(__name__)

__all__ = ["CandidateSource", "PostgrestJobSource", "StaticJobSource", "get_source"]


def get_source(settings: MatchingSettings) -> CandidateSource:
    if settings.supabase_url and settings.supabase_key:
        log.info("Registered source: PostgREST jobs table")
        return PostgrestJobSource(settings.supabase_url, settings.supabase_key)

    log.info("No SUPABASE_URL/SUPABASE_KEY — using empty StaticJobSource")
    return StaticJobSource()
