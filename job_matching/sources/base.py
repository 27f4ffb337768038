from abc import ABC, abstractmethod

from job_matching.config import TierSettings
from job_matching.models import JobCandidate, UserProfile


class CandidateSource(ABC):
    @abstractmethod
    def fetch_candidates(self, tier: TierSettings, profile: UserProfile) -> list[JobCandidate]:
        pass
