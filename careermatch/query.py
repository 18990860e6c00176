"""
Read-only match queries: ranked jobs for a user from cached scores.

Nothing here generates embeddings or computes scores; jobs without a cached
score are listed with score 0.
"""

import logging
from typing import List, Optional, Tuple

from .db import CareerMatchDB
from .models import MatchedJob

logger = logging.getLogger(__name__)


def _rank_key(item: MatchedJob):
    created = item.job.created_at.timestamp() if item.job.created_at else float("-inf")
    return (-item.score, -created, -item.job.id)


class MatchQueryService:
    """Builds ranked job lists from jobs joined with cached match scores."""

    def __init__(self, db: CareerMatchDB, jobs_limit: Optional[int] = 100,
                 fallback_limit: Optional[int] = 50):
        self.db = db
        self.jobs_limit = jobs_limit
        self.fallback_limit = fallback_limit

    def get_matched_jobs_for_user(self, user_id: str) -> List[MatchedJob]:
        """
        Get every job ranked by cached score for the user's active profile.

        Ordering is score descending, then most recently created first. Users
        without an active profile get the most recent jobs with score 0.
        """
        profile = self.db.get_active_profile(user_id)
        if profile is None:
            logger.info("No active profile found for user %s", user_id)
            return self.list_jobs(limit=self.fallback_limit)

        scores = self.db.get_match_scores(profile.id)
        matched = []
        for job in self.db.get_jobs():
            cached = scores.get(job.id)
            if cached is not None:
                matched.append(MatchedJob(job=job, score=cached.score, scored=True))
            else:
                matched.append(MatchedJob(job=job))

        matched.sort(key=_rank_key)
        return matched

    def get_job_score(self, user_id: str, job_id: int) -> Tuple[float, Optional[str]]:
        """
        Get the cached score of one job for the user's active profile.

        Returns:
            (score, message) where message explains a 0 score that was not computed
        """
        profile = self.db.get_active_profile(user_id)
        if profile is None:
            return 0.0, "No active profile"

        cached = self.db.get_match_score(profile.id, job_id)
        if cached is None:
            return 0.0, "Score not computed yet"

        return cached.score, None

    def list_jobs(self, limit: Optional[int] = None) -> List[MatchedJob]:
        """Recent jobs with a 0 placeholder score; used without a user context."""
        if limit is None:
            limit = self.jobs_limit
        return [MatchedJob(job=job) for job in self.db.get_jobs(limit=limit)]
