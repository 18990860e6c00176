"""
Match score engine - batch scoring of one profile against every job.

Scores are cosine similarities written to profile_job_matches, one row per
(profile, job). A batch is additive: on timeout or per-job failure, rows
already written stay valid and the run reports how many it wrote.
"""

import logging
import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Union

import numpy as np

from .cache import EmbeddingCacheManager
from .db import CareerMatchDB, decode_embedding
from .errors import (
    CareerMatchError,
    NoActiveProfile,
    ProfileEmbeddingMissing,
    ProfileNotFound,
)
from .locks import SingleFlight
from .models import BatchReport, MatchScore
from .similarity import cosine_similarity

logger = logging.getLogger(__name__)


class MatchScoreEngine:
    """Owns every write to the match score table."""

    def __init__(self, db: CareerMatchDB, cache: EmbeddingCacheManager,
                 batch_timeout: Optional[float] = None,
                 max_workers: int = 4,
                 clock: Callable[[], float] = time.monotonic):
        self.db = db
        self.cache = cache
        self.batch_timeout = batch_timeout
        self.max_workers = max_workers
        self._clock = clock
        self._flights = SingleFlight()

    def update_profile_embedding(self, profile_id: int,
                                 profile_data: Optional[Dict[str, Any]] = None) -> np.ndarray:
        """
        Ensure a profile's embedding is current without rescoring.

        If profile_data differs from the stored data it is saved first, so the
        embedding always reflects what is persisted.
        """
        profile = self.db.get_profile(profile_id)
        if profile is None:
            raise ProfileNotFound(profile_id)

        if profile_data is not None and profile_data != profile.data:
            self.db.update_profile_data(profile_id, profile_data)
            profile.data = profile_data
            profile.content_version += 1

        return self.cache.ensure_embedding(profile)

    def compute_match_scores_for_profile(self, profile_id: int,
                                         timeout: Optional[float] = None) -> int:
        """Score a profile against every job; returns the number of scores written."""
        return self.score_profile(profile_id, timeout=timeout).written

    def score_profile(self, profile_id: int, timeout: Optional[float] = None) -> BatchReport:
        """
        Score a profile against every job and report the outcome.

        Concurrent calls for the same profile are coalesced into the run that
        is already in flight.

        Raises:
            ProfileNotFound: No such profile
            ProfileEmbeddingMissing: The profile has no embedding to score against
        """
        report, shared = self._flights.do(profile_id, self._run_batch, profile_id, timeout)
        if shared:
            logger.debug("Coalesced scoring request for profile %s into in-flight run", profile_id)
        return report

    def _run_batch(self, profile_id: int, timeout: Optional[float]) -> BatchReport:
        profile = self.db.get_profile(profile_id)
        if profile is None:
            raise ProfileNotFound(profile_id)
        if profile.embedding is None or profile.embedding.size == 0:
            raise ProfileEmbeddingMissing(profile_id)

        if timeout is None:
            timeout = self.batch_timeout
        deadline = self._clock() + timeout if timeout else None

        jobs = self.db.get_job_embedding_blobs()
        report = BatchReport(profile_id=profile_id, total_jobs=len(jobs))

        for job_id, blob, model in jobs:
            if deadline is not None and self._clock() >= deadline:
                report.timed_out = True
                logger.warning(
                    "Scoring profile %s timed out after %d of %d jobs",
                    profile_id, report.written, report.total_jobs
                )
                break

            # A vector from another model is not comparable; it is missing until regenerated
            if blob is None or model != profile.embedding_model:
                report.skipped_missing += 1
                continue

            try:
                job_embedding = decode_embedding(blob)
                score = cosine_similarity(profile.embedding, job_embedding)
                self.db.upsert_match_score(
                    MatchScore(profile_id, job_id, score, datetime.now())
                )
                report.written += 1
            except (CareerMatchError, ValueError, sqlite3.Error) as e:
                logger.warning("Skipped job %s for profile %s: %s", job_id, profile_id, e)
                report.failures.append((job_id, str(e)))

        logger.info(
            "Profile %s: wrote %d scores, %d jobs without embeddings, %d failed",
            profile_id, report.written, report.skipped_missing, report.failed
        )
        return report

    def refresh_for_user(self, user_id: str, timeout: Optional[float] = None) -> BatchReport:
        """
        Ensure the user's active profile embedding is current, then rescore it.

        Raises:
            NoActiveProfile: The user has no active profile
            EmbeddingGenerationFailed: The profile could not be embedded
        """
        profile = self.db.get_active_profile(user_id)
        if profile is None:
            raise NoActiveProfile(user_id)

        self.cache.ensure_embedding(profile)
        return self.score_profile(profile.id, timeout=timeout)

    def compute_for_profiles(self, profile_ids: Iterable[int],
                             timeout: Optional[float] = None
                             ) -> Dict[int, Union[BatchReport, CareerMatchError]]:
        """Score several profiles in parallel; each profile's run is independent."""
        results: Dict[int, Union[BatchReport, CareerMatchError]] = {}
        ids = list(dict.fromkeys(profile_ids))

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = {pid: ex.submit(self.score_profile, pid, timeout) for pid in ids}
            for pid, fut in futures.items():
                try:
                    results[pid] = fut.result()
                except CareerMatchError as e:
                    logger.error("Scoring profile %s failed: %s", pid, e)
                    results[pid] = e

        return results
