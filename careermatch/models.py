"""
Data model for CareerMatch: profiles, jobs and cached match scores.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .errors import PartialBatchFailure
from .similarity import similarity_to_score


@dataclass
class Profile:
    """A candidate's resume data plus its derived embedding."""
    id: int
    user_id: str
    data: Dict[str, Any]
    is_active: bool = True
    content_version: int = 1
    embedding: Optional[np.ndarray] = None
    embedding_hash: Optional[str] = None
    embedding_model: Optional[str] = None
    embedding_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    kind = "profile"


@dataclass
class Job:
    """A job posting plus its derived embedding."""
    id: int
    title: str
    company: str
    link: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    embedding: Optional[np.ndarray] = None
    embedding_hash: Optional[str] = None
    embedding_model: Optional[str] = None
    created_at: Optional[datetime] = None

    kind = "job"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "link": self.link,
            "description": self.description,
            "location": self.location,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class MatchScore:
    """Cosine similarity of one profile to one job."""
    profile_id: int
    job_id: int
    score: float
    computed_at: datetime


@dataclass
class MatchedJob:
    """A job paired with its cached score for a profile (0.0 when unscored)."""
    job: Job
    score: float = 0.0
    scored: bool = False

    @property
    def display_score(self) -> int:
        return similarity_to_score(self.score)

    def to_dict(self) -> Dict[str, Any]:
        data = self.job.to_dict()
        data["similarity"] = self.score
        data["match_score"] = self.display_score
        data["scored"] = self.scored
        return data


@dataclass
class BatchReport:
    """Outcome of one batch scoring run for a profile."""
    profile_id: int
    total_jobs: int = 0
    written: int = 0
    skipped_missing: int = 0
    failures: List[Tuple[int, str]] = field(default_factory=list)
    timed_out: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def not_attempted(self) -> int:
        return self.total_jobs - self.written - self.skipped_missing - self.failed

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure if any job failed to score."""
        if self.failures:
            raise PartialBatchFailure(self.profile_id, list(self.failures))
