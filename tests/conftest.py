"""
Pytest configuration and shared fixtures.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence

import numpy as np
import pytest

from careermatch.auth import JWTSecretVerifier
from careermatch.cache import EmbeddingCacheManager
from careermatch.config import ConfigManager
from careermatch.db import CareerMatchDB
from careermatch.embeddings import EmbeddingProvider
from careermatch.formatting import content_hash
from careermatch.query import MatchQueryService
from careermatch.scoring import MatchScoreEngine
from careermatch.services import build_services

TEST_SECRET = "test-secret"


def isolate_env(monkeypatch):
    """Unset every CAREERMATCH_* variable and undo any change made during the test."""
    for name in ConfigManager.ENV_MAPPINGS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class FakeProvider(EmbeddingProvider):
    """In-process embedding provider that records every call."""

    model = "fake-embed"

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None,
                 default: Sequence[float] = (0.5, 0.5, 0.5),
                 fail_with: Optional[Exception] = None):
        self.vectors = vectors or {}
        self.default = default
        self.fail_with = fail_with
        self.calls = []

    def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        for needle, vector in self.vectors.items():
            if needle in text:
                return np.array(vector, dtype=np.float32)
        return np.array(self.default, dtype=np.float32)

    def get_status(self) -> dict:
        return {"host": "fake", "model": self.model, "connection": True,
                "model_ready": True, "error": None}


@pytest.fixture(autouse=True)
def reset_careermatch_logger():
    """The CLI installs a non-propagating handler; undo it between tests."""
    yield
    logger = logging.getLogger("careermatch")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def db(tmp_path):
    database = CareerMatchDB(str(tmp_path / "test.db"))
    yield database
    database.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def cache(db, provider):
    return EmbeddingCacheManager(db, provider, min_profile_chars=20, max_workers=2)


@pytest.fixture
def engine(db, cache):
    return MatchScoreEngine(db, cache, max_workers=2)


@pytest.fixture
def queries(db):
    return MatchQueryService(db, jobs_limit=100, fallback_limit=50)


@pytest.fixture
def services(tmp_path, db, provider, monkeypatch):
    isolate_env(monkeypatch)
    config = ConfigManager(str(tmp_path))
    config.config["matching"]["min_profile_chars"] = 20
    return build_services(config, db=db, provider=provider,
                          verifier=JWTSecretVerifier(TEST_SECRET))


@pytest.fixture
def sample_resume() -> Dict:
    """Resume data in the editor's JSON shape."""
    return {
        "summary": "Backend engineer focused on data pipelines and APIs.",
        "experience": [
            {
                "company": "Acme Corp",
                "position": "Senior Software Engineer",
                "description": [
                    "Built ingestion pipelines in Python",
                    "Designed REST APIs",
                    "Mentored engineers",
                    "Ran on-call rotation",
                ],
            },
            {
                "company": "Beta LLC",
                "position": "Software Engineer",
                "description": ["Maintained Flask services"],
            },
        ],
        "skills": [
            {"category": "Languages", "items": ["Python", "SQL"]},
            {"category": "Tools", "items": ["Docker"]},
        ],
        "education": [{"degree": "BSc", "fieldOfStudy": "Computer Science"}],
        "certifications": [{"name": "AWS Developer"}],
        "projects": [
            {"name": "etl", "technologies": ["Python", "Airflow"]},
            {"name": "api", "technologies": ["Python", "Flask"]},
        ],
    }


def store_embedding(db: CareerMatchDB, kind: str, entity_id: int,
                    vector: Sequence[float], model: str = "fake-embed") -> None:
    """Write a vector directly, bypassing the provider."""
    array = np.array(vector, dtype=np.float32)
    if kind == "profile":
        db.save_profile_embedding(entity_id, array, content_hash("seed"), model)
    else:
        db.save_job_embedding(entity_id, array, content_hash("seed"), model)


def add_jobs(db: CareerMatchDB, count: int, start: Optional[datetime] = None):
    """Add jobs with strictly increasing created_at; returns their ids."""
    start = start or datetime(2024, 1, 1, 9, 0, 0)
    return [
        db.add_job(f"Job {i}", f"Company {i}", description=f"Description {i}",
                   created_at=start + timedelta(minutes=i))
        for i in range(count)
    ]
