"""
Composition root: builds the store, provider and services once and closes them.
"""

from dataclasses import dataclass
from typing import Optional

from .auth import JWTSecretVerifier, TokenVerifier
from .cache import EmbeddingCacheManager
from .config import ConfigManager
from .db import CareerMatchDB
from .embeddings import EmbeddingProvider, OllamaEmbeddingClient
from .query import MatchQueryService
from .scoring import MatchScoreEngine


@dataclass
class Services:
    """Handles shared by the CLI and web layers."""
    config: ConfigManager
    db: CareerMatchDB
    provider: EmbeddingProvider
    cache: EmbeddingCacheManager
    engine: MatchScoreEngine
    queries: MatchQueryService
    verifier: TokenVerifier

    def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close:
            close()
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def build_services(config: ConfigManager,
                   db: Optional[CareerMatchDB] = None,
                   provider: Optional[EmbeddingProvider] = None,
                   verifier: Optional[TokenVerifier] = None) -> Services:
    """Construct every service from configuration; explicit arguments win."""
    if db is None:
        db = CareerMatchDB(config.get("database", "path"))
    if provider is None:
        provider = OllamaEmbeddingClient.from_config(config)
    if verifier is None:
        verifier = JWTSecretVerifier(
            secret=config.get("auth", "jwt_secret"),
            algorithm=config.get("auth", "jwt_algorithm"),
            audience=config.get("auth", "audience"),
        )

    cache = EmbeddingCacheManager(
        db, provider,
        min_profile_chars=config.get("matching", "min_profile_chars"),
        max_workers=config.get("matching", "embedding_workers"),
    )
    engine = MatchScoreEngine(
        db, cache,
        batch_timeout=config.get("matching", "batch_timeout"),
        max_workers=config.get("matching", "scoring_workers"),
    )
    queries = MatchQueryService(
        db,
        jobs_limit=config.get("matching", "jobs_list_limit"),
        fallback_limit=config.get("matching", "fallback_jobs_limit"),
    )

    return Services(config=config, db=db, provider=provider, cache=cache,
                    engine=engine, queries=queries, verifier=verifier)
