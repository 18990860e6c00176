"""
Embedding cache for profiles and jobs.

An entity's embedding is regenerated only when it is missing, when the text it
was generated from has changed, or when the configured model has changed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .db import CareerMatchDB
from .embeddings import EmbeddingProvider
from .errors import (
    EmbeddingGenerationFailed,
    ProfileNotFound,
    ProviderRateLimited,
    ProviderUnavailable,
)
from .formatting import MIN_PROFILE_CHARS, content_hash, format_entity_text, has_enough_content
from .locks import KeyedLock
from .models import Job, Profile

logger = logging.getLogger(__name__)

Entity = Union[Profile, Job]


class EmbeddingCacheManager:
    """Ensures profiles and jobs carry an up-to-date embedding."""

    def __init__(self, db: CareerMatchDB, provider: EmbeddingProvider,
                 min_profile_chars: int = MIN_PROFILE_CHARS,
                 max_workers: int = 4):
        self.db = db
        self.provider = provider
        self.min_profile_chars = min_profile_chars
        self.max_workers = max_workers
        self._locks = KeyedLock()

    def is_stale(self, entity: Entity, text: Optional[str] = None) -> bool:
        """Check whether the entity's stored embedding must be regenerated."""
        if entity.embedding is None or entity.embedding.size == 0:
            return True
        if entity.embedding_model != self.provider.model:
            return True
        if text is None:
            text = format_entity_text(entity)
        return entity.embedding_hash != content_hash(text)

    def ensure_embedding(self, entity: Entity, force: bool = False) -> np.ndarray:
        """
        Return an up-to-date embedding for a profile or job.

        Calls the provider and persists the vector only when the stored one is
        missing or stale; otherwise returns the cached vector unchanged.

        Raises:
            EmbeddingGenerationFailed: Provider error or unusable input text
            ProfileNotFound: The profile no longer exists
        """
        key = (entity.kind, entity.id)

        with self._locks.hold(key):
            # Another thread may have regenerated while we waited
            self._refresh_stored_state(entity)

            text = format_entity_text(entity)
            if not force and not self.is_stale(entity, text):
                return entity.embedding

            if entity.kind == "profile" and not has_enough_content(text, self.min_profile_chars):
                raise EmbeddingGenerationFailed(
                    f"Profile {entity.id} doesn't have enough content for embedding yet",
                    entity_kind=entity.kind, entity_id=entity.id
                )

            try:
                vector = self.provider.embed(text)
            except (ProviderUnavailable, ProviderRateLimited) as e:
                raise EmbeddingGenerationFailed(
                    f"Embedding provider failed for {entity.kind} {entity.id}: {e}",
                    entity_kind=entity.kind, entity_id=entity.id
                ) from e
            except EmbeddingGenerationFailed as e:
                raise EmbeddingGenerationFailed(
                    f"Could not embed {entity.kind} {entity.id}: {e}",
                    entity_kind=entity.kind, entity_id=entity.id
                ) from e

            vector = np.asarray(vector, dtype=np.float32).ravel()
            if vector.size == 0 or not np.all(np.isfinite(vector)):
                raise EmbeddingGenerationFailed(
                    f"Provider returned an unusable vector for {entity.kind} {entity.id}",
                    entity_kind=entity.kind, entity_id=entity.id
                )

            digest = content_hash(text)
            if entity.kind == "profile":
                self.db.save_profile_embedding(entity.id, vector, digest, self.provider.model)
                entity.embedding_updated_at = datetime.now()
            else:
                self.db.save_job_embedding(entity.id, vector, digest, self.provider.model)

            entity.embedding = vector
            entity.embedding_hash = digest
            entity.embedding_model = self.provider.model

            logger.info("Updated embedding for %s %s", entity.kind, entity.id)
            return vector

    def _refresh_stored_state(self, entity: Entity) -> None:
        if entity.kind == "profile":
            stored = self.db.get_profile(entity.id)
            if stored is None:
                raise ProfileNotFound(entity.id)
        else:
            stored = self.db.get_job(entity.id)
            if stored is None:
                raise EmbeddingGenerationFailed(f"Job {entity.id} not found",
                                                entity_kind="job", entity_id=entity.id)

        entity.embedding = stored.embedding
        entity.embedding_hash = stored.embedding_hash
        entity.embedding_model = stored.embedding_model

    def ensure_many(self, entities: Sequence[Entity],
                    on_progress: Optional[Callable[[int, int], None]] = None,
                    force: bool = False
                    ) -> Tuple[int, List[Tuple[Entity, Exception]]]:
        """
        Ensure embeddings for many entities through a fixed-size worker pool.

        Returns:
            (ready_count, failures) where failures pairs each entity with its error
        """
        ready = 0
        failures: List[Tuple[Entity, Exception]] = []
        total = len(entities)

        if not entities:
            return 0, failures

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = {ex.submit(self.ensure_embedding, entity, force): entity for entity in entities}
            for done, fut in enumerate(as_completed(futures), start=1):
                entity = futures[fut]
                try:
                    fut.result()
                    ready += 1
                except (EmbeddingGenerationFailed, ProfileNotFound) as e:
                    logger.warning("Skipping %s %s: %s", entity.kind, entity.id, e)
                    failures.append((entity, e))
                if on_progress:
                    on_progress(done, total)

        return ready, failures

    def refresh_job_embeddings(self, force: bool = False,
                               on_progress: Optional[Callable[[int, int], None]] = None
                               ) -> Tuple[int, List[Tuple[Entity, Exception]]]:
        """Regenerate embeddings for every job whose embedding is missing or stale."""
        jobs = self.db.get_jobs(include_embeddings=True)
        pending = jobs if force else [job for job in jobs if self.is_stale(job)]

        if not pending:
            logger.info("All jobs already have embeddings")
            return 0, []

        logger.info("Generating embeddings for %d jobs", len(pending))
        return self.ensure_many(pending, on_progress=on_progress, force=force)
