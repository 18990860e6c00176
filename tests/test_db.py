"""
Tests for the SQLite store.
"""

from datetime import datetime

import numpy as np
import pytest

from careermatch.db import CareerMatchDB, decode_embedding
from careermatch.models import MatchScore

from conftest import add_jobs, store_embedding


class TestProfiles:
    """Test profile persistence and the single-active rule."""

    def test_add_and_get_profile(self, db, sample_resume):
        profile_id = db.add_profile("user-1", sample_resume)
        profile = db.get_profile(profile_id)

        assert profile.user_id == "user-1"
        assert profile.data == sample_resume
        assert profile.is_active is True
        assert profile.content_version == 1
        assert profile.embedding is None

    def test_new_active_profile_deactivates_others(self, db):
        first = db.add_profile("user-1", {"summary": "first"})
        second = db.add_profile("user-1", {"summary": "second"})

        assert db.get_active_profile("user-1").id == second
        assert db.get_profile(first).is_active is False
        assert len(db.get_profiles("user-1", active_only=True)) == 1

    def test_set_active_profile(self, db):
        first = db.add_profile("user-1", {"summary": "first"})
        db.add_profile("user-1", {"summary": "second"})

        assert db.set_active_profile(first) is True
        assert db.get_active_profile("user-1").id == first
        assert db.set_active_profile(999) is False

    def test_other_users_unaffected(self, db):
        mine = db.add_profile("user-1", {"summary": "mine"})
        db.add_profile("user-2", {"summary": "theirs"})

        assert db.get_active_profile("user-1").id == mine

    def test_update_profile_data_bumps_version(self, db):
        profile_id = db.add_profile("user-1", {"summary": "old"})

        assert db.update_profile_data(profile_id, {"summary": "new"}) is True
        profile = db.get_profile(profile_id)
        assert profile.data == {"summary": "new"}
        assert profile.content_version == 2

    def test_profile_embedding_roundtrip(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        db.save_profile_embedding(profile_id, np.array([0.25, -1.5], dtype=np.float32),
                                  "abc", "fake-embed")

        profile = db.get_profile(profile_id)
        assert profile.embedding.tolist() == [0.25, -1.5]
        assert profile.embedding_hash == "abc"
        assert profile.embedding_model == "fake-embed"
        assert profile.embedding_updated_at is not None


class TestJobs:
    """Test job persistence."""

    def test_jobs_most_recent_first(self, db):
        ids = add_jobs(db, 3)
        assert [job.id for job in db.get_jobs()] == list(reversed(ids))

    def test_same_created_at_breaks_on_id(self, db):
        created = datetime(2024, 5, 1)
        first = db.add_job("A", "Co", created_at=created)
        second = db.add_job("B", "Co", created_at=created)

        assert [job.id for job in db.get_jobs()] == [second, first]

    def test_limit(self, db):
        add_jobs(db, 5)
        assert len(db.get_jobs(limit=2)) == 2
        assert db.get_job_count() == 5

    def test_embeddings_only_loaded_on_request(self, db):
        job_id = add_jobs(db, 1)[0]
        store_embedding(db, "job", job_id, [1.0, 0.0])

        assert db.get_jobs()[0].embedding is None
        assert db.get_jobs(include_embeddings=True)[0].embedding.tolist() == [1.0, 0.0]

    def test_truncated_blob_reads_as_missing(self, db):
        job_id = add_jobs(db, 1)[0]
        db.conn.execute("UPDATE jobs SET embedding = ? WHERE id = ?", (b"\x00\x01\x02", job_id))
        db.conn.commit()

        assert db.get_job(job_id).embedding is None
        with pytest.raises(ValueError):
            decode_embedding(b"\x00\x01\x02")

    def test_truncated_profile_blob_reads_as_missing(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        db.conn.execute("UPDATE profiles SET embedding = ? WHERE id = ?", (b"\x00\x01\x02\x03\x04", profile_id))
        db.conn.commit()

        assert db.get_profile(profile_id).embedding is None
        assert db.get_active_profile("user-1").id == profile_id

    def test_update_job_ignores_unknown_fields(self, db):
        job_id = add_jobs(db, 1)[0]

        assert db.update_job(job_id, title="Staff Engineer", embedding=b"x") is True
        assert db.get_job(job_id).title == "Staff Engineer"
        assert db.update_job(job_id, embedding=b"x") is False


class TestMatchScores:
    """Test the match score table."""

    def test_upsert_keeps_single_row(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        job_id = add_jobs(db, 1)[0]

        db.upsert_match_score(MatchScore(profile_id, job_id, 0.2, datetime(2024, 1, 1)))
        db.upsert_match_score(MatchScore(profile_id, job_id, 0.7, datetime(2024, 1, 2)))

        assert db.get_match_count(profile_id) == 1
        stored = db.get_match_score(profile_id, job_id)
        assert stored.score == pytest.approx(0.7)
        assert stored.computed_at == datetime(2024, 1, 2)

    def test_get_match_scores_keyed_by_job(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        first, second = add_jobs(db, 2)
        db.upsert_match_score(MatchScore(profile_id, first, 0.1, datetime.now()))
        db.upsert_match_score(MatchScore(profile_id, second, -0.3, datetime.now()))

        scores = db.get_match_scores(profile_id)
        assert set(scores) == {first, second}
        assert scores[second].score == pytest.approx(-0.3)

    def test_deleting_profile_cascades(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        job_id = add_jobs(db, 1)[0]
        db.upsert_match_score(MatchScore(profile_id, job_id, 0.5, datetime.now()))

        assert db.delete_profile(profile_id) is True
        assert db.get_match_count() == 0

    def test_deleting_job_cascades(self, db):
        profile_id = db.add_profile("user-1", {"summary": "x"})
        job_id = add_jobs(db, 1)[0]
        db.upsert_match_score(MatchScore(profile_id, job_id, 0.5, datetime.now()))

        assert db.delete_job(job_id) is True
        assert db.get_match_score(profile_id, job_id) is None


class TestStats:
    """Test embedding coverage statistics."""

    def test_coverage_counts_current_model_only(self, db):
        first, second = add_jobs(db, 2)
        store_embedding(db, "job", first, [1.0, 0.0])
        store_embedding(db, "job", second, [1.0, 0.0], model="old-model")

        stats = db.get_embedding_stats("fake-embed")
        assert stats["jobs"]["total"] == 2
        assert stats["jobs"]["with_embeddings"] == 1
        assert stats["jobs"]["coverage_percent"] == 50.0
        assert stats["profiles"]["total"] == 0

    def test_context_manager_closes(self, tmp_path):
        with CareerMatchDB(str(tmp_path / "ctx.db")) as database:
            database.add_job("A", "Co")
        assert database.conn is None
