"""
Database management for CareerMatch using SQLite with vector support.

Tables: profiles, jobs and profile_job_matches. Embeddings are stored as
float32 blobs serialized with sqlite-vec.
"""

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import sqlite_vec

from .models import Job, MatchScore, Profile


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def decode_embedding(blob: Optional[bytes]) -> Optional[np.ndarray]:
    """Decode a stored float32 blob; raises ValueError for a truncated blob."""
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=np.float32)


def _stored_embedding(blob: Optional[bytes]) -> Optional[np.ndarray]:
    try:
        return decode_embedding(blob)
    except ValueError:
        # Truncated blob; treat as missing so it gets regenerated
        return None


class CareerMatchDB:
    """SQLite database manager with vector similarity support.

    A single connection is shared across worker threads; every statement runs
    under one re-entrant lock.
    """

    def __init__(self, db_path: str = "data/careermatch.db"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = None
        self._lock = threading.RLock()
        self._init_database()

    def _init_database(self):
        """Initialize database connection and create tables."""
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

        self.conn.enable_load_extension(True)
        sqlite_vec.load(self.conn)
        self.conn.enable_load_extension(False)

        self._create_tables()

    def _create_tables(self):
        """Create all necessary tables."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                data TEXT NOT NULL, -- Resume JSON
                is_active BOOLEAN DEFAULT TRUE,
                content_version INTEGER NOT NULL DEFAULT 1,
                embedding BLOB, -- float32 vector
                embedding_hash TEXT, -- sha256 of the embedded text
                embedding_model TEXT,
                embedding_updated_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                company TEXT NOT NULL,
                link TEXT,
                description TEXT,
                location TEXT,
                embedding BLOB,
                embedding_hash TEXT,
                embedding_model TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profile_job_matches (
                profile_id INTEGER NOT NULL,
                job_id INTEGER NOT NULL,
                match_score REAL NOT NULL,
                computed_at TIMESTAMP NOT NULL,
                FOREIGN KEY (profile_id) REFERENCES profiles (id) ON DELETE CASCADE,
                FOREIGN KEY (job_id) REFERENCES jobs (id) ON DELETE CASCADE,
                UNIQUE (profile_id, job_id)
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_profiles_user ON profiles (user_id, is_active)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created ON jobs (created_at DESC)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_matches_profile ON profile_job_matches (profile_id)")

        self.conn.commit()

    def close(self):
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Profile management
    def _row_to_profile(self, row: sqlite3.Row) -> Profile:
        return Profile(
            id=row["id"],
            user_id=row["user_id"],
            data=json.loads(row["data"]),
            is_active=bool(row["is_active"]),
            content_version=row["content_version"],
            embedding=_stored_embedding(row["embedding"]),
            embedding_hash=row["embedding_hash"],
            embedding_model=row["embedding_model"],
            embedding_updated_at=_parse_ts(row["embedding_updated_at"]),
            created_at=_parse_ts(row["created_at"]),
        )

    def add_profile(self, user_id: str, data: Dict[str, Any], is_active: bool = True) -> int:
        """Add a new profile. An active profile deactivates the user's others."""
        with self._lock:
            cursor = self.conn.cursor()
            if is_active:
                cursor.execute("UPDATE profiles SET is_active = FALSE WHERE user_id = ?", (user_id,))
            cursor.execute("""
                INSERT INTO profiles (user_id, data, is_active, created_at)
                VALUES (?, ?, ?, ?)
            """, (user_id, json.dumps(data), is_active, datetime.now().isoformat()))
            self.conn.commit()
            return cursor.lastrowid

    def get_profile(self, profile_id: int) -> Optional[Profile]:
        """Get a specific profile."""
        with self._lock:
            row = self.conn.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        return self._row_to_profile(row) if row else None

    def get_active_profile(self, user_id: str) -> Optional[Profile]:
        """Get the user's active profile."""
        with self._lock:
            row = self.conn.execute("""
                SELECT * FROM profiles WHERE user_id = ? AND is_active = TRUE
                ORDER BY id DESC LIMIT 1
            """, (user_id,)).fetchone()
        return self._row_to_profile(row) if row else None

    def get_profiles(self, user_id: Optional[str] = None, active_only: bool = False) -> List[Profile]:
        """Get profiles with optional filtering."""
        query = "SELECT * FROM profiles"
        params: List[Any] = []
        conditions = []

        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)

        if active_only:
            conditions.append("is_active = TRUE")

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY id"

        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_profile(row) for row in rows]

    def set_active_profile(self, profile_id: int) -> bool:
        """Make a profile the single active profile of its user."""
        with self._lock:
            row = self.conn.execute("SELECT user_id FROM profiles WHERE id = ?", (profile_id,)).fetchone()
            if not row:
                return False
            self.conn.execute("UPDATE profiles SET is_active = FALSE WHERE user_id = ?", (row["user_id"],))
            self.conn.execute("UPDATE profiles SET is_active = TRUE WHERE id = ?", (profile_id,))
            self.conn.commit()
            return True

    def update_profile_data(self, profile_id: int, data: Dict[str, Any]) -> bool:
        """Replace profile resume data and bump its content version."""
        with self._lock:
            cursor = self.conn.execute("""
                UPDATE profiles SET data = ?, content_version = content_version + 1
                WHERE id = ?
            """, (json.dumps(data), profile_id))
            self.conn.commit()
            return cursor.rowcount > 0

    def save_profile_embedding(self, profile_id: int, embedding: np.ndarray,
                               embedding_hash: str, model: str) -> None:
        """Save profile embedding vector."""
        with self._lock:
            self.conn.execute("""
                UPDATE profiles SET
                    embedding = ?, embedding_hash = ?, embedding_model = ?,
                    embedding_updated_at = ?
                WHERE id = ?
            """, (sqlite_vec.serialize_float32(embedding.tolist()), embedding_hash, model,
                  datetime.now().isoformat(), profile_id))
            self.conn.commit()

    def delete_profile(self, profile_id: int) -> bool:
        """Delete a profile and its match scores."""
        with self._lock:
            cursor = self.conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
            self.conn.commit()
            return cursor.rowcount > 0

    # Job management
    def _row_to_job(self, row: sqlite3.Row) -> Job:
        embedding = None
        if "embedding" in row.keys():
            embedding = _stored_embedding(row["embedding"])
        return Job(
            id=row["id"],
            title=row["title"],
            company=row["company"],
            link=row["link"],
            description=row["description"],
            location=row["location"],
            embedding=embedding,
            embedding_hash=row["embedding_hash"],
            embedding_model=row["embedding_model"],
            created_at=_parse_ts(row["created_at"]),
        )

    def add_job(self, title: str, company: str, link: Optional[str] = None,
                description: Optional[str] = None, location: Optional[str] = None,
                created_at: Optional[datetime] = None) -> int:
        """Add a new job posting."""
        created = (created_at or datetime.now()).isoformat()
        with self._lock:
            cursor = self.conn.execute("""
                INSERT INTO jobs (title, company, link, description, location, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (title, company, link, description, location, created))
            self.conn.commit()
            return cursor.lastrowid

    def update_job(self, job_id: int, **fields) -> bool:
        """Update job content fields (title, company, link, description, location)."""
        allowed = {"title", "company", "link", "description", "location"}
        updates = {k: v for k, v in fields.items() if k in allowed}
        if not updates:
            return False

        assignments = ", ".join(f"{k} = ?" for k in updates)
        with self._lock:
            cursor = self.conn.execute(
                f"UPDATE jobs SET {assignments} WHERE id = ?",
                list(updates.values()) + [job_id]
            )
            self.conn.commit()
            return cursor.rowcount > 0

    def get_job(self, job_id: int) -> Optional[Job]:
        """Get a specific job."""
        with self._lock:
            row = self.conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def get_jobs(self, limit: Optional[int] = None, include_embeddings: bool = False) -> List[Job]:
        """Get job listings, most recent first."""
        columns = "*" if include_embeddings else (
            "id, title, company, link, description, location, "
            "embedding_hash, embedding_model, created_at"
        )
        query = f"SELECT {columns} FROM jobs ORDER BY created_at DESC, id DESC"
        params: List[Any] = []

        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_job(row) for row in rows]

    def get_job_embedding_blobs(self) -> List[Tuple[int, Optional[bytes], Optional[str]]]:
        """Get (job_id, raw embedding blob, embedding model) for every job, most recent first."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, embedding, embedding_model FROM jobs ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [(row["id"], row["embedding"], row["embedding_model"]) for row in rows]

    def get_job_count(self) -> int:
        """Get total number of jobs."""
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) as count FROM jobs").fetchone()["count"]

    def save_job_embedding(self, job_id: int, embedding: np.ndarray,
                           embedding_hash: str, model: str) -> None:
        """Save job embedding vector."""
        with self._lock:
            self.conn.execute("""
                UPDATE jobs SET embedding = ?, embedding_hash = ?, embedding_model = ?
                WHERE id = ?
            """, (sqlite_vec.serialize_float32(embedding.tolist()), embedding_hash, model, job_id))
            self.conn.commit()

    def delete_job(self, job_id: int) -> bool:
        """Delete a job and its match scores."""
        with self._lock:
            cursor = self.conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            self.conn.commit()
            return cursor.rowcount > 0

    # Match score management
    def upsert_match_score(self, score: MatchScore) -> None:
        """Insert or overwrite the single row for (profile_id, job_id)."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                UPDATE profile_job_matches SET match_score = ?, computed_at = ?
                WHERE profile_id = ? AND job_id = ?
            """, (score.score, score.computed_at.isoformat(), score.profile_id, score.job_id))

            if cursor.rowcount == 0:
                cursor.execute("""
                    INSERT INTO profile_job_matches (profile_id, job_id, match_score, computed_at)
                    VALUES (?, ?, ?, ?)
                """, (score.profile_id, score.job_id, score.score, score.computed_at.isoformat()))

            self.conn.commit()

    def get_match_score(self, profile_id: int, job_id: int) -> Optional[MatchScore]:
        """Get the cached score for one (profile, job) pair."""
        with self._lock:
            row = self.conn.execute("""
                SELECT * FROM profile_job_matches WHERE profile_id = ? AND job_id = ?
            """, (profile_id, job_id)).fetchone()
        if not row:
            return None
        return MatchScore(row["profile_id"], row["job_id"], row["match_score"],
                          _parse_ts(row["computed_at"]))

    def get_match_scores(self, profile_id: int) -> Dict[int, MatchScore]:
        """Get all cached scores for a profile keyed by job id."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM profile_job_matches WHERE profile_id = ?", (profile_id,)
            ).fetchall()
        return {
            row["job_id"]: MatchScore(row["profile_id"], row["job_id"], row["match_score"],
                                      _parse_ts(row["computed_at"]))
            for row in rows
        }

    def get_match_count(self, profile_id: Optional[int] = None) -> int:
        """Count stored match rows, optionally for one profile."""
        query = "SELECT COUNT(*) as count FROM profile_job_matches"
        params: List[Any] = []
        if profile_id is not None:
            query += " WHERE profile_id = ?"
            params.append(profile_id)
        with self._lock:
            return self.conn.execute(query, params).fetchone()["count"]

    # Statistics
    def get_embedding_stats(self, model: str) -> Dict[str, Any]:
        """Get statistics about embedding coverage for a model."""
        with self._lock:
            total_jobs = self.conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]
            jobs_with = self.conn.execute(
                "SELECT COUNT(*) FROM jobs WHERE embedding IS NOT NULL AND embedding_model = ?",
                (model,)
            ).fetchone()[0]
            total_profiles = self.conn.execute("SELECT COUNT(*) FROM profiles").fetchone()[0]
            profiles_with = self.conn.execute(
                "SELECT COUNT(*) FROM profiles WHERE embedding IS NOT NULL AND embedding_model = ?",
                (model,)
            ).fetchone()[0]

        return {
            "model": model,
            "jobs": {
                "total": total_jobs,
                "with_embeddings": jobs_with,
                "coverage_percent": round((jobs_with / max(total_jobs, 1)) * 100, 1)
            },
            "profiles": {
                "total": total_profiles,
                "with_embeddings": profiles_with,
                "coverage_percent": round((profiles_with / max(total_profiles, 1)) * 100, 1)
            }
        }
