from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from spelling_coach.config import DB_PATH, DEFAULT_TARGET_DIFFICULTY, clamp_difficulty

UTC = timezone.utc


class Database:
    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = db_path

    @contextmanager
    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        schema_path = Path(__file__).with_name("schema.sql")
        with self.connect() as conn:
            conn.executescript(schema_path.read_text(encoding="utf-8"))

    # users and settings

    def ensure_user(self, user_id: str) -> None:
        with self.connect() as conn:
            _ensure_user(conn, user_id)

    def get_settings(self, user_id: str) -> dict:
        with self.connect() as conn:
            _ensure_user(conn, user_id)
            row = conn.execute(
                "SELECT user_id, target_difficulty, updated_at FROM user_settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        data = dict(row)
        data["target_difficulty"] = clamp_difficulty(data["target_difficulty"])
        return data

    def get_target_difficulty(self, user_id: str) -> int:
        return int(self.get_settings(user_id)["target_difficulty"])

    def shift_target_difficulty(self, user_id: str, delta: int) -> int:
        with self.connect() as conn:
            _ensure_user(conn, user_id)
            row = conn.execute(
                """
                UPDATE user_settings
                SET target_difficulty = MIN(10, MAX(1, target_difficulty + ?)),
                    updated_at = ?
                WHERE user_id = ?
                RETURNING target_difficulty
                """,
                (int(delta), _iso_now(), user_id),
            ).fetchone()
        return int(row["target_difficulty"])

    # catalog

    def get_word(self, word_id: int) -> dict | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,)).fetchone()
        return dict(row) if row else None

    def get_word_by_text(self, word: str) -> dict | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM words WHERE word = ?", (word.strip(),)).fetchone()
        return dict(row) if row else None

    def count_words(self) -> int:
        with self.connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM words").fetchone()
        return int(row["cnt"] if row else 0)

    def list_words_by_difficulty(self, low: int, high: int) -> list[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT id, word, normalized_difficulty AS difficulty
                FROM words
                WHERE normalized_difficulty BETWEEN ? AND ?
                ORDER BY id ASC
                """,
                (int(low), int(high)),
            ).fetchall()
        return [dict(row) for row in rows]

    def upsert_catalog_words(self, rows: Sequence[dict]) -> int:
        with self.connect() as conn:
            conn.executemany(
                """
                INSERT INTO words (word, normalized_difficulty, difficulty_raw, level, letters, syllables, tags)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(word)
                DO UPDATE SET
                  normalized_difficulty = excluded.normalized_difficulty,
                  difficulty_raw = excluded.difficulty_raw,
                  level = excluded.level,
                  letters = excluded.letters,
                  syllables = excluded.syllables,
                  tags = excluded.tags
                """,
                [
                    (
                        row["word"],
                        row["difficulty"],
                        row.get("difficulty_raw"),
                        row.get("level"),
                        row.get("letters"),
                        row.get("syllables"),
                        row.get("tags"),
                    )
                    for row in rows
                ],
            )
        return len(rows)

    def insert_generated_words(self, words: Sequence[dict]) -> list[dict]:
        """Store generated words in one transaction, keeping existing spellings as they are."""
        stored: list[dict] = []
        with self.connect() as conn:
            for item in words:
                text = str(item["word"]).strip()
                existing = conn.execute("SELECT id FROM words WHERE word = ?", (text,)).fetchone()
                if existing is not None:
                    stored.append({"id": int(existing["id"]), "word": text, "created": False})
                    continue
                word_id = conn.execute(
                    """
                    INSERT INTO words (word, normalized_difficulty, phonetic_pattern)
                    VALUES (?, ?, ?)
                    RETURNING id
                    """,
                    (text, clamp_difficulty(item["difficulty"]), item.get("phonetic_pattern")),
                ).fetchone()[0]
                if item.get("context_sentence"):
                    conn.execute(
                        "INSERT INTO word_contexts (word_id, context_sentence) VALUES (?, ?)",
                        (word_id, item["context_sentence"]),
                    )
                stored.append({"id": int(word_id), "word": text, "created": True})
        return stored

    # performance

    def get_performance(self, user_id: str, word_id: int) -> dict | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_word_performance WHERE user_id = ? AND word_id = ?",
                (user_id, word_id),
            ).fetchone()
        return dict(row) if row else None

    def relearn_words(self, user_id: str, *, max_accuracy: float, limit: int) -> list[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT w.id, w.word, w.normalized_difficulty AS difficulty,
                       p.attempts, p.correct, p.last_attempted_at
                FROM user_word_performance p
                JOIN words w ON w.id = p.word_id
                WHERE p.user_id = ?
                  AND p.attempts >= 1
                  AND p.correct * 1.0 / p.attempts < ?
                ORDER BY p.last_attempted_at IS NOT NULL, p.last_attempted_at ASC, w.id ASC
                LIMIT ?
                """,
                (user_id, float(max_accuracy), max(0, int(limit))),
            ).fetchall()
        return [dict(row) for row in rows]

    def review_words(self, user_id: str, *, min_attempts: int, min_accuracy: float, limit: int) -> list[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT w.id, w.word, w.normalized_difficulty AS difficulty,
                       p.attempts, p.correct, p.last_attempted_at
                FROM user_word_performance p
                JOIN words w ON w.id = p.word_id
                WHERE p.user_id = ?
                  AND p.attempts >= ?
                  AND p.correct * 1.0 / p.attempts >= ?
                ORDER BY p.last_attempted_at IS NOT NULL, p.last_attempted_at ASC, w.id ASC
                LIMIT ?
                """,
                (user_id, max(1, int(min_attempts)), float(min_accuracy), max(0, int(limit))),
            ).fetchall()
        return [dict(row) for row in rows]

    # sessions and attempts

    def create_session(self, user_id: str, *, prompt: str | None = None, difficulty_setting: str | None = None) -> int:
        with self.connect() as conn:
            _ensure_user(conn, user_id)
            return _insert_session(conn, user_id, prompt=prompt, difficulty_setting=difficulty_setting)

    def get_session(self, session_id: int) -> dict | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM test_sessions WHERE id = ?", (session_id,)).fetchone()
        return dict(row) if row else None

    def record_attempt(
        self,
        *,
        user_id: str,
        word_id: int,
        user_spelling: str,
        is_correct: bool,
        feedback: str,
        session_id: int | None = None,
        audio_duration_ms: int | None = None,
        attempted_at: str | None = None,
    ) -> tuple[int, int]:
        """Insert an attempt and bump the (user, word) counters in one transaction.

        Returns ``(attempt_id, session_id)``. Raises ``LookupError`` when the word
        or the supplied session does not exist.
        """
        timestamp = attempted_at or _iso_now()
        with self.connect() as conn:
            _ensure_user(conn, user_id)
            word = conn.execute("SELECT id FROM words WHERE id = ?", (word_id,)).fetchone()
            if word is None:
                raise LookupError(f"word {word_id} not found")

            if session_id is None:
                target = conn.execute(
                    "SELECT target_difficulty FROM user_settings WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
                session_id = _insert_session(
                    conn,
                    user_id,
                    difficulty_setting=str(target["target_difficulty"]),
                    created_at=timestamp,
                )
            else:
                session = conn.execute("SELECT user_id FROM test_sessions WHERE id = ?", (session_id,)).fetchone()
                if session is None or session["user_id"] != user_id:
                    raise LookupError(f"session {session_id} not found")

            attempt_id = conn.execute(
                """
                INSERT INTO test_attempts
                (session_id, user_id, word_id, user_spelling, is_correct, feedback, attempted_at, audio_duration_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                (
                    session_id,
                    user_id,
                    word_id,
                    user_spelling or "",
                    int(bool(is_correct)),
                    feedback or "",
                    timestamp,
                    audio_duration_ms,
                ),
            ).fetchone()[0]
            conn.execute(
                """
                INSERT INTO user_word_performance (user_id, word_id, attempts, correct, last_attempted_at)
                VALUES (?, ?, 1, ?, ?)
                ON CONFLICT(user_id, word_id)
                DO UPDATE SET
                  attempts = user_word_performance.attempts + 1,
                  correct = user_word_performance.correct + excluded.correct,
                  last_attempted_at = excluded.last_attempted_at
                """,
                (user_id, word_id, int(bool(is_correct)), timestamp),
            )
        return int(attempt_id), int(session_id)

    def count_session_attempts(self, session_id: int) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM test_attempts WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        return int(row["cnt"] if row else 0)

    def recent_outcomes(self, user_id: str, limit: int) -> list[bool]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT is_correct FROM test_attempts
                WHERE user_id = ?
                ORDER BY attempted_at DESC, id DESC
                LIMIT ?
                """,
                (user_id, max(1, int(limit))),
            ).fetchall()
        return [bool(row["is_correct"]) for row in rows]

    def list_attempts(self, user_id: str, limit: int = 100) -> list[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT a.id, a.session_id, a.word_id, w.word, a.user_spelling, a.is_correct,
                       a.feedback, a.attempted_at, a.audio_duration_ms
                FROM test_attempts a
                LEFT JOIN words w ON w.id = a.word_id
                WHERE a.user_id = ?
                ORDER BY a.attempted_at DESC, a.id DESC
                LIMIT ?
                """,
                (user_id, max(1, min(int(limit), 500))),
            ).fetchall()
        return [_decode_attempt(row) for row in rows]

    def list_sessions(self, user_id: str, limit: int = 20) -> list[dict]:
        with self.connect() as conn:
            sessions = conn.execute(
                """
                SELECT id, created_at, prompt, difficulty_setting
                FROM test_sessions
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (user_id, max(1, min(int(limit), 200))),
            ).fetchall()
            data: list[dict] = []
            for session in sessions:
                attempts = conn.execute(
                    """
                    SELECT a.id, a.word_id, w.word, a.user_spelling, a.is_correct, a.feedback, a.attempted_at
                    FROM test_attempts a
                    LEFT JOIN words w ON w.id = a.word_id
                    WHERE a.session_id = ?
                    ORDER BY a.attempted_at ASC, a.id ASC
                    """,
                    (session["id"],),
                ).fetchall()
                obj = dict(session)
                obj["attempts"] = [_decode_attempt(row) for row in attempts]
                data.append(obj)
        return data


def _ensure_user(conn: sqlite3.Connection, user_id: str) -> None:
    if not str(user_id or "").strip():
        raise ValueError("user id is empty")
    conn.execute("INSERT OR IGNORE INTO users (id) VALUES (?)", (user_id,))
    conn.execute(
        "INSERT OR IGNORE INTO user_settings (user_id, target_difficulty) VALUES (?, ?)",
        (user_id, DEFAULT_TARGET_DIFFICULTY),
    )


def _insert_session(
    conn: sqlite3.Connection,
    user_id: str,
    *,
    prompt: str | None = None,
    difficulty_setting: str | None = None,
    created_at: str | None = None,
) -> int:
    row = conn.execute(
        """
        INSERT INTO test_sessions (user_id, created_at, prompt, difficulty_setting)
        VALUES (?, ?, ?, ?)
        RETURNING id
        """,
        (user_id, created_at or _iso_now(), prompt, difficulty_setting),
    ).fetchone()
    return int(row[0])


def _decode_attempt(row: sqlite3.Row) -> dict:
    obj = dict(row)
    obj["is_correct"] = bool(obj["is_correct"])
    obj["word"] = obj.get("word") or "Unknown"
    return obj


def _iso_now() -> str:
    return datetime.now(UTC).isoformat()
