from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from spelling_coach.config import DifficultyPolicy, SelectionPolicy
from spelling_coach.scheduler.difficulty import accuracy, difficulty_delta
from spelling_coach.storage.db import Database

logger = logging.getLogger(__name__)

HISTORY_ATTEMPT_LIMIT = 100
HISTORY_SESSION_LIMIT = 20
SUMMARY_WINDOW = 50


@dataclass
class AttemptSaved:
    attempt_id: int
    session_id: int
    target_difficulty: int
    difficulty_changed: bool

    def as_dict(self) -> dict:
        return asdict(self)


def save_attempt(
    db: Database,
    *,
    user_id: str,
    word_id: int,
    user_spelling: str,
    is_correct: bool,
    feedback: str,
    session_id: int | None = None,
    audio_duration_ms: int | None = None,
    policy: DifficultyPolicy | None = None,
) -> AttemptSaved:
    policy = policy or DifficultyPolicy()
    attempt_id, session_id = db.record_attempt(
        user_id=user_id,
        word_id=word_id,
        user_spelling=user_spelling,
        is_correct=is_correct,
        feedback=feedback,
        session_id=session_id,
        audio_duration_ms=audio_duration_ms,
    )

    current = db.get_target_difficulty(user_id)
    target = current
    if db.count_session_attempts(session_id) >= policy.session_trigger:
        outcomes = db.recent_outcomes(user_id, policy.window)
        delta = difficulty_delta(outcomes, policy)
        if delta:
            target = db.shift_target_difficulty(user_id, delta)
            if target != current:
                logger.info(
                    "target difficulty for user %s moved %d -> %d (accuracy %.2f over %d attempts)",
                    user_id,
                    current,
                    target,
                    accuracy(outcomes) or 0.0,
                    len(outcomes),
                )

    return AttemptSaved(
        attempt_id=attempt_id,
        session_id=session_id,
        target_difficulty=target,
        difficulty_changed=target != current,
    )


def get_history(db: Database, user_id: str) -> dict:
    return {
        "attempts": db.list_attempts(user_id, limit=HISTORY_ATTEMPT_LIMIT),
        "sessions": db.list_sessions(user_id, limit=HISTORY_SESSION_LIMIT),
    }


def get_performance_summary(
    db: Database,
    user_id: str,
    *,
    policy: SelectionPolicy | None = None,
    repeat_limit: int = 3,
) -> dict:
    policy = policy or SelectionPolicy()
    outcomes = db.recent_outcomes(user_id, SUMMARY_WINDOW)
    relearn = db.relearn_words(user_id, max_accuracy=policy.relearn_max_accuracy, limit=repeat_limit)
    return {
        "total_attempts": len(outcomes),
        "correct_attempts": sum(1 for passed in outcomes if passed),
        "success_rate": accuracy(outcomes),
        "failed_words": [row["word"] for row in relearn],
    }
