from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DB_PATH = Path(os.getenv("SPELLING_COACH_DB_PATH") or PROJECT_ROOT / "spelling_coach.db")

LOG_LEVEL = os.getenv("SPELLING_COACH_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_USER_ID = "00000000-0000-0000-0000-000000000000"
DEFAULT_TARGET_DIFFICULTY = 5
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10


@dataclass(frozen=True)
class SelectionPolicy:
    batch_size: int = 10
    main_size: int = 6
    main_spread: int = 1
    relearn_size: int = 2
    relearn_max_accuracy: float = 0.6
    review_size: int = 2
    review_min_attempts: int = 3
    review_min_accuracy: float = 0.8
    top_up_spread: int = 2


@dataclass(frozen=True)
class DifficultyPolicy:
    session_trigger: int = 10
    window: int = 20
    raise_at: float = 0.8
    lower_at: float = 0.5


def selection_policy_from_env() -> SelectionPolicy:
    return _policy_from_env(SelectionPolicy)


def difficulty_policy_from_env() -> DifficultyPolicy:
    return _policy_from_env(DifficultyPolicy)


def clamp_difficulty(value: object) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = DEFAULT_TARGET_DIFFICULTY
    return max(MIN_DIFFICULTY, min(number, MAX_DIFFICULTY))


def ensure_dirs() -> None:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def _policy_from_env(policy_cls):
    overrides = {}
    for field in fields(policy_cls):
        raw = os.getenv(f"SPELLING_COACH_{field.name.upper()}")
        if raw is None or not raw.strip():
            continue
        caster = float if field.type in ("float", float) else int
        try:
            overrides[field.name] = caster(raw)
        except ValueError as exc:
            raise ValueError(f"invalid value for SPELLING_COACH_{field.name.upper()}: {raw!r}") from exc
    return policy_cls(**overrides)
