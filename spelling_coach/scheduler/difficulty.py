from __future__ import annotations

from typing import Sequence

from spelling_coach.config import MAX_DIFFICULTY, MIN_DIFFICULTY, DifficultyPolicy, clamp_difficulty


def accuracy(outcomes: Sequence[bool]) -> float | None:
    if not outcomes:
        return None
    return sum(1 for passed in outcomes if passed) / len(outcomes)


def difficulty_delta(outcomes: Sequence[bool], policy: DifficultyPolicy | None = None) -> int:
    # accuracy strictly between lower_at and raise_at leaves the target alone
    policy = policy or DifficultyPolicy()
    rate = accuracy(outcomes)
    if rate is None:
        return 0
    if rate >= policy.raise_at:
        return 1
    if rate <= policy.lower_at:
        return -1
    return 0


def next_target_difficulty(current: int, outcomes: Sequence[bool], policy: DifficultyPolicy | None = None) -> int:
    shifted = clamp_difficulty(current) + difficulty_delta(outcomes, policy)
    return max(MIN_DIFFICULTY, min(shifted, MAX_DIFFICULTY))
