from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable

from spelling_coach.config import MAX_DIFFICULTY, MIN_DIFFICULTY, SelectionPolicy, clamp_difficulty
from spelling_coach.storage.db import Database


@dataclass
class WordPools:
    main: list[dict] = field(default_factory=list)
    relearn: list[dict] = field(default_factory=list)
    review: list[dict] = field(default_factory=list)


def select_word_batch(
    db: Database,
    user_id: str,
    *,
    policy: SelectionPolicy | None = None,
    rng: random.Random | None = None,
) -> list[dict]:
    """Pick the next practice batch for ``user_id``.

    Fresh words near the target difficulty come first, then words the user keeps
    getting wrong, then well-known words due for review. Gaps are filled from a
    wider difficulty band. A catalog too small to fill the batch gives a short
    batch.
    """
    policy = policy or SelectionPolicy()
    rng = rng or random.Random()

    target = clamp_difficulty(db.get_target_difficulty(user_id))
    pools = gather_pools(db, user_id, target=target, policy=policy, rng=rng)
    batch = merge_unique(pools.main, pools.relearn, pools.review)

    if len(batch) < policy.batch_size:
        low, high = difficulty_band(target, policy.top_up_spread)
        candidates = db.list_words_by_difficulty(low, high)
        rng.shuffle(candidates)
        batch = merge_unique(batch, candidates, limit=policy.batch_size)

    return [_batch_word(word) for word in batch[: policy.batch_size]]


def gather_pools(
    db: Database,
    user_id: str,
    *,
    target: int,
    policy: SelectionPolicy,
    rng: random.Random,
) -> WordPools:
    low, high = difficulty_band(target, policy.main_spread)
    main_candidates = db.list_words_by_difficulty(low, high)
    main = rng.sample(main_candidates, min(policy.main_size, len(main_candidates)))

    relearn = db.relearn_words(
        user_id,
        max_accuracy=policy.relearn_max_accuracy,
        limit=policy.relearn_size,
    )
    review = db.review_words(
        user_id,
        min_attempts=policy.review_min_attempts,
        min_accuracy=policy.review_min_accuracy,
        limit=policy.review_size,
    )
    return WordPools(main=main, relearn=relearn, review=review)


def merge_unique(*pools: Iterable[dict], limit: int | None = None) -> list[dict]:
    merged: list[dict] = []
    seen: set[int] = set()
    for pool in pools:
        for word in pool:
            if limit is not None and len(merged) >= limit:
                return merged
            word_id = int(word["id"])
            if word_id in seen:
                continue
            seen.add(word_id)
            merged.append(word)
    return merged


def difficulty_band(target: int, spread: int) -> tuple[int, int]:
    return max(MIN_DIFFICULTY, target - spread), min(MAX_DIFFICULTY, target + spread)


def _batch_word(word: dict) -> dict:
    return {"id": int(word["id"]), "word": word["word"], "difficulty": int(word["difficulty"])}
