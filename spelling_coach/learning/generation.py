from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spelling_coach.learning.progress import get_performance_summary
from spelling_coach.services.llm import LLMService
from spelling_coach.storage.db import Database

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
HARDER_ABOVE = 0.8
EASIER_BELOW = 0.5

SYSTEM_PROMPT = """You are a British spelling test word generator. Generate exactly 10 words appropriate for a spelling test.
IMPORTANT: Use British English spelling exclusively (e.g., "colour" not "color", "favourite" not "favorite", "realise" not "realize", "centre" not "center", "theatre" not "theater", "defence" not "defense").

Return a JSON object {"words": [...]} where each word has:
- word: the spelling word (in British English)
- difficulty: integer difficulty level from 1-10
- contextSentence: a natural sentence using the word (also using British spelling)
- phoneticPattern: any notable phonetic pattern (optional)

Make the words educational and appropriate for spelling practice in British English."""

DEFAULT_USER_PROMPT = (
    "Generate 10 spelling words appropriate for an 11-year-old British student. Use British English spelling only."
)

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'-]{0,40}")


class WordGenerationError(RuntimeError):
    pass


class GeneratedWord(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    word: str
    difficulty: int = Field(ge=1, le=10)
    context_sentence: str = Field(alias="contextSentence", min_length=1)
    phonetic_pattern: str | None = Field(default=None, alias="phoneticPattern")

    @field_validator("word")
    @classmethod
    def _single_word(cls, value: str) -> str:
        text = value.strip()
        if not _WORD_RE.fullmatch(text):
            raise ValueError(f"not a single spelling word: {value!r}")
        return text


class GeneratedWords(BaseModel):
    model_config = ConfigDict(strict=True)

    words: list[GeneratedWord] = Field(min_length=BATCH_SIZE, max_length=BATCH_SIZE)


@dataclass
class GeneratedBatch:
    words: list[dict]
    session_prompt: str
    stored: list[dict] = field(default_factory=list)


def build_user_prompt(prompt: str | None, summary: dict | None = None) -> str:
    text = (prompt or "").strip() or DEFAULT_USER_PROMPT
    if not summary or not summary.get("total_attempts"):
        return text

    rate = summary.get("success_rate") or 0.0
    if rate > HARDER_ABOVE:
        text += " The student has been doing well (80%+ success rate), so increase difficulty."
    elif rate < EASIER_BELOW:
        text += " The student has been struggling (below 50% success rate), so keep words easier."

    failed = summary.get("failed_words") or []
    if failed:
        text += f" Include these previously failed words for practice: {', '.join(failed)}."
    return text


def parse_generated_words(payload: dict) -> list[GeneratedWord]:
    try:
        return GeneratedWords.model_validate(payload).words
    except ValidationError as exc:
        raise WordGenerationError(f"generated words failed validation: {exc.error_count()} error(s)") from exc


def generate_words(
    db: Database,
    llm: LLMService,
    *,
    user_id: str,
    prompt: str | None = None,
    use_history: bool = False,
) -> GeneratedBatch:
    summary = get_performance_summary(db, user_id) if use_history else None
    user_prompt = build_user_prompt(prompt, summary)

    payload = llm.generate_word_payload(system_prompt=SYSTEM_PROMPT, user_prompt=user_prompt)
    words = parse_generated_words(payload)

    stored = db.insert_generated_words([item.model_dump() for item in words])
    created = sum(1 for item in stored if item["created"])
    logger.info("stored %d generated words (%d new) for user %s", len(stored), created, user_id)

    return GeneratedBatch(
        words=[item.model_dump(by_alias=True) for item in words],
        session_prompt=user_prompt,
        stored=stored,
    )
