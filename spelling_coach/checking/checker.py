from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable

from spelling_coach.services.llm import LLMService

CORRECT_FEEDBACK = "Perfect! You spelled it correctly."
FEEDBACK_MODES = {"rule_based", "model"}

FeedbackFn = Callable[[str, str], str]


@dataclass
class SpellingResult:
    is_correct: bool
    user_spelling: str
    feedback: str

    def as_dict(self) -> dict:
        return {
            "is_correct": self.is_correct,
            "user_spelling": self.user_spelling,
            "feedback": self.feedback,
        }


class RuleBasedFeedback:
    name = "rule_based"

    def __call__(self, target: str, user_spelling: str) -> str:
        return diagnose_misspelling(target, user_spelling)


class ModelFeedback:
    """Delegates the wording of a mistake to the text-generation provider."""

    name = "model"

    def __init__(self, llm: LLMService) -> None:
        self.llm = llm

    def __call__(self, target: str, user_spelling: str) -> str:
        text = self.llm.spelling_feedback(word=target, user_spelling=user_spelling)
        return text or closing_reminder(target)


def check_spelling(target: str, candidate: str, *, feedback: FeedbackFn | None = None) -> SpellingResult:
    expected = normalize_spelling(target)
    user_spelling = normalize_spelling(candidate)
    if not expected:
        raise ValueError("target word is empty")

    if expected == user_spelling:
        return SpellingResult(is_correct=True, user_spelling=user_spelling, feedback=CORRECT_FEEDBACK)

    strategy = feedback or RuleBasedFeedback()
    canonical = str(target).strip()
    return SpellingResult(is_correct=False, user_spelling=user_spelling, feedback=strategy(canonical, user_spelling))


def diagnose_misspelling(target: str, user_spelling: str) -> str:
    expected = normalize_spelling(target)
    actual = normalize_spelling(user_spelling)

    if len(actual) < len(expected):
        parts = [f'Your spelling "{actual}" is missing {len(expected) - len(actual)} letter(s).']
    elif len(actual) > len(expected):
        parts = [f'Your spelling "{actual}" has {len(actual) - len(expected)} extra letter(s).']
    else:
        parts = [f'Your spelling "{actual}" has the right number of letters but some are incorrect.']

    for index, (want, got) in enumerate(zip(expected, actual), start=1):
        if want != got:
            parts.append(f'The {index}{ordinal_suffix(index)} letter should be "{want}" not "{got}".')
            break

    parts.append(closing_reminder(str(target).strip()))
    return " ".join(parts)


def closing_reminder(target: str) -> str:
    return f'The correct spelling is "{target}".'


def ordinal_suffix(number: int) -> str:
    if number % 100 in (11, 12, 13):
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def normalize_spelling(value: str) -> str:
    return str(value or "").strip().lower()


def feedback_strategy(mode: str | None = None, llm: LLMService | None = None) -> FeedbackFn:
    resolved = str(mode or os.getenv("SPELLING_COACH_FEEDBACK_MODE", "rule_based")).strip().lower()
    if resolved not in FEEDBACK_MODES:
        raise ValueError(f"unknown feedback mode: {resolved}")
    if resolved == "model":
        return ModelFeedback(llm or LLMService())
    return RuleBasedFeedback()
