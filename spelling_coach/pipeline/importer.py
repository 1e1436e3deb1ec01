from __future__ import annotations

import csv
import io
import logging
import math
import re
from dataclasses import dataclass, field

from spelling_coach.config import MAX_DIFFICULTY, MIN_DIFFICULTY
from spelling_coach.storage.db import Database

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z][a-z'-]{0,40}")


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def normalize_difficulty(raw_0_100: float) -> int:
    # half-up, so 45 maps to 5 rather than banker's rounding to 4
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(raw_0_100 / 10 + 0.5)))


def parse_word_rows(text: str) -> tuple[list[dict], ImportSummary]:
    """Read a word-list CSV with a header row.

    Either ``difficulty_0_100`` or ``difficulty`` (1-10) must be present per row;
    ``level``, ``letters``, ``syllables`` and ``tags`` are optional.
    """
    summary = ImportSummary()
    rows: list[dict] = []
    seen: set[str] = set()
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or "word" not in [name.strip().lower() for name in reader.fieldnames]:
        raise ValueError("csv must have a 'word' column")

    for line_no, raw in enumerate(reader, start=2):
        record = {str(k or "").strip().lower(): str(v or "").strip() for k, v in raw.items()}
        word = record.get("word", "").lower()
        if not word:
            continue
        if not _WORD_RE.fullmatch(word) or word in seen:
            summary.skipped += 1
            continue
        try:
            difficulty_raw, difficulty = _row_difficulty(record)
        except ValueError as exc:
            summary.skipped += 1
            summary.errors.append(f"line {line_no}: {exc}")
            continue

        seen.add(word)
        rows.append(
            {
                "word": word,
                "difficulty": difficulty,
                "difficulty_raw": difficulty_raw,
                "level": record.get("level", "").lower() or None,
                "letters": _optional_int(record.get("letters")),
                "syllables": _optional_int(record.get("syllables")),
                "tags": record.get("tags") or None,
            }
        )
    return rows, summary


def import_word_csv(db: Database, payload: bytes | str) -> ImportSummary:
    text = payload.decode("utf-8-sig") if isinstance(payload, bytes) else payload
    rows, summary = parse_word_rows(text)
    if rows:
        summary.imported = db.upsert_catalog_words(rows)
    logger.info("imported %d catalog words (%d skipped)", summary.imported, summary.skipped)
    return summary


def _row_difficulty(record: dict) -> tuple[float | None, int]:
    raw = record.get("difficulty_0_100", "")
    if raw:
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"invalid difficulty_0_100 {raw!r}") from exc
        if not math.isfinite(value):
            raise ValueError(f"invalid difficulty_0_100 {raw!r}")
        return value, normalize_difficulty(value)

    direct = record.get("difficulty", "")
    try:
        level = int(direct)
    except ValueError as exc:
        raise ValueError(f"invalid difficulty {direct!r}") from exc
    if not MIN_DIFFICULTY <= level <= MAX_DIFFICULTY:
        raise ValueError(f"difficulty {level} outside 1-10")
    return None, level


def _optional_int(value: str | None) -> int | None:
    try:
        return int(str(value or "").strip())
    except ValueError:
        return None
