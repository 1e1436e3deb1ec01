from __future__ import annotations

import pytest

from spelling_coach.pipeline.importer import import_word_csv, normalize_difficulty, parse_word_rows

CSV_TEXT = """word,difficulty_0_100,level,letters,syllables,tags
Colour,45,Year5,6,2,british
necessary,83,year6,9,4,
cat,3,,3,1,
broken,abc,,6,2,
colour,50,,6,2,
,40,,,,
"""


def test_normalize_difficulty_rounds_half_up_and_clamps():
    assert normalize_difficulty(45) == 5
    assert normalize_difficulty(44) == 4
    assert normalize_difficulty(3) == 1
    assert normalize_difficulty(100) == 10
    assert normalize_difficulty(140) == 10


def test_parse_word_rows():
    rows, summary = parse_word_rows(CSV_TEXT)

    assert [row["word"] for row in rows] == ["colour", "necessary", "cat"]
    assert rows[0]["difficulty"] == 5
    assert rows[0]["level"] == "year5"
    assert rows[0]["letters"] == 6
    assert rows[1]["tags"] is None
    assert summary.skipped == 2
    assert summary.errors and "line 5" in summary.errors[0]


def test_direct_difficulty_column():
    rows, summary = parse_word_rows("word,difficulty\nrhythm,8\nyacht,12\n")
    assert [(row["word"], row["difficulty"]) for row in rows] == [("rhythm", 8)]
    assert summary.skipped == 1


def test_missing_word_column_is_rejected():
    with pytest.raises(ValueError):
        parse_word_rows("term,difficulty\nrhythm,8\n")


def test_import_upserts_catalog(temp_db):
    summary = import_word_csv(temp_db, CSV_TEXT.encode("utf-8"))
    assert summary.imported == 3
    assert temp_db.count_words() == 3

    import_word_csv(temp_db, "word,difficulty_0_100\ncat,72\n")

    assert temp_db.count_words() == 3
    assert temp_db.get_word_by_text("cat")["normalized_difficulty"] == 7


@pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "Infinity"])
def test_non_finite_difficulty_rows_are_skipped(raw):
    rows, summary = parse_word_rows(f"word,difficulty_0_100\ncat,{raw}\ndog,40\n")

    assert [(row["word"], row["difficulty"]) for row in rows] == [("dog", 4)]
    assert summary.skipped == 1
    assert summary.errors == [f"line 2: invalid difficulty_0_100 {raw!r}"]
