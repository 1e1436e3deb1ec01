from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import spelling_coach.app as app_module
from spelling_coach.storage.db import Database


@pytest.fixture()
def temp_db(tmp_path):
    db = Database(tmp_path / "spelling_coach_test.db")
    db.initialize()
    return db


@pytest.fixture()
def seed_words(temp_db):
    def _seed(*entries: tuple[str, int]) -> dict[str, int]:
        temp_db.upsert_catalog_words([{"word": word, "difficulty": difficulty} for word, difficulty in entries])
        return {word: temp_db.get_word_by_text(word)["id"] for word, _ in entries}

    return _seed


@pytest.fixture()
def client(temp_db, monkeypatch):
    monkeypatch.setattr(app_module, "db", temp_db)
    with TestClient(app_module.app) as c:
        yield c
