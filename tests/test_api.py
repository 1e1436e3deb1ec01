from __future__ import annotations

import spelling_coach.app as app_module
from spelling_coach.services.speech import SynthesizedSpeech


class FakeSpeech:
    def __init__(self, transcript: str = "", error: Exception | None = None) -> None:
        self.transcript = transcript
        self.error = error
        self.calls: list[dict] = []

    def list_voices(self) -> list[str]:
        return ["alloy", "nova"]

    def transcribe(self, audio: bytes, **kwargs) -> str:
        self.calls.append({"size": len(audio), **kwargs})
        if self.error:
            raise self.error
        return self.transcript

    def synthesize(self, *, text: str, voice: str | None = None, speed: float = 1.0) -> SynthesizedSpeech:
        if self.error:
            raise self.error
        return SynthesizedSpeech(content=b"ID3-fake-mp3", content_type="audio/mpeg")


class FakeLLM:
    def __init__(self, payload: dict) -> None:
        self.payload = payload

    def generate_word_payload(self, *, system_prompt: str, user_prompt: str) -> dict:
        return self.payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_check_spelling_flow(client):
    ok = client.post("/api/check-spelling", json={"word": "colour", "user_spelling": "Colour"})
    assert ok.status_code == 200
    assert ok.json()["is_correct"] is True

    wrong = client.post("/api/check-spelling", json={"word": "colour", "user_spelling": "color"})
    body = wrong.json()
    assert body["is_correct"] is False
    assert body["user_spelling"] == "color"
    assert "The 5th letter should be" in body["feedback"]


def test_check_spelling_decodes_transcript(client):
    resp = client.post("/api/check-spelling", json={"word": "big", "transcript": "bee eye gee"})
    assert resp.status_code == 200
    assert resp.json()["is_correct"] is True


def test_check_spelling_could_not_understand(client):
    resp = client.post("/api/check-spelling", json={"word": "big", "transcript": "hmm not sure"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "could_not_understand"


def test_check_spelling_requires_fields(client):
    assert client.post("/api/check-spelling", json={"word": "big", "user_spelling": "  "}).status_code == 400
    assert client.post("/api/check-spelling", json={"word": "", "user_spelling": "big"}).status_code == 400
    assert client.post("/api/check-spelling", json={"user_spelling": "big"}).status_code == 422
    bad_mode = client.post(
        "/api/check-spelling",
        json={"word": "big", "user_spelling": "bag", "feedback_mode": "poetry"},
    )
    assert bad_mode.status_code == 400


def test_select_save_and_history(client, seed_words):
    seed_words(("colour", 5), ("theatre", 4), ("centre", 6), ("rhythm", 9))

    selected = client.get("/api/words/select", params={"user_id": "api-user"})
    assert selected.status_code == 200
    words = selected.json()["words"]
    assert {w["word"] for w in words} == {"colour", "theatre", "centre"}
    assert selected.json()["target_difficulty"] == 5

    saved = client.post(
        "/api/attempts",
        json={
            "user_id": "api-user",
            "word_id": words[0]["id"],
            "user_spelling": "wrong",
            "is_correct": False,
            "feedback": "try again",
            "audio_duration_ms": 2100,
        },
    )
    assert saved.status_code == 200
    session_id = saved.json()["session_id"]

    again = client.post(
        "/api/attempts",
        json={
            "user_id": "api-user",
            "session_id": session_id,
            "word_id": words[1]["id"],
            "user_spelling": words[1]["word"],
            "is_correct": True,
        },
    )
    assert again.json()["session_id"] == session_id

    history = client.get("/api/history", params={"user_id": "api-user"}).json()
    assert len(history["attempts"]) == 2
    assert history["attempts"][1]["audio_duration_ms"] == 2100
    assert len(history["sessions"]) == 1

    settings = client.get("/api/settings", params={"user_id": "api-user"}).json()["settings"]
    assert settings["target_difficulty"] == 5


def test_save_attempt_unknown_word(client):
    resp = client.post("/api/attempts", json={"user_id": "api-user", "word_id": 404, "is_correct": True})
    assert resp.status_code == 404


def test_save_attempt_requires_correctness(client):
    resp = client.post("/api/attempts", json={"user_id": "api-user", "word_id": 1})
    assert resp.status_code == 422


def test_speech_to_text_decodes_letters(client, monkeypatch):
    fake = FakeSpeech(transcript="Bee, eye, gee.")
    monkeypatch.setattr(app_module, "speech_service", fake)

    resp = client.post(
        "/api/speech/stt",
        files={"file": ("clip.webm", b"\x1aE\xdf\xa3audio", "audio/webm")},
        data={"target_word": "big"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["spelled_word"] == "big"
    assert body["check"]["is_correct"] is True
    assert fake.calls[0]["content_type"] == "audio/webm"


def test_speech_to_text_could_not_understand(client, monkeypatch):
    monkeypatch.setattr(app_module, "speech_service", FakeSpeech(transcript="what was the word"))

    resp = client.post("/api/speech/stt", files={"file": ("clip.webm", b"audio", "audio/webm")})

    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "could_not_understand"


def test_speech_to_text_provider_failure(client, monkeypatch):
    monkeypatch.setattr(app_module, "speech_service", FakeSpeech(error=RuntimeError("timeout")))

    resp = client.post("/api/speech/stt", files={"file": ("clip.webm", b"audio", "audio/webm")})

    assert resp.status_code == 503


def test_speech_to_text_empty_upload(client):
    resp = client.post("/api/speech/stt", files={"file": ("clip.webm", b"", "audio/webm")})
    assert resp.status_code == 400


def test_text_to_speech_returns_audio(client, monkeypatch):
    monkeypatch.setattr(app_module, "speech_service", FakeSpeech())

    resp = client.post("/api/speech/tts", json={"text": "colour", "voice": "nova", "speed": 0.9})

    assert resp.status_code == 200
    assert resp.content == b"ID3-fake-mp3"
    assert resp.headers["content-type"].startswith("audio/mpeg")
    assert resp.headers["cache-control"] == "no-store"

    assert client.post("/api/speech/tts", json={"text": "  "}).status_code == 400


def test_voices(client, monkeypatch):
    monkeypatch.setattr(app_module, "speech_service", FakeSpeech())
    assert client.get("/api/speech/voices").json()["voices"] == ["alloy", "nova"]


def test_generate_words_rejects_invalid_output(client, temp_db, monkeypatch):
    monkeypatch.setattr(app_module, "llm_service", FakeLLM({"words": [{"word": "colour"}]}))

    resp = client.post("/api/words/generate", json={"user_id": "api-user"})

    assert resp.status_code == 502
    assert temp_db.count_words() == 0


def test_generate_words_stores_batch(client, temp_db, monkeypatch):
    payload = {
        "words": [
            {"word": f"word{chr(97 + n)}", "difficulty": 1 + n % 10, "contextSentence": "A sentence."}
            for n in range(10)
        ]
    }
    monkeypatch.setattr(app_module, "llm_service", FakeLLM(payload))

    resp = client.post("/api/words/generate", json={"user_id": "api-user", "prompt": "ten words"})

    assert resp.status_code == 200
    assert len(resp.json()["words"]) == 10
    assert resp.json()["session_prompt"] == "ten words"
    assert temp_db.count_words() == 10


def test_import_words_csv(client, temp_db):
    csv_bytes = b"word,difficulty_0_100\ncolour,45\ntheatre,52\n"

    resp = client.post("/api/words/import", files={"file": ("words.csv", csv_bytes, "text/csv")})

    assert resp.status_code == 200
    assert resp.json()["imported"] == 2
    assert temp_db.get_word_by_text("theatre")["normalized_difficulty"] == 5

    bad = client.post("/api/words/import", files={"file": ("words.csv", b"term\nx\n", "text/csv")})
    assert bad.status_code == 400


def test_blank_user_id_is_rejected(client):
    for path in ("/api/words/select", "/api/settings", "/api/history"):
        resp = client.get(path, params={"user_id": "   "})
        assert resp.status_code == 400, path


def test_import_words_skips_non_finite_difficulty(client, temp_db):
    csv_bytes = b"word,difficulty_0_100\ncat,inf\ndog,40\n"

    resp = client.post("/api/words/import", files={"file": ("words.csv", csv_bytes, "text/csv")})

    assert resp.status_code == 200
    assert resp.json()["imported"] == 1
    assert resp.json()["skipped"] == 1
    assert temp_db.get_word_by_text("cat") is None
