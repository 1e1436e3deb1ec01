from __future__ import annotations

from pydantic import BaseModel, Field

from spelling_coach.config import DEFAULT_USER_ID


class CheckSpellingRequest(BaseModel):
    word: str
    user_spelling: str | None = None
    transcript: str | None = None
    feedback_mode: str | None = None


class SaveAttemptRequest(BaseModel):
    user_id: str = Field(default=DEFAULT_USER_ID)
    session_id: int | None = None
    word_id: int
    user_spelling: str = Field(default="")
    is_correct: bool
    feedback: str = Field(default="")
    audio_duration_ms: int | None = Field(default=None, ge=0)


class GenerateWordsRequest(BaseModel):
    user_id: str = Field(default=DEFAULT_USER_ID)
    prompt: str | None = None
    use_history: bool = False


class TTSRequest(BaseModel):
    text: str
    voice: str = Field(default="alloy")
    speed: float = Field(default=1.0)
