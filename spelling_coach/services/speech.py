from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

VOICES = ["alloy", "verse", "atticus", "aria", "shimmer", "nova", "onyx", "echo", "fable"]
DEFAULT_VOICE = "alloy"
MIN_SPEED = 0.25
MAX_SPEED = 4.0
SPELLING_PROMPT = 'The user is spelling a word phonetically using letter names like "ay", "bee", "see", etc.'


@dataclass
class SynthesizedSpeech:
    content: bytes
    content_type: str = "audio/mpeg"


class SpeechService:
    def __init__(self) -> None:
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.openai_base = os.getenv("SPELLING_COACH_OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.stt_model = os.getenv("SPELLING_COACH_STT_MODEL", "gpt-4o-mini-transcribe")
        self.tts_model = os.getenv("SPELLING_COACH_TTS_MODEL", "gpt-4o-mini-tts")
        self.timeout = float(os.getenv("SPELLING_COACH_PROVIDER_TIMEOUT", "60"))

    def list_voices(self) -> list[str]:
        return list(VOICES)

    def transcribe(
        self,
        audio: bytes,
        *,
        filename: str = "audio.webm",
        content_type: str = "audio/webm",
        language: str = "en",
        prompt: str | None = SPELLING_PROMPT,
    ) -> str:
        if not audio:
            raise ValueError("audio file is empty")
        if not self.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not configured for STT")

        url = self.openai_base.rstrip("/") + "/audio/transcriptions"
        headers = {"Authorization": f"Bearer {self.openai_api_key}"}
        files = {"file": (filename, audio, content_type or "audio/webm")}
        data = {"model": self.stt_model, "language": language}
        if prompt:
            data["prompt"] = prompt
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(url, headers=headers, data=data, files=files)
            resp.raise_for_status()
            payload = resp.json()
        return str(payload.get("text") or "").strip()

    def synthesize(self, *, text: str, voice: str | None = None, speed: float = 1.0) -> SynthesizedSpeech:
        if not text.strip():
            raise ValueError("text is empty")
        if not self.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not configured for TTS")

        selected = resolve_voice(voice)
        url = self.openai_base.rstrip("/") + "/audio/speech"
        headers = {
            "Authorization": f"Bearer {self.openai_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.tts_model,
            "voice": selected,
            "input": text,
            "speed": clamp_speed(speed),
            "response_format": "mp3",
        }
        logger.info("TTS request voice=%s speed=%s text_length=%d", selected, payload["speed"], len(text))
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            return SynthesizedSpeech(
                content=resp.content,
                content_type=resp.headers.get("content-type", "audio/mpeg"),
            )


def resolve_voice(voice: str | None) -> str:
    name = str(voice or "").strip().lower()
    return name if name in VOICES else DEFAULT_VOICE


def clamp_speed(speed: object) -> float:
    try:
        value = float(speed)
    except (TypeError, ValueError):
        return 1.0
    return max(MIN_SPEED, min(value, MAX_SPEED))
