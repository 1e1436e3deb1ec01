from __future__ import annotations

import json
import logging
import os
import re

import httpx

logger = logging.getLogger(__name__)

FEEDBACK_MAX_TOKENS = 80


class LLMService:
    def __init__(self, *, model_override: str | None = None) -> None:
        self.provider = os.getenv("SPELLING_COACH_LLM_PROVIDER", "openai").strip().lower()
        self.base_url = os.getenv("SPELLING_COACH_LLM_BASE_URL")
        self.model = os.getenv("SPELLING_COACH_LLM_MODEL")
        self.timeout = float(os.getenv("SPELLING_COACH_PROVIDER_TIMEOUT", "60"))

        if self.provider == "deepseek":
            self.api_key = os.getenv("DEEPSEEK_API_KEY")
            self.base_url = self.base_url or "https://api.deepseek.com/v1"
            self.model = self.model or "deepseek-chat"
        else:
            self.api_key = os.getenv("OPENAI_API_KEY")
            self.base_url = self.base_url or "https://api.openai.com/v1"
            self.model = self.model or "gpt-5-mini"

        if model_override:
            self.model = str(model_override).strip()

    def available(self) -> bool:
        return bool(self.api_key)

    def generate_word_payload(self, *, system_prompt: str, user_prompt: str) -> dict:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
        }
        data = self._chat_completion(payload)
        content = _extract_content(data)
        if not content:
            raise RuntimeError("no response from language model")
        parsed = _parse_json_object(content)
        if parsed is None:
            raise RuntimeError("language model returned malformed JSON")
        return parsed

    def spelling_feedback(self, *, word: str, user_spelling: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You are a helpful spelling tutor. Provide brief, encouraging feedback "
                        "about a spelling mistake. Keep it under 2 sentences."
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        f'The correct spelling is "{word}". The student spelled it as "{user_spelling}". '
                        "Give brief, specific feedback and encouragement."
                    ),
                },
            ],
            "max_completion_tokens": FEEDBACK_MAX_TOKENS,
        }
        return _extract_content(self._chat_completion(payload))

    def _chat_completion(self, payload: dict) -> dict:
        if not self.api_key:
            raise RuntimeError("missing llm api key")

        url = self.base_url.rstrip("/") + "/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            return resp.json()


def _extract_content(payload: dict) -> str:
    choices = payload.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") or ""
    if isinstance(content, list):
        texts: list[str] = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                texts.append(str(item.get("text", "")))
        return "\n".join(texts).strip()
    return str(content).strip()


def _parse_json_object(text: str) -> dict | None:
    cleaned = text.strip()
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", cleaned, re.DOTALL)
    if fenced:
        cleaned = fenced.group(1)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("could not parse model output as JSON (%d chars)", len(cleaned))
        return None
    return parsed if isinstance(parsed, dict) else None
