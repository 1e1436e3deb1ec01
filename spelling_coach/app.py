from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from spelling_coach.api.schemas import (
    CheckSpellingRequest,
    GenerateWordsRequest,
    SaveAttemptRequest,
    TTSRequest,
)
from spelling_coach.checking.checker import check_spelling, feedback_strategy
from spelling_coach.config import (
    DEFAULT_USER_ID,
    LOG_FORMAT,
    LOG_LEVEL,
    difficulty_policy_from_env,
    ensure_dirs,
    selection_policy_from_env,
)
from spelling_coach.learning.generation import WordGenerationError, generate_words
from spelling_coach.learning.progress import get_history, save_attempt
from spelling_coach.phonetics.decoder import interpret_transcript
from spelling_coach.pipeline.importer import import_word_csv
from spelling_coach.scheduler.selector import select_word_batch
from spelling_coach.services.llm import LLMService
from spelling_coach.services.speech import SpeechService
from spelling_coach.storage.db import Database

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

COULD_NOT_UNDERSTAND = {
    "error": "could_not_understand",
    "message": "We didn't catch that clearly. Please record again.",
}

db = Database()
llm_service = LLMService()
speech_service = SpeechService()
selection_policy = selection_policy_from_env()
difficulty_policy = difficulty_policy_from_env()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ensure_dirs()
    db.initialize()
    logger.info("spelling coach ready (db=%s)", db.db_path)
    yield


app = FastAPI(title="Spelling Coach", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/check-spelling")
def api_check_spelling(req: CheckSpellingRequest) -> dict:
    word = req.word.strip()
    candidate = (req.user_spelling or "").strip()
    if not word or not (candidate or (req.transcript or "").strip()):
        raise HTTPException(status_code=400, detail="word and user spelling are required")
    if not candidate:
        candidate = interpret_transcript(req.transcript or "")
        if not candidate:
            raise HTTPException(status_code=422, detail=COULD_NOT_UNDERSTAND)

    try:
        strategy = feedback_strategy(req.feedback_mode, llm_service)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        result = check_spelling(word, candidate, feedback=strategy)
    except (RuntimeError, httpx.HTTPError) as exc:
        logger.warning("model feedback failed: %s", exc)
        raise HTTPException(status_code=503, detail=f"feedback unavailable: {exc}") from exc
    return {"ok": True, **result.as_dict()}


def _require_user_id(user_id: str) -> str:
    cleaned = user_id.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="user_id is required")
    return cleaned


@app.get("/api/words/select")
def api_select_words(user_id: str = Query(default=DEFAULT_USER_ID, min_length=1)) -> dict:
    user_id = _require_user_id(user_id)
    words = select_word_batch(db, user_id, policy=selection_policy)
    return {
        "ok": True,
        "words": words,
        "target_difficulty": db.get_target_difficulty(user_id),
    }


@app.get("/api/settings")
def api_settings(user_id: str = Query(default=DEFAULT_USER_ID, min_length=1)) -> dict:
    user_id = _require_user_id(user_id)
    return {"ok": True, "settings": db.get_settings(user_id)}


@app.post("/api/attempts")
def api_save_attempt(req: SaveAttemptRequest) -> dict:
    try:
        saved = save_attempt(
            db,
            user_id=req.user_id,
            word_id=req.word_id,
            user_spelling=req.user_spelling,
            is_correct=req.is_correct,
            feedback=req.feedback,
            session_id=req.session_id,
            audio_duration_ms=req.audio_duration_ms,
            policy=difficulty_policy,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, **saved.as_dict()}


@app.get("/api/history")
def api_history(user_id: str = Query(default=DEFAULT_USER_ID, min_length=1)) -> dict:
    user_id = _require_user_id(user_id)
    return {"ok": True, **get_history(db, user_id)}


@app.post("/api/words/generate")
def api_generate_words(req: GenerateWordsRequest) -> dict:
    try:
        batch = generate_words(
            db,
            llm_service,
            user_id=req.user_id,
            prompt=req.prompt,
            use_history=req.use_history,
        )
    except WordGenerationError as exc:
        logger.warning("word generation rejected: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (RuntimeError, httpx.HTTPError) as exc:
        logger.warning("word generation failed: %s", exc)
        raise HTTPException(status_code=503, detail=f"word generation unavailable: {exc}") from exc
    return {
        "ok": True,
        "words": batch.words,
        "session_prompt": batch.session_prompt,
        "stored": batch.stored,
    }


@app.post("/api/words/import")
async def api_import_words(file: UploadFile = File(...)) -> dict:
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="empty csv")
    try:
        summary = import_word_csv(db, payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "imported": summary.imported, "skipped": summary.skipped, "errors": summary.errors}


@app.get("/api/speech/voices")
def speech_voices() -> dict:
    return {"ok": True, "voices": speech_service.list_voices()}


@app.post("/api/speech/stt")
async def speech_stt(
    file: UploadFile = File(...),
    target_word: str | None = Form(default=None),
) -> dict:
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="audio file is empty or corrupted")

    try:
        transcript = speech_service.transcribe(
            payload,
            filename=file.filename or "record.webm",
            content_type=file.content_type or "audio/webm",
        )
    except (RuntimeError, httpx.HTTPError) as exc:
        logger.warning("transcription failed: %s", exc)
        raise HTTPException(status_code=503, detail=f"STT unavailable: {exc}") from exc

    spelled = interpret_transcript(transcript)
    if not spelled:
        raise HTTPException(status_code=422, detail=COULD_NOT_UNDERSTAND)

    response = {"ok": True, "text": transcript, "spelled_word": spelled}
    if target_word and target_word.strip():
        result = check_spelling(target_word, spelled)
        response["check"] = result.as_dict()
    return response


@app.post("/api/speech/tts")
def speech_tts(req: TTSRequest) -> Response:
    if not req.text.strip():
        raise HTTPException(status_code=400, detail="text is required")
    try:
        speech = speech_service.synthesize(text=req.text, voice=req.voice, speed=req.speed)
    except (RuntimeError, httpx.HTTPError) as exc:
        logger.warning("speech synthesis failed: %s", exc)
        raise HTTPException(status_code=503, detail=f"TTS unavailable: {exc}") from exc

    return Response(
        content=speech.content,
        media_type=speech.content_type,
        headers={"Cache-Control": "no-store"},
    )
