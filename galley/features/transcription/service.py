"""Speech to text through the hosted transcription model."""

import base64
import binascii

from galley.core.errors import UpstreamModelError, ValidationError
from galley.core.logging import log_event
from galley.core.metrics import ai_task_total
from galley.core.tracing import start_span
from galley.models.assistant import TranscriptionRequest


def decode_audio(encoded: str) -> bytes:
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        audio = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("audio must be base64 encoded") from exc
    if not audio:
        raise ValidationError("No audio data provided")
    return audio


async def transcribe_audio(audio: bytes, client, *, mime_type: str, language: str, user_id=None) -> dict:
    """One transcription call, traced and counted like an AI task."""
    with start_span("ai.task", {"task": "voice.transcribe", "user_id": user_id}):
        try:
            result = await client.transcribe(audio, mime_type=mime_type, language=language)
        except UpstreamModelError as exc:
            code = exc.code
            ai_task_total.inc(labels={"task": "voice.transcribe", "outcome": code})
            log_event(
                "error",
                "ai.task.failed",
                user_id=user_id,
                event_type="ai.task.failed",
                error_code=code,
                extra={"task": "voice.transcribe", "audio_bytes": len(audio)},
            )
            raise
    ai_task_total.inc(labels={"task": "voice.transcribe", "outcome": "ok"})
    return result


async def transcribe(req: TranscriptionRequest, client, *, user_id=None) -> dict:
    audio = decode_audio(req.audio)
    result = await transcribe_audio(audio, client, mime_type=req.mime_type, language=req.language, user_id=user_id)
    return {
        "success": True,
        "transcription": result["text"],
        "language": result.get("language") or req.language,
        "confidence": 1.0,
    }
