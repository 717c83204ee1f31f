"""Conversational assistant and audio shapes."""

from typing import List, Literal, Optional

from pydantic import Field, field_validator

from galley.models.common import CamelModel, require_text

MAX_HISTORY_TURNS = 20


class ChatTurn(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class AssistantRequest(CamelModel):
    assistant_type: str = "problem-solver"
    message: str
    conversation_history: List[ChatTurn] = []

    @field_validator("message", mode="before")
    @classmethod
    def normalize_message(cls, value):
        return require_text(value, "message")

    @field_validator("conversation_history", mode="after")
    @classmethod
    def normalize_history(cls, value):
        return value[-MAX_HISTORY_TURNS:]


class AppModifierRequest(CamelModel):
    request: str
    context: Optional[str] = None

    @field_validator("request", mode="before")
    @classmethod
    def normalize_request(cls, value):
        return require_text(value, "request")


class TranscriptionRequest(CamelModel):
    audio: str = Field(description="base64 encoded audio")
    mime_type: str = "audio/webm"
    language: str = "en"

    @field_validator("audio", mode="before")
    @classmethod
    def normalize_audio(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("No audio data provided")
        return value
