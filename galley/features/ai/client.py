"""HTTP clients for the hosted model APIs.

One request per call, an explicit timeout, no retries. Every failure surfaces
as UpstreamModelError; a missing key is MissingConfigurationError and is
raised before any network traffic.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from galley.core.config import settings
from galley.core.errors import MissingConfigurationError, UpstreamModelError

logger = logging.getLogger("galley")

Part = Dict[str, Any]


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 2048
    response_mime_type: Optional[str] = None
    response_schema: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }
        if self.response_mime_type:
            payload["responseMimeType"] = self.response_mime_type
        if self.response_schema:
            payload["responseSchema"] = self.response_schema
        return payload


def text_part(text: str) -> Part:
    return {"text": text}


def image_part(data: str, mime_type: str = "image/jpeg") -> Part:
    """Inline image part. Accepts raw base64 or a data: URL."""
    if data.startswith("data:") and "," in data:
        header, data = data.split(",", 1)
        mime_type = header[5:].split(";")[0] or mime_type
    return {"inline_data": {"mime_type": mime_type, "data": data}}


class GeminiClient:
    """Client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_key
        self.base_url = (base_url or settings.GEMINI_API_BASE).rstrip("/")
        self.timeout = timeout or settings.AI_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise MissingConfigurationError("Gemini API key not configured")

    async def generate(
        self,
        parts: Union[str, List[Part]],
        *,
        config: Optional[GenerationConfig] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send one prompt and return the text of the first candidate."""
        self.ensure_configured()
        if isinstance(parts, str):
            parts = [text_part(parts)]
        model_name = model or settings.GEMINI_MODEL
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": (config or GenerationConfig()).to_payload(),
        }
        url = f"{self.base_url}/models/{model_name}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            logger.warning(f"[gemini] transport error: {exc.__class__.__name__}")
            raise UpstreamModelError(f"Gemini API unreachable: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            logger.warning(f"[gemini] {model_name} returned {response.status_code}: {response.text[:300]}")
            raise UpstreamModelError(f"Gemini API error: {response.status_code}")

        try:
            data = response.json()
            candidate_parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamModelError("Invalid response from Gemini API") from exc

        text = "".join(p.get("text", "") for p in candidate_parts if isinstance(p, dict))
        if not text.strip():
            raise UpstreamModelError("Invalid response from Gemini API")
        return text


class OpenAIClient:
    """Client for OpenAI chat completions and audio transcription."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_API_BASE).rstrip("/")
        self.timeout = timeout or settings.AI_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise MissingConfigurationError("OpenAI API key not configured")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _post(self, path: str, **kwargs) -> Dict[str, Any]:
        self.ensure_configured()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}{path}", headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"[openai] transport error on {path}: {exc.__class__.__name__}")
            raise UpstreamModelError(f"OpenAI API unreachable: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            logger.warning(f"[openai] {path} returned {response.status_code}: {response.text[:300]}")
            raise UpstreamModelError(f"OpenAI API error: {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamModelError("Invalid response from OpenAI API") from exc

    async def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        data = await self._post(
            "/chat/completions",
            json={
                "model": model or settings.OPENAI_CHAT_MODEL,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamModelError("Invalid response from OpenAI API") from exc
        if not content or not content.strip():
            raise UpstreamModelError("Invalid response from OpenAI API")
        return content

    async def generate(
        self,
        parts: Union[str, List[Part]],
        *,
        config: Optional[GenerationConfig] = None,
        model: Optional[str] = None,
    ) -> str:
        """Same call shape as GeminiClient.generate, over chat completions.

        With several text parts the first one is the system message.
        """
        if isinstance(parts, str):
            parts = [text_part(parts)]
        texts = [p["text"] for p in parts if "text" in p]
        messages = [{"role": "user", "content": "\n\n".join(texts[1:] or texts)}]
        if len(texts) > 1:
            messages.insert(0, {"role": "system", "content": texts[0]})
        config = config or GenerationConfig()
        return await self.chat(
            messages,
            model=model,
            temperature=config.temperature,
            max_tokens=config.max_output_tokens,
        )

    async def transcribe(self, audio: bytes, *, mime_type: str = "audio/webm", language: str = "en") -> Dict[str, Any]:
        extension = mime_type.split("/")[-1].split(";")[0] or "webm"
        data = await self._post(
            "/audio/transcriptions",
            data={"model": settings.OPENAI_TRANSCRIBE_MODEL, "language": language},
            files={"file": (f"audio.{extension}", audio, mime_type)},
        )
        if "text" not in data:
            raise UpstreamModelError("Invalid response from OpenAI API")
        return data


def get_gemini_client() -> GeminiClient:
    """FastAPI dependency; tests override it with a fake."""
    return GeminiClient()


def get_openai_client() -> OpenAIClient:
    return OpenAIClient()
