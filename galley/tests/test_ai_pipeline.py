"""Model clients, output coercion and the task runner."""

import json

import httpx
import pytest
from pydantic import BaseModel, field_validator

from galley.core.errors import MissingConfigurationError, ModelOutputError, UpstreamModelError
from galley.core.metrics import ai_task_total
from galley.features.ai.client import GeminiClient, GenerationConfig, OpenAIClient, image_part
from galley.features.ai.orchestrator import AITask, run_task
from galley.features.ai.output import extract_json, strip_code_fences
from galley.tests.mocks import FakeModelClient


class TestOutput:
    def test_strip_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_plain_fence(self):
        assert strip_code_fences("```\n[1, 2]\n```  ") == "[1, 2]"

    def test_extract_object_from_prose(self):
        text = 'Here you go: {"name": "Soup", "tags": ["hot"]} Enjoy!'
        assert extract_json(text) == {"name": "Soup", "tags": ["hot"]}

    def test_extract_array(self):
        assert extract_json("Result:\n[1, 2, 3]") == [1, 2, 3]

    def test_not_json(self):
        with pytest.raises(ModelOutputError):
            extract_json("no structured answer here")


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_generate_posts_parts_and_config(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "hello"}]}}]})

        client = GeminiClient("k-123", base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
        config = GenerationConfig(temperature=0.3, top_k=20, top_p=0.8, max_output_tokens=512, response_mime_type="application/json")

        text = await client.generate("Say hello", config=config, model="gemini-1.5-pro")

        assert text == "hello"
        assert seen["url"].startswith("https://gemini.test/v1beta/models/gemini-1.5-pro:generateContent")
        assert "key=k-123" in seen["url"]
        assert seen["body"]["contents"][0]["parts"] == [{"text": "Say hello"}]
        assert seen["body"]["generationConfig"] == {
            "temperature": 0.3,
            "topK": 20,
            "topP": 0.8,
            "maxOutputTokens": 512,
            "responseMimeType": "application/json",
        }

    @pytest.mark.asyncio
    async def test_non_2xx_is_upstream_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(429, text="quota"))
        client = GeminiClient("k", transport=transport)
        with pytest.raises(UpstreamModelError):
            await client.generate("x")

    @pytest.mark.asyncio
    async def test_missing_candidates_is_upstream_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        client = GeminiClient("k", transport=transport)
        with pytest.raises(UpstreamModelError):
            await client.generate("x")

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = GeminiClient("", transport=httpx.MockTransport(handler))
        with pytest.raises(MissingConfigurationError):
            await client.generate("x")

    def test_image_part_from_data_url(self):
        part = image_part("data:image/png;base64,AAAA")
        assert part == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_generate_maps_parts_to_messages(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"choices": [{"message": {"content": "lesson plan"}}]})

        client = OpenAIClient("sk-test", transport=httpx.MockTransport(handler))
        text = await client.generate(
            [{"text": "You are a trainer."}, {"text": "Write lessons."}],
            config=GenerationConfig(temperature=0.7, max_output_tokens=4000),
            model="gpt-4o",
        )

        assert text == "lesson plan"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "You are a trainer."},
            {"role": "user", "content": "Write lessons."},
        ]
        assert seen["body"]["max_tokens"] == 4000

    @pytest.mark.asyncio
    async def test_transcribe_multipart(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/audio/transcriptions")
            assert b"whisper-1" in request.content
            return httpx.Response(200, json={"text": "two cases of tomatoes"})

        client = OpenAIClient("sk-test", transport=httpx.MockTransport(handler))
        result = await client.transcribe(b"\x00\x01", mime_type="audio/webm")
        assert result["text"] == "two cases of tomatoes"


class Dish(BaseModel):
    name: str
    servings: int = 2


class Plate(BaseModel):
    items: list

    @field_validator("items", mode="before")
    @classmethod
    def normalize_items(cls, value):
        return [str(item) for item in value]


class TestRunTask:
    def _task(self, **kwargs):
        return AITask(name="test.dish", build_prompt=lambda req: f"Dish for {req}", schema=Dish, **kwargs)

    @pytest.mark.asyncio
    async def test_success_validates_schema(self):
        client = FakeModelClient(['```json\n{"name": "Stew"}\n```'])
        outcome = await run_task(self._task(), "dinner", client)
        assert outcome.data == {"name": "Stew", "servings": 2}
        assert outcome.degraded is False
        assert outcome.raw_text.startswith("```json")
        assert ai_task_total.value({"task": "test.dish", "outcome": "ok"}) == 1

    @pytest.mark.asyncio
    async def test_schema_mismatch_uses_fallback(self):
        client = FakeModelClient([{"title": "no name"}])
        task = self._task(fallback=lambda req: {"name": "House special"})
        outcome = await run_task(task, "dinner", client)
        assert outcome.degraded is True
        assert outcome.fallback_reason == "model_output_error"
        assert outcome.data == {"name": "House special", "servings": 2}

    @pytest.mark.asyncio
    async def test_validator_type_error_is_model_output_error(self):
        task = AITask(
            name="test.plate",
            build_prompt=lambda req: "plate",
            schema=Plate,
            fallback=lambda req: {"items": ["bread"]},
        )
        outcome = await run_task(task, None, FakeModelClient([{"items": 5}]))
        assert outcome.degraded is True
        assert outcome.fallback_reason == "model_output_error"
        assert outcome.data == {"items": ["bread"]}

    @pytest.mark.asyncio
    async def test_without_fallback_error_propagates(self):
        client = FakeModelClient(error=UpstreamModelError("down"))
        with pytest.raises(UpstreamModelError):
            await run_task(self._task(), "dinner", client)
        assert ai_task_total.value({"task": "test.dish", "outcome": "upstream_error"}) == 1

    @pytest.mark.asyncio
    async def test_strict_overrides_fallback(self):
        client = FakeModelClient(["not json"])
        task = self._task(fallback=lambda req: {"name": "House special"})
        with pytest.raises(ModelOutputError):
            await run_task(task, "dinner", client, strict=True)

    @pytest.mark.asyncio
    async def test_free_text_task(self):
        task = AITask(name="test.text", build_prompt=lambda req: "hi")
        outcome = await run_task(task, None, FakeModelClient(["  Plain answer  "]))
        assert outcome.data == "Plain answer"

    @pytest.mark.asyncio
    async def test_envelope_marks_degraded(self):
        client = FakeModelClient(error=UpstreamModelError("down"))
        task = self._task(fallback=lambda req: {"name": "House special"})
        outcome = await run_task(task, "dinner", client)
        body = outcome.envelope(dish=outcome.data)
        assert body == {
            "success": True,
            "dish": {"name": "House special", "servings": 2},
            "degraded": True,
            "fallback_reason": "upstream_error",
        }
