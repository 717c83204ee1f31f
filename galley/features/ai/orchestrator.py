"""Shared pipeline for every AI handler.

prompt -> model call -> fence stripping -> JSON parse -> schema validation.

A task may declare a fallback. When the model call or its output fails and
strict output is off, the fallback answers instead and the outcome is
marked degraded; the failure is still logged and counted.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from galley.core.config import settings
from galley.core.errors import ModelOutputError, UpstreamModelError
from galley.core.logging import log_event
from galley.core.metrics import ai_fallback_total, ai_task_total
from galley.core.tracing import start_span
from galley.features.ai.client import GenerationConfig, Part, text_part
from galley.features.ai.output import extract_json

PromptBuilder = Callable[[Any], Union[str, List[Part]]]


@dataclass(frozen=True)
class AITask:
    name: str
    build_prompt: PromptBuilder
    schema: Optional[Type[BaseModel]] = None  # None = free text answer
    fallback: Optional[Callable[[Any], Any]] = None
    config: GenerationConfig = field(default_factory=GenerationConfig)
    model_tier: str = "flash"  # flash | pro | chat

    @property
    def model(self) -> str:
        if self.model_tier == "chat":
            return settings.OPENAI_CHAT_MODEL
        return settings.GEMINI_PRO_MODEL if self.model_tier == "pro" else settings.GEMINI_MODEL


@dataclass
class TaskOutcome:
    data: Any
    degraded: bool = False
    fallback_reason: Optional[str] = None
    raw_text: Optional[str] = None

    def envelope(self, **payload) -> Dict[str, Any]:
        """Success body: payload plus the degraded marker when a fallback answered."""
        body: Dict[str, Any] = {"success": True, **payload}
        if self.degraded:
            body["degraded"] = True
            body["fallback_reason"] = self.fallback_reason
        return body


def coerce_output(task: AITask, raw_text: str) -> Any:
    """Turn raw model text into the task's validated shape."""
    if task.schema is None:
        text = raw_text.strip()
        if not text:
            raise ModelOutputError("Model returned an empty answer")
        return text

    parsed = extract_json(raw_text)
    try:
        return task.schema.model_validate(parsed).model_dump(by_alias=True)
    except PydanticValidationError as exc:
        raise ModelOutputError(f"Model response does not match {task.schema.__name__}: {exc.error_count()} error(s)") from exc
    except (TypeError, ValueError) as exc:
        # raised from inside a normalize_* validator on an unexpected shape
        raise ModelOutputError(f"Model response does not match {task.schema.__name__}: {exc}") from exc


def _fallback_data(task: AITask, request: Any) -> Any:
    data = task.fallback(request)
    if task.schema is not None and not isinstance(data, BaseModel):
        data = task.schema.model_validate(data)
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    return data


async def run_task(
    task: AITask,
    request: Any,
    client,
    *,
    strict: Optional[bool] = None,
    user_id: Optional[str] = None,
) -> TaskOutcome:
    """Run one AI task. MissingConfigurationError always propagates."""
    strict_mode = settings.AI_STRICT_OUTPUT if strict is None else strict

    with start_span("ai.task", {"task": task.name, "model": task.model, "user_id": user_id}):
        prompt = task.build_prompt(request)
        parts = [text_part(prompt)] if isinstance(prompt, str) else prompt
        try:
            raw_text = await client.generate(parts, config=task.config, model=task.model)
            data = coerce_output(task, raw_text)
        except (UpstreamModelError, ModelOutputError) as exc:
            if task.fallback is None or strict_mode:
                ai_task_total.inc(labels={"task": task.name, "outcome": exc.code})
                log_event(
                    "error",
                    "ai.task.failed",
                    user_id=user_id,
                    event_type="ai.task.failed",
                    error_code=exc.code,
                    extra={"task": task.name, "reason": exc.message},
                )
                raise
            ai_task_total.inc(labels={"task": task.name, "outcome": "fallback"})
            ai_fallback_total.inc(labels={"task": task.name, "reason": exc.code})
            log_event(
                "warning",
                "ai.task.fallback",
                user_id=user_id,
                event_type="ai.task.fallback",
                error_code=exc.code,
                extra={"task": task.name, "reason": exc.message},
            )
            return TaskOutcome(data=_fallback_data(task, request), degraded=True, fallback_reason=exc.code)

        ai_task_total.inc(labels={"task": task.name, "outcome": "ok"})
        return TaskOutcome(data=data, raw_text=raw_text)
