"""Lenient coercions for model-produced fields."""

import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DIFFICULTIES = ("Easy", "Medium", "Hard")

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def coerce_difficulty(value: Any, default: str = "Medium") -> str:
    if isinstance(value, str):
        candidate = value.strip().capitalize()
        if candidate in DIFFICULTIES:
            return candidate
    return default


def coerce_number(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Numbers pass through; "25g" or "$12.50" yield their first number."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        if match:
            number = float(match.group())
            return int(number) if number.is_integer() else number
    return default


def coerce_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return [str(value)]


def require_text(value: Any, field_name: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{field_name} is required")
    return value


def coerce_record_list(value: Any) -> List[dict]:
    """Keep the dict entries of a list; anything that is not a list becomes []."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def coerce_tone(value: Any, default: str = "neutral") -> str:
    if isinstance(value, str) and value.strip().lower() in ("positive", "neutral", "negative"):
        return value.strip().lower()
    return default
