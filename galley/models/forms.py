"""
galley/models/forms.py

Form generation and document analysis shapes.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from galley.models.common import CamelModel, coerce_number, coerce_str_list, require_text

FIELD_TYPES = ("text", "email", "number", "select", "checkbox", "textarea", "date", "radio", "tel", "time")

DOCUMENT_CATEGORIES = (
    "checklist", "recipe", "inventory", "training", "menu", "policy", "supplier", "schedule", "general",
)


class FormGenerateRequest(CamelModel):
    file_name: str
    file_content: str  # base64
    file_type: Optional[str] = None
    organization_id: Optional[str] = None

    @field_validator("file_name", "file_content", mode="before")
    @classmethod
    def normalize_required(cls, value, info):
        return require_text(value, info.field_name)


class FormField(CamelModel):
    id: str = ""
    type: str = "text"
    label: str = ""
    placeholder: str = ""
    required: bool = False
    options: Optional[List[str]] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return value if value in FIELD_TYPES else "text"

    @field_validator("placeholder", mode="before")
    @classmethod
    def normalize_placeholder(cls, value):
        return "" if value is None else str(value)

    @field_validator("required", mode="before")
    @classmethod
    def normalize_required(cls, value):
        return False if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def normalize_options(cls, value):
        return coerce_str_list(value) or None


class GeneratedForm(CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    fields: List[FormField] = Field(min_length=1)

    @model_validator(mode="after")
    def number_fields(self):
        for index, form_field in enumerate(self.fields, start=1):
            if not form_field.id:
                form_field.id = f"field_{index}"
            if not form_field.label:
                form_field.label = f"Field {index}"
        return self


class DocumentParseRequest(CamelModel):
    document_content: str
    file_name: str = "document"
    organization_id: str
    user_id: str

    @field_validator("document_content", "organization_id", "user_id", mode="before")
    @classmethod
    def normalize_required(cls, value, info):
        return require_text(value, info.field_name)


class SuggestedField(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    type: str = "text"
    label: str = ""
    required: bool = False
    options: Optional[List[str]] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return value if value in FIELD_TYPES else "text"


class DocumentAnalysis(CamelModel):
    category: str = "general"
    confidence: float = 0.5
    extracted_data: Dict[str, Any] = {}
    suggested_fields: List[SuggestedField] = []
    form_schema: Optional[Dict[str, Any]] = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value):
        if isinstance(value, str) and value.strip().lower() in DOCUMENT_CATEGORIES:
            return value.strip().lower()
        return "general"

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, value):
        number = coerce_number(value, None)
        if not number:
            number = 0.5
        return min(1.0, max(0.0, float(number)))

    @field_validator("extracted_data", mode="before")
    @classmethod
    def normalize_extracted(cls, value):
        return value if isinstance(value, dict) else {}
