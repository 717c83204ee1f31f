"""
galley/features/documents/service.py

Document analysis with persistence.

Each analyzed document is stored in parsed_documents. A confident analysis
(confidence > 0.7) also becomes a dynamic form, metered as forms_created;
when that quota is exhausted the document is still stored and the form is
skipped.
"""

import uuid
from typing import Optional

from sqlalchemy import insert

from galley.core.database import dynamic_forms, get_db_session, parsed_documents
from galley.core.logging import log_event
from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.features.entitlements.service import consume
from galley.models.forms import DocumentAnalysis, DocumentParseRequest
from galley.models.usage import Feature

AUTO_FORM_CONFIDENCE = 0.7

# Checked in order; first match wins.
_CATEGORY_RULES = (
    ("recipe", 0.8, ("recipe",), ("ingredients", "cooking")),
    ("checklist", 0.8, ("checklist",), ("checklist", "□", "☐")),
    ("inventory", 0.7, ("inventory",), ("inventory", "stock")),
    ("menu", 0.7, ("menu",), ("price", "$")),
    ("training", 0.7, ("training",), ("training", "procedure")),
)

_DEFAULT_FIELDS = [
    {"name": "title", "type": "text", "label": "Title", "required": True},
    {"name": "description", "type": "textarea", "label": "Description", "required": False},
]


def build_document_prompt(req: DocumentParseRequest) -> str:
    return f"""Analyze this restaurant document and extract structured information.
Determine the document category and extract relevant data.

Document Name: {req.file_name}
Document Content: {req.document_content}

Categories to consider:
- checklist: Daily/weekly operational checklists
- recipe: Recipe cards, cooking instructions
- inventory: Inventory lists, stock counts
- training: Training materials, procedures
- menu: Menu items, pricing
- policy: Policies, procedures, guidelines
- supplier: Vendor information, orders
- schedule: Staff schedules, shifts

Respond with a JSON object:
{{
  "category": "detected_category",
  "confidence": 0.0,
  "extractedData": {{}},
  "suggestedFields": [],
  "formSchema": {{
    "title": "Form Title",
    "fields": [
      {{"name": "field_name", "type": "text|number|select|checkbox|textarea", "label": "Field Label", "required": true, "options": []}}
    ]
  }}
}}

Focus on actionable, structured information that can drive forms and workflows."""


def detect_category(content: str, file_name: str):
    """Keyword category guess used when the model is unavailable."""
    lower_content = content.lower()
    lower_name = (file_name or "").lower()
    for category, confidence, name_words, content_words in _CATEGORY_RULES:
        if any(w in lower_name for w in name_words) or any(w in lower_content for w in content_words):
            return category, confidence
    return "general", 0.6


def fallback_analysis(req: DocumentParseRequest) -> dict:
    category, confidence = detect_category(req.document_content, req.file_name)
    return {
        "category": category,
        "confidence": confidence,
        "extractedData": {
            "rawContent": req.document_content,
            "detectedCategory": category,
            "fileName": req.file_name,
        },
        "suggestedFields": [dict(f) for f in _DEFAULT_FIELDS],
        "formSchema": {"title": f"{category.capitalize()} Form", "fields": [dict(f) for f in _DEFAULT_FIELDS]},
    }


DOCUMENT_TASK = AITask(
    name="document.parse",
    build_prompt=build_document_prompt,
    schema=DocumentAnalysis,
    fallback=fallback_analysis,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.95, max_output_tokens=2048),
)


def _store_document(req: DocumentParseRequest, analysis: dict) -> str:
    document_id = str(uuid.uuid4())
    with get_db_session() as session:
        session.execute(
            insert(parsed_documents).values(
                id=document_id,
                organization_id=req.organization_id,
                user_id=req.user_id,
                file_name=req.file_name,
                category=analysis["category"],
                confidence=analysis["confidence"],
                extracted_data=analysis["extractedData"],
                suggested_fields=analysis["suggestedFields"],
                raw_content=req.document_content,
            )
        )
    return document_id


def _create_form(req: DocumentParseRequest, analysis: dict, document_id: str) -> str:
    form_id = str(uuid.uuid4())
    with get_db_session() as session:
        session.execute(
            insert(dynamic_forms).values(
                id=form_id,
                organization_id=req.organization_id,
                created_by=req.user_id,
                title=f"Auto-generated form from {req.file_name}",
                description=analysis["formSchema"].get("title"),
                category=analysis["category"],
                form_schema=analysis["formSchema"],
                source_document_id=document_id,
            )
        )
    return form_id


async def parse_document(
    req: DocumentParseRequest,
    client,
    *,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> dict:
    """Analyze, store, and (when confident and within quota) create a form.

    The document_uploads unit is taken by the caller together with the
    ai_requests unit, before this runs.
    """
    meter_user = user_id or req.user_id

    outcome = await run_task(DOCUMENT_TASK, req, client, user_id=meter_user)
    analysis = outcome.data
    if not analysis.get("formSchema"):
        analysis["formSchema"] = {"title": f"Form for {req.file_name}", "fields": []}

    document_id = _store_document(req, analysis)

    form_id = None
    if analysis["confidence"] > AUTO_FORM_CONFIDENCE:
        decision = consume(meter_user, Feature.FORMS_CREATED)
        if decision.allowed:
            form_id = _create_form(req, analysis, document_id)
        else:
            log_event(
                "info",
                "document.form_skipped",
                request_id=request_id,
                user_id=meter_user,
                event_type="document.form_skipped",
                extra={"document_id": document_id, "reason": "quota_exceeded"},
            )

    return outcome.envelope(analysis=analysis, parsedDocumentId=document_id, formId=form_id)
