"""Turn an uploaded file into an interactive form definition."""

import base64
import binascii

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.forms import FormGenerateRequest, GeneratedForm

PROMPT_CONTENT_LIMIT = 3000

_TEXT_EXTENSIONS = (".csv", ".json", ".txt")


def decode_file_content(req: FormGenerateRequest) -> str:
    """Plain-text uploads are decoded; other formats only describe themselves."""
    try:
        raw = base64.b64decode(req.file_content, validate=True)
    except (binascii.Error, ValueError):
        return f"Content extracted from {req.file_name}"

    if req.file_name.lower().endswith(_TEXT_EXTENSIONS):
        return raw.decode("utf-8", errors="replace")
    return (
        f"Document content from {req.file_name}. This is a {req.file_type or 'binary'} file "
        "that contains structured data that can be converted into a form."
    )


def build_form_prompt(req: FormGenerateRequest) -> str:
    content = decode_file_content(req)[:PROMPT_CONTENT_LIMIT]
    return f"""You are an expert form creator. Analyze the following document content and create an interactive form
structure based on the data patterns, headers and information you find.

Document: {req.file_name}
Content: {content}

Return a JSON object with this exact structure:

{{
  "title": "Generated Form Title",
  "description": "Brief description of what this form captures",
  "fields": [
    {{
      "id": "unique_field_id",
      "type": "text|email|number|select|checkbox|textarea|date|radio",
      "label": "Field Label",
      "placeholder": "Optional placeholder text",
      "required": true,
      "options": ["option1", "option2"]
    }}
  ]
}}

Guidelines:
1. Create 5-15 relevant fields based on the document content
2. Use appropriate field types and make important fields required
3. For select/radio fields, provide 3-5 realistic options
4. If the document contains tabular data, create a field for each column
5. If it's a questionnaire or survey, convert questions to form fields

Return ONLY the JSON object, no additional text or formatting."""


def fallback_form(req: FormGenerateRequest) -> dict:
    return {
        "title": f"Form from {req.file_name}",
        "description": f"This form was generated from the uploaded document: {req.file_name}",
        "fields": [
            {"id": "name", "type": "text", "label": "Name", "placeholder": "Enter your name", "required": True},
            {"id": "email", "type": "email", "label": "Email Address", "placeholder": "Enter your email", "required": True},
            {
                "id": "feedback",
                "type": "textarea",
                "label": "Feedback or Comments",
                "placeholder": "Please provide your feedback",
                "required": False,
            },
        ],
    }


FORM_TASK = AITask(
    name="form.generate",
    build_prompt=build_form_prompt,
    schema=GeneratedForm,
    fallback=fallback_form,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.95, max_output_tokens=2048),
)


async def generate_form(req: FormGenerateRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(FORM_TASK, req, client, user_id=user_id)
    form = outcome.data
    return outcome.envelope(
        form=form,
        metadata={
            "sourceFile": req.file_name,
            "fieldsCount": len(form["fields"]),
            "organizationId": req.organization_id,
        },
    )
