import base64

from sqlalchemy import select

from galley.core.database import dynamic_forms, get_db_session, parsed_documents
from galley.features.documents.service import detect_category
from galley.features.entitlements.service import consume
from galley.features.forms.service import decode_file_content
from galley.features.usage.service import get_usage
from galley.models.forms import FormGenerateRequest
from galley.models.usage import Feature
from galley.tests.mocks import prompt_text

DOCUMENT = {
    "documentContent": "Opening checklist\n☐ Check walk-in temperature\n☐ Count the till",
    "fileName": "opening.txt",
    "organizationId": "org_1",
    "userId": "user_1",
}

CONFIDENT = {
    "category": "Checklist",
    "confidence": 0.92,
    "extractedData": {"tasks": 2},
    "suggestedFields": [{"name": "walk_in_temp", "type": "number", "label": "Walk-in temp"}],
    "formSchema": {"title": "Opening Checklist", "fields": [{"name": "walk_in_temp", "type": "number"}]},
}


def _forms():
    with get_db_session() as session:
        return session.execute(select(dynamic_forms)).all()


class TestParseDocument:
    def test_confident_analysis_creates_form(self, client, user_headers, gemini):
        gemini.queue(CONFIDENT)

        resp = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=DOCUMENT)
        assert resp.status_code == 200
        body = resp.json()
        assert body["analysis"]["category"] == "checklist"
        assert body["analysis"]["confidence"] == 0.92
        assert body["formId"]

        with get_db_session() as session:
            doc = session.execute(
                select(parsed_documents).where(parsed_documents.c.id == body["parsedDocumentId"])
            ).one()
        assert doc.category == "checklist"
        assert doc.organization_id == "org_1"

        forms = _forms()
        assert len(forms) == 1
        assert forms[0].source_document_id == body["parsedDocumentId"]
        assert forms[0].title == "Auto-generated form from opening.txt"

        usage = get_usage("user_1")
        assert usage["document_uploads"] == 1
        assert usage["forms_created"] == 1
        assert usage["ai_requests"] == 1

    def test_low_confidence_skips_form(self, client, user_headers, gemini):
        gemini.queue({**CONFIDENT, "confidence": 0.4, "formSchema": None})

        body = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=DOCUMENT).json()
        assert body["formId"] is None
        assert body["analysis"]["formSchema"] == {"title": "Form for opening.txt", "fields": []}
        assert _forms() == []

    def test_forms_quota_exhausted_still_stores_document(self, client, user_headers, gemini):
        for _ in range(3):
            consume("user_1", Feature.FORMS_CREATED)
        gemini.queue(CONFIDENT)

        resp = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=DOCUMENT)
        assert resp.status_code == 200
        assert resp.json()["formId"] is None
        assert resp.json()["parsedDocumentId"]
        assert _forms() == []

    def test_upload_quota_blocks(self, client, user_headers, gemini):
        consume("user_1", Feature.DOCUMENT_UPLOADS, 10)
        gemini.queue(CONFIDENT)

        resp = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=DOCUMENT)
        assert resp.status_code == 403
        assert resp.json()["error"]["feature"] == "document_uploads"
        assert gemini.calls == []

    def test_refused_upload_costs_no_ai_request(self, client, user_headers, gemini):
        consume("user_1", Feature.DOCUMENT_UPLOADS, 10)
        before = get_usage("user_1")["ai_requests"]

        resp = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=DOCUMENT)
        assert resp.status_code == 403
        assert get_usage("user_1")["ai_requests"] == before

    def test_fallback_uses_keyword_category(self, client, user_headers, gemini):
        gemini.fail_with(500)
        payload = {**DOCUMENT, "documentContent": "Ingredients: 2 cups flour\nCooking: bake 20 minutes", "fileName": "bread.txt"}

        body = client.post("/functions/v1/parse-document-ai", headers=user_headers, json=payload).json()
        assert body["degraded"] is True
        assert body["analysis"]["category"] == "recipe"
        assert body["analysis"]["confidence"] == 0.8
        assert body["formId"]

    def test_missing_organization_is_400(self, client, user_headers, gemini):
        payload = {k: v for k, v in DOCUMENT.items() if k != "organizationId"}
        assert client.post("/functions/v1/parse-document-ai", headers=user_headers, json=payload).status_code == 400


def test_detect_category():
    assert detect_category("Weekly stock count", "counts.txt") == ("inventory", 0.7)
    assert detect_category("Burger $12", "specials.txt") == ("menu", 0.7)
    assert detect_category("Hello", "recipe_card.pdf") == ("recipe", 0.8)
    assert detect_category("Hello", "notes.txt") == ("general", 0.6)


class TestFormGenerator:
    def _encoded(self, text):
        return base64.b64encode(text.encode()).decode()

    def test_csv_content_reaches_prompt(self, client, user_headers, gemini):
        gemini.queue(
            {
                "title": "Supplier Order",
                "fields": [
                    {"type": "text", "label": "Supplier", "required": True},
                    {"id": "qty", "type": "slider", "label": ""},
                ],
            }
        )
        resp = client.post(
            "/functions/v1/ai-form-generator",
            headers=user_headers,
            json={"fileName": "orders.csv", "fileContent": self._encoded("supplier,item,qty"), "organizationId": "org_1"},
        )
        body = resp.json()
        assert resp.status_code == 200
        assert "supplier,item,qty" in prompt_text(gemini.calls[0])

        fields = body["form"]["fields"]
        assert fields[0]["id"] == "field_1"
        assert fields[1]["type"] == "text"
        assert fields[1]["label"] == "Field 2"
        assert body["metadata"] == {"sourceFile": "orders.csv", "fieldsCount": 2, "organizationId": "org_1"}

    def test_fallback_form(self, client, user_headers, gemini):
        gemini.fail_with(500)
        body = client.post(
            "/functions/v1/ai-form-generator",
            headers=user_headers,
            json={"fileName": "survey.pdf", "fileContent": self._encoded("%PDF")},
        ).json()
        assert body["degraded"] is True
        assert [f["id"] for f in body["form"]["fields"]] == ["name", "email", "feedback"]

    def test_decode_non_text_and_invalid(self):
        pdf = FormGenerateRequest(file_name="menu.pdf", file_content=self._encoded("%PDF"), file_type="application/pdf")
        assert decode_file_content(pdf).startswith("Document content from menu.pdf")

        broken = FormGenerateRequest(file_name="x.txt", file_content="***not base64***")
        assert decode_file_content(broken) == "Content extracted from x.txt"
