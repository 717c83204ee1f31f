import base64

import pytest

from galley.core.errors import ValidationError
from galley.core.metrics import ai_task_total
from galley.features.transcription.service import decode_audio
from galley.tests.mocks import prompt_text


class TestRecipeParser:
    def test_normalizes_loose_recipes(self, client, user_headers, gemini):
        gemini.queue(
            {
                "recipes": [
                    {
                        "name": "Pancakes",
                        "ingredients": "2 eggs",
                        "instructions": ["Whisk", "", "Fry"],
                        "servings": "serves 6",
                        "difficulty": "easy",
                        "prepTime": "10 min",
                    }
                ]
            }
        )
        resp = client.post(
            "/functions/v1/ai-recipe-parser",
            headers=user_headers,
            json={"content": "Pancakes: 2 eggs...", "fileName": "brunch.csv", "fileType": "text/csv"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        recipe = body["recipes"][0]
        assert recipe["ingredients"] == ["2 eggs"]
        assert recipe["instructions"] == ["Whisk", "Fry"]
        assert recipe["servings"] == 6
        assert recipe["difficulty"] == "Easy"
        assert recipe["prepTime"] == 10
        assert '"brunch.csv" (text/csv)' in prompt_text(gemini.calls[0])

    def test_no_recipes_found_is_not_an_error(self, client, user_headers, gemini):
        gemini.queue({"recipes": []})
        body = client.post(
            "/functions/v1/ai-recipe-parser",
            headers=user_headers,
            json={"content": "Quarterly rota", "fileName": "rota.txt"},
        ).json()
        assert body["count"] == 0
        assert "degraded" not in body

    def test_fallback_picks_up_known_ingredients(self, client, user_headers, gemini):
        gemini.fail_with(500)
        body = client.post(
            "/functions/v1/ai-recipe-parser",
            headers=user_headers,
            json={"content": "Mix flour and sugar with eggs", "fileName": "cake.txt"},
        ).json()
        assert body["degraded"] is True
        recipe = body["recipes"][0]
        assert recipe["name"] == "Recipe from cake"
        assert recipe["ingredients"] == ["1 cup flour", "1 cup sugar", "1 cup eggs"]

    def test_blank_content_is_400(self, client, user_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-recipe-parser",
            headers=user_headers,
            json={"content": "  ", "fileName": "cake.txt"},
        )
        assert resp.status_code == 400
        assert gemini.calls == []


class TestRecipeEnhancer:
    def test_asks_for_structured_json(self, client, user_headers, gemini):
        gemini.queue(
            {
                "name": "Tomato Soup",
                "ingredients": [{"name": "Tomato", "amount": 6, "cost": "$1.20"}],
                "instructions": [{"step": "1", "instruction": "Roast the tomatoes"}],
                "metadata": {"difficulty": "hard", "servings": 8},
                "qualityScore": 91,
            }
        )
        resp = client.post(
            "/functions/v1/ai-recipe-enhancer",
            headers=user_headers,
            json={"recipeText": "Tomato soup for eight", "enhancementType": "analyze"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["enhancementType"] == "analyze"
        recipe = body["recipe"]
        assert recipe["ingredients"][0] == {
            "name": "Tomato",
            "amount": "6",
            "unit": "",
            "cost": 1.2,
            "allergens": [],
            "substitutes": [],
        }
        assert recipe["instructions"][0]["step"] == 1
        assert recipe["metadata"]["difficulty"] == "Hard"
        assert gemini.calls[0]["config"].response_mime_type == "application/json"

    def test_scale_fallback_uses_target_servings(self, client, user_headers, gemini):
        gemini.fail_with(500)
        body = client.post(
            "/functions/v1/ai-recipe-enhancer",
            headers=user_headers,
            json={"recipeText": "Tomato soup", "enhancementType": "scale", "targetServings": 40},
        ).json()
        assert body["degraded"] is True
        assert body["recipe"]["metadata"]["servings"] == 40

    def test_parse_sends_the_image_first(self, client, user_headers, gemini):
        gemini.queue({"name": "Card Recipe"})
        image = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
        client.post(
            "/functions/v1/ai-recipe-enhancer",
            headers=user_headers,
            json={"recipeText": "See photo", "enhancementType": "parse", "imageData": image},
        )
        parts = gemini.calls[0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/png"
        assert "See photo" in parts[1]["text"]

    def test_unknown_enhancement_is_400(self, client, user_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-recipe-enhancer",
            headers=user_headers,
            json={"recipeText": "Tomato soup", "enhancementType": "deep-fry"},
        )
        assert resp.status_code == 400


class TestAssistants:
    def test_history_is_folded_into_the_prompt(self, client, user_headers, gemini):
        gemini.queue("Label and date everything in the walk-in.")
        resp = client.post(
            "/functions/v1/ai-assistant",
            headers=user_headers,
            json={
                "assistantType": "compliance-guide",
                "message": "What about leftovers?",
                "conversationHistory": [
                    {"role": "user", "content": "We failed an inspection"},
                    {"role": "assistant", "content": "What was cited?"},
                ],
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == "Label and date everything in the walk-in."
        assert body["assistantType"] == "compliance-guide"
        text = prompt_text(gemini.calls[0])
        assert "restaurant compliance and safety expert" in text
        assert "User: We failed an inspection\nAssistant: What was cited?" in text
        assert text.endswith("User: What about leftovers?")

    def test_unknown_persona_uses_problem_solver(self, client, user_headers, gemini):
        gemini.queue("ok")
        client.post(
            "/functions/v1/ai-assistant",
            headers=user_headers,
            json={"assistantType": "sommelier", "message": "hello"},
        )
        assert "operations problem-solving expert" in prompt_text(gemini.calls[0])

    def test_assistant_has_no_canned_answer(self, client, user_headers, gemini):
        gemini.fail_with(503)
        resp = client.post("/functions/v1/ai-assistant", headers=user_headers, json={"message": "hello"})
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "upstream_error"

    def test_app_modifier(self, client, user_headers, gemini):
        gemini.queue("Add a waste_log table and a page under Inventory.")
        resp = client.post(
            "/functions/v1/ai-app-modifier",
            headers=user_headers,
            json={"request": "Track food waste", "context": "Two locations"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["suggestion"].startswith("Add a waste_log table")
        assert "Context: Two locations" in prompt_text(gemini.calls[0])


class TestTranscription:
    def test_decode_audio_accepts_data_urls(self):
        encoded = base64.b64encode(b"RIFF-audio").decode()
        assert decode_audio(encoded) == b"RIFF-audio"
        assert decode_audio(f"data:audio/webm;base64,{encoded}") == b"RIFF-audio"

    def test_decode_audio_rejects_garbage(self):
        with pytest.raises(ValidationError):
            decode_audio("not*base64*at*all")

    def test_transcribes_through_openai(self, client, user_headers, openai_fake):
        openai_fake.queue("Two cases of lemons for the bar")
        audio = base64.b64encode(b"RIFF-audio").decode()
        resp = client.post("/functions/v1/voice-transcription", headers=user_headers, json={"audio": audio})
        assert resp.status_code == 200
        body = resp.json()
        assert body["transcription"] == "Two cases of lemons for the bar"
        assert body["language"] == "en"
        assert openai_fake.calls[0]["audio"] == b"RIFF-audio"
        assert openai_fake.calls[0]["mime_type"] == "audio/webm"

    def test_missing_audio_is_400(self, client, user_headers, openai_fake):
        resp = client.post("/functions/v1/voice-transcription", headers=user_headers, json={"audio": ""})
        assert resp.status_code == 400
        assert openai_fake.calls == []

    def test_upstream_failure_is_502(self, client, user_headers, openai_fake):
        openai_fake.fail_with(500)
        audio = base64.b64encode(b"RIFF-audio").decode()
        resp = client.post("/functions/v1/voice-transcription", headers=user_headers, json={"audio": audio})
        assert resp.status_code == 502
        assert ai_task_total.value({"task": "voice.transcribe", "outcome": "upstream_error"}) == 1
