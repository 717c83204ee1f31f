import uuid

from sqlalchemy import insert

from galley.core.database import get_db_session, orders
from galley.features.feedback.service import compute_sentiment, rating_to_score
from galley.features.menu.service import optimization_score, rank_menu
from galley.features.usage.service import get_usage
from galley.models.operations import MenuOptimizationRequest, SentimentRequest

MENU = {
    "currentMenu": [
        {"id": "steak", "name": "Ribeye", "price": 20, "cost": 6, "profitMargin": 70, "popularity": 80},
        {
            "id": "salad",
            "name": "Dry Salad",
            "category": "Appetizers",
            "price": 10,
            "profitMargin": 15,
            "seasonality": ["summer"],
        },
    ],
    "salesData": {
        "monthlySales": {"steak": 120, "salad": 5},
        "customerFeedback": {"steak": {"averageRating": 4.8}, "salad": {"averageRating": 3.0}},
    },
}


def _menu_request(**overrides):
    return MenuOptimizationRequest.model_validate({**MENU, **overrides})


class TestMenuOptimizer:
    def test_scores_are_clamped(self):
        req = _menu_request(optimizationType="profit")
        steak, salad = req.current_menu
        assert optimization_score(steak, req) == 100.0
        assert optimization_score(salad, req) == 0.0

    def test_sustainability_favors_seasonal_dishes(self):
        req = _menu_request(optimizationType="sustainability")
        assert optimization_score(req.current_menu[1], req) == 5.0

    def test_rank_menu_splits_and_totals(self):
        ranking = rank_menu(_menu_request())
        assert [item["id"] for item in ranking["recommendedMenu"]] == ["steak"]
        removed = ranking["removedItems"][0]
        assert removed["item"]["name"] == "Dry Salad"
        assert removed["reason"] == "Dry Salad has poor profitability and low customer demand"

        analytics = ranking["analytics"]
        assert analytics["currentRevenue"] == 2450.0
        assert analytics["retainedRevenue"] == 2400.0
        assert analytics["averageMargin"] == 42.5
        assert analytics["projectedMargin"] == 70.0
        assert ranking["recommendations"][:2] == ["Keep 1 of 2 items for a balanced focus", "Retire Dry Salad"]
        # thinnest categories come first
        assert ranking["newItems"][0]["category"] != "Main Courses"

    def test_endpoint_keeps_ranking_when_model_is_down(self, client, user_headers, gemini):
        gemini.fail_with(500)
        resp = client.post("/functions/v1/ai-menu-optimizer", headers=user_headers, json=MENU)
        assert resp.status_code == 200
        body = resp.json()
        assert body["degraded"] is True
        assert body["optimizationType"] == "balanced"
        assert body["optimization"]["recommendedMenu"][0]["id"] == "steak"
        assert body["aiAnalysis"].startswith("Keep 1 of 2 items")


FEEDBACK = [
    {"content": "The food was amazing", "rating": 5},
    {"content": "Service was slow and the staff ignored us", "rating": 2},
]


class TestSentimentAnalyzer:
    def test_rating_scale(self):
        assert rating_to_score(5) == 100
        assert rating_to_score(3) == 0
        assert rating_to_score(1) == -100

    def test_compute_sentiment(self):
        result = compute_sentiment(SentimentRequest.model_validate({"feedbackData": FEEDBACK}))
        overall = result["overallSentiment"]
        assert overall["score"] == 25
        assert overall["trend"] == "stable"
        assert overall["confidence"] == 70
        assert overall["summary"].startswith("Overall sentiment is positive (25/100) based on 2 reviews")

        service = result["categoryBreakdown"]["Service Quality"]
        assert service["score"] == -50
        assert service["keyIssues"] == ["Service was slow and the staff ignored us"]
        assert service["improvementSuggestions"]
        assert result["categoryBreakdown"]["Food Quality"]["positiveHighlights"] == ["The food was amazing"]
        assert result["categoryBreakdown"]["Atmosphere"]["volume"] == 0

    def test_focus_areas_narrow_the_breakdown(self):
        req = SentimentRequest.model_validate({"feedbackData": FEEDBACK, "focusAreas": ["service"]})
        assert list(compute_sentiment(req)["categoryBreakdown"]) == ["Service Quality"]

    def test_endpoint_adds_written_insights(self, client, user_headers, gemini):
        gemini.queue("Guests love the food but service needs attention.")
        resp = client.post("/functions/v1/ai-sentiment-analyzer", headers=user_headers, json={"feedbackData": FEEDBACK})
        assert resp.status_code == 200
        body = resp.json()
        assert body["aiInsights"] == "Guests love the food but service needs attention."
        assert body["processedFeedbackCount"] == 2
        assert body["analysis"]["overallSentiment"]["score"] == 25

    def test_rating_out_of_range_is_400(self, client, user_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-sentiment-analyzer",
            headers=user_headers,
            json={"feedbackData": [{"content": "ok", "rating": 7}]},
        )
        assert resp.status_code == 400


class TestCashAnalyzer:
    def test_fallback_flags_large_outflow(self, client, user_headers, gemini):
        gemini.fail_with(500)
        resp = client.post(
            "/functions/v1/ai-cash-analyzer",
            headers=user_headers,
            json={
                "currentBalance": 300,
                "transactions": [
                    {"type": "in", "amount": 50, "reason": "float"},
                    {"type": "out", "amount": 200, "reason": "tip-out"},
                ],
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["degraded"] is True
        assert body["status"] == "negative"
        assert body["netAmount"] == -150.0
        assert body["alerts"] == ["High negative cash flow detected"]

    def test_model_answer_is_normalized(self, client, user_headers, gemini):
        gemini.queue({"status": "POSITIVE", "netAmount": "$40", "summary": "Healthy drawer."})
        resp = client.post(
            "/functions/v1/ai-cash-analyzer",
            headers=user_headers,
            json={"currentBalance": 100, "transactions": [{"type": "in", "amount": 40}]},
        )
        body = resp.json()
        assert body["status"] == "positive"
        assert body["netAmount"] == 40
        assert "degraded" not in body


def _store_order(org, items, total):
    with get_db_session() as session:
        session.execute(
            insert(orders).values(
                id=str(uuid.uuid4()),
                organization_id=org,
                order_number=f"ORD-{uuid.uuid4().hex[:6]}",
                items=items,
                total_amount=total,
            )
        )


class TestOrderAnalyzer:
    def test_nothing_to_analyze_is_400_and_free(self, client, user_headers, gemini):
        resp = client.post("/functions/v1/ai-order-analyzer", headers=user_headers, json={})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Either orders or organizationId is required"
        assert get_usage("user_1")["ai_requests"] == 0
        assert gemini.calls == []

    def test_organization_without_orders_is_400(self, client, user_headers, gemini):
        resp = client.post("/functions/v1/ai-order-analyzer", headers=user_headers, json={"organizationId": "org_9"})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No order data to analyze"

    def test_loads_stored_orders_for_organization(self, client, user_headers, gemini):
        _store_order("org_1", [{"name": "Burger", "quantity": 2, "price": 12}], 24)
        _store_order("org_1", [{"name": "Fries", "quantity": 1, "price": 4}], 4)
        _store_order("org_2", [{"name": "Soup", "quantity": 9, "price": 5}], 45)
        gemini.fail_with(500)

        resp = client.post("/functions/v1/ai-order-analyzer", headers=user_headers, json={"organizationId": "org_1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ordersAnalyzed"] == 2
        trends = body["analysis"]["orderTrends"]
        assert trends["popularItems"][0] == {"name": "Burger", "count": 2, "trend": ""}
        assert body["analysis"]["predictions"]["todayRevenue"] == 28.0
        assert body["analysis"]["recommendations"][0]["title"] == "Feature Burger during peak hours"

    def test_posted_orders_reach_the_prompt(self, client, user_headers, gemini):
        gemini.queue({"orderTrends": {"peakHours": ["18:00"]}, "recommendations": [{"title": "Add a runner"}]})
        resp = client.post(
            "/functions/v1/ai-order-analyzer",
            headers=user_headers,
            json={"orders": [{"item": "Pho", "quantity": 3, "revenue": 42.0, "time": "18:15"}]},
        )
        body = resp.json()
        assert body["analysis"]["orderTrends"]["peakHours"] == ["18:00"]
        assert body["analysis"]["recommendations"][0]["priority"] == "medium"
        assert '"item": "Pho"' in gemini.calls[0]["parts"][0]["text"]


CHECKLIST = {
    "requestType": "suggest",
    "items": [
        {"id": "1", "title": "Check walk-in temperature", "priority": "high"},
        {"id": "2", "title": "Count the till", "completed": True},
    ],
}


class TestChecklistOptimizer:
    def test_fallback_suggestions(self, client, user_headers, gemini):
        gemini.fail_with(500)
        resp = client.post("/functions/v1/ai-checklist-optimizer", headers=user_headers, json=CHECKLIST)
        assert resp.status_code == 200
        body = resp.json()
        assert body["requestType"] == "suggest"
        assert body["result"]["immediateActions"] == ["Focus on 1 high-priority tasks first"]
        assert body["result"]["suggestions"][0] == "1/2 tasks completed - good progress!"
        assert "recommendations" not in body["result"]

    def test_open_ended_sections_pass_through(self, client, user_headers, gemini):
        gemini.queue({"efficiencyTips": ["Prep garnish before service"], "sequenceOptimization": ["1", "2"]})
        body = client.post(
            "/functions/v1/ai-checklist-optimizer",
            headers=user_headers,
            json={**CHECKLIST, "requestType": "optimize"},
        ).json()
        assert body["result"] == {"efficiencyTips": ["Prep garnish before service"], "sequenceOptimization": ["1", "2"]}
        assert "priorityRecommendations" in gemini.calls[0]["parts"][0]["text"]

    def test_empty_checklist_is_400(self, client, user_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-checklist-optimizer",
            headers=user_headers,
            json={"requestType": "suggest", "items": []},
        )
        assert resp.status_code == 400
