from datetime import date

from galley.features.inventory.service import analyze_stock, fallback_inventory_insights
from galley.features.scheduling.service import build_roster, optimize_roster, required_staff, shift_priority
from galley.features.usage.service import get_usage
from galley.models.inventory import InventoryAnalysisRequest
from galley.models.scheduling import ScheduleRequest
from galley.tests.mocks import prompt_text

STOCK = {
    "currentInventory": [
        {
            "id": "tom",
            "name": "Roma Tomatoes",
            "category": "produce",
            "currentStock": 4,
            "minimumStock": 5,
            "maximumStock": 20,
            "costPerUnit": 2,
            "averageDailyUsage": 3,
            "leadTime": 2,
            "supplier": "Farm Co",
            "perishability": {"shelfLife": 5, "spoilageRate": 12},
        },
        {
            "id": "flour",
            "name": "Flour",
            "category": "pantry",
            "currentStock": 100,
            "minimumStock": 10,
            "maximumStock": 40,
            "costPerUnit": 1,
            "averageDailyUsage": 2,
            "leadTime": 10,
            "supplier": "Mill",
        },
    ],
    "asOf": "2026-07-15",
}


class TestInventoryAnalyzer:
    def test_local_analysis(self):
        analysis = analyze_stock(InventoryAnalysisRequest.model_validate(STOCK))

        forecast = analysis["demandForecast"]
        assert [p["forecastedDemand"] for p in forecast["predictions"]] == [21, 14]
        assert forecast["aggregatedMetrics"]["totalDemandIncrease"] == 35

        categories = [r["category"] for r in analysis["optimizationRecommendations"]]
        assert categories == ["Stock Replenishment", "Overstock Reduction", "Spoilage Reduction"]
        assert analysis["optimizationRecommendations"][0]["implementation"]["cost"] == 10.0

        costs = analysis["costAnalysis"]
        assert costs["totalInventoryValue"] == 108.0
        assert costs["carryingCosts"] == 27.0
        assert costs["spoilageCosts"] == 0.96
        assert costs["stockoutCosts"] == 42.0

        plan = analysis["actionPlan"]
        assert [len(plan[stage]) for stage in ("immediate", "shortTerm", "longTerm")] == [1, 1, 1]
        assert plan["shortTerm"][0]["successMetrics"] == ["Save $12 monthly"]

        assert analysis["alerts"] == [
            {
                "severity": "critical",
                "message": "Roma Tomatoes is at critical stock level (4 units)",
                "affectedItems": ["Roma Tomatoes"],
                "recommendedAction": "Order 10 units immediately",
                "deadline": "24 hours",
            }
        ]
        risks = analysis["riskAssessment"]
        assert risks["stockoutRisks"][0]["riskProbability"] == 33.3
        mill = next(r for r in risks["supplyChainRisks"] if r["supplier"] == "Mill")
        assert mill["riskLevel"] == "medium"
        assert mill["riskFactors"] == ["Lead time up to 10 days"]
        assert analysis["performance"]["serviceLevel"] == 50.0

    def test_peak_month_raises_forecast(self):
        stock = {**STOCK, "currentInventory": [{**STOCK["currentInventory"][0], "seasonality": {"peakMonths": ["July"]}}]}
        analysis = analyze_stock(InventoryAnalysisRequest.model_validate(stock))
        prediction = analysis["demandForecast"]["predictions"][0]
        assert prediction["seasonalFactor"] == 1.3
        assert prediction["forecastedDemand"] == 27

    def test_endpoint_adds_ai_insights(self, client, user_headers, gemini):
        gemini.queue("Reorder tomatoes today.")
        resp = client.post("/functions/v1/ai-inventory-analyzer", headers=user_headers, json=STOCK)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["aiInsights"] == "Reorder tomatoes today."
        assert body["analysisType"] == "optimization"
        assert body["timeHorizon"] == "1_week"
        assert body["processedItems"] == 2
        assert body["analysis"]["costAnalysis"]["totalInventoryValue"] == 108.0
        assert "Roma Tomatoes" in prompt_text(gemini.calls[0])
        assert get_usage("user_1")["ai_requests"] == 1

    def test_endpoint_falls_back_to_written_summary(self, client, user_headers, gemini):
        gemini.fail_with(500)
        resp = client.post("/functions/v1/ai-inventory-analyzer", headers=user_headers, json=STOCK)
        body = resp.json()
        assert body["degraded"] is True
        assert body["aiInsights"] == fallback_inventory_insights(InventoryAnalysisRequest.model_validate(STOCK))
        assert "Reorder now: Roma Tomatoes." in body["aiInsights"]

    def test_photo_count(self, client, user_headers, gemini):
        gemini.queue(
            {
                "items": [
                    {"name": "Roma Tomatoes", "category": "produce", "quantity": "12 pieces", "condition": "FRESH", "confidence": 0.9},
                    "not an item",
                ]
            }
        )
        resp = client.post(
            "/functions/v1/ai-inventory-analyzer",
            headers=user_headers,
            json={"image": "data:image/png;base64,iVBORw0KGgo=", "imageType": "image/jpeg"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["items"][0]["quantity"] == 12
        assert body["items"][0]["condition"] == "fresh"
        assert body["summary"] == {"totalItems": 1, "categoriesFound": ["produce"], "averageConfidence": 0.9}
        image = gemini.calls[0]["parts"][1]["inline_data"]
        assert image == {"mime_type": "image/png", "data": "iVBORw0KGgo="}

    def test_photo_count_falls_back(self, client, user_headers, gemini):
        gemini.queue("I can see some vegetables")
        resp = client.post(
            "/functions/v1/ai-inventory-analyzer",
            headers=user_headers,
            json={"image": "iVBORw0KGgo=", "imageType": "image/png"},
        )
        body = resp.json()
        assert body["degraded"] is True
        assert body["items"][0]["name"] == "Unidentified Items"

    def test_empty_inventory_is_rejected_for_free(self, client, user_headers, gemini):
        for payload in ({"currentInventory": []}, {"image": "iVBORw0KGgo="}, {}):
            resp = client.post("/functions/v1/ai-inventory-analyzer", headers=user_headers, json=payload)
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "validation_error"
        assert gemini.calls == []
        assert get_usage("user_1")["ai_requests"] == 0


STAFF = {
    "currentSchedule": [
        {
            "id": "ana",
            "name": "Ana",
            "role": "server",
            "hourlyRate": 20,
            "availability": [{"day": "Monday"}],
            "preferences": {"preferredShifts": ["lunch"]},
            "performance": {"rating": 5},
        },
        {
            "id": "ben",
            "name": "Ben",
            "role": "cook",
            "hourlyRate": 15,
            "availability": [{"day": "Monday", "shiftType": "dinner"}],
        },
    ],
    "constraints": {"requiredCoverage": {"breakfast": 1, "lunch": 1, "dinner": 1, "closing": 1}},
    "weekStart": "2026-10-21",
}


def _schedule(**overrides):
    return ScheduleRequest.model_validate({**STAFF, **overrides})


def _monday(schedule):
    return {shift["shiftType"]: shift["staffId"] for shift in schedule if shift["day"] == "Monday"}


class TestSchedulingOptimizer:
    def test_peak_days_need_more_staff(self):
        req = _schedule(constraints={"requiredCoverage": {"dinner": 2}})
        assert required_staff("dinner", "Tuesday", req) == 2
        assert required_staff("dinner", "Saturday", req) == 3
        assert shift_priority("dinner", "Friday") == "high"
        assert shift_priority("breakfast", "Friday") == "low"

    def test_balanced_roster_picks_best_value(self):
        schedule, unfilled = build_roster(_schedule())
        assert _monday(schedule) == {"breakfast": "ana", "lunch": "ana", "dinner": "ana", "closing": "ana"}
        assert schedule[0]["date"] == "2026-10-19"
        assert len(unfilled) == 24

    def test_cost_roster_picks_cheapest(self):
        schedule, _ = build_roster(_schedule(optimizationType="cost"))
        assert _monday(schedule)["dinner"] == "ben"
        dinner = next(shift for shift in schedule if shift["shiftType"] == "dinner")
        assert dinner["cost"] == 90.0
        assert dinner["startTime"] == "16:00"

    def test_weekly_hour_cap(self):
        staff = [{**STAFF["currentSchedule"][0], "preferences": {"maxHoursPerWeek": 10}}]
        schedule, unfilled = build_roster(_schedule(currentSchedule=staff))
        assert _monday(schedule) == {"breakfast": "ana", "lunch": "ana"}
        assert {"day": "Monday", "shiftType": "dinner", "required": 1, "assigned": 0, "priority": "medium"} in unfilled

    def test_metrics_and_budget_conflict(self):
        roster = optimize_roster(_schedule(optimizationType="cost", constraints={**STAFF["constraints"], "budgetLimit": 100}))
        metrics = roster["metrics"]
        assert metrics["totalCost"] == 330.0
        assert metrics["coverageScore"] == 11.1
        budget = [c for c in metrics["conflicts"] if c["type"] == "budget"]
        assert budget[0]["severity"] == "critical"
        assert roster["recommendations"][0].startswith("Recruit or cross-train staff for")

    def test_endpoint_keeps_roster_when_model_is_down(self, client, user_headers, gemini):
        gemini.fail_with(500)
        resp = client.post(
            "/functions/v1/ai-scheduling-optimizer",
            headers=user_headers,
            json={**STAFF, "optimizationType": "cost"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["degraded"] is True
        assert body["optimizationType"] == "cost"
        assert body["aiAnalysis"].startswith("Scheduled 4 shifts at $330.00")
        assert len(body["optimizedSchedule"]["schedule"]) == 4

    def test_rejects_unpaid_staff(self, client, user_headers, gemini):
        staff = [{**STAFF["currentSchedule"][0], "hourlyRate": 0}]
        resp = client.post(
            "/functions/v1/ai-scheduling-optimizer",
            headers=user_headers,
            json={"currentSchedule": staff},
        )
        assert resp.status_code == 400
        assert gemini.calls == []

    def test_default_week_starts_next_monday(self):
        schedule, _ = build_roster(_schedule(weekStart=None))
        first = date.fromisoformat(schedule[0]["date"])
        assert first.weekday() == 0
        assert first > date.today()
