"""Server-side usage ledger and the two-state gate."""

import pytest

from galley.features.entitlements.service import consume, evaluate_gate, require_features, require_usage
from galley.features.plans.service import map_stored_tier, set_subscription_tier
from galley.features.usage.service import get_usage, increment_usage, reset_usage
from galley.core.errors import QuotaExceededError
from galley.models.usage import Feature, GateState, Tier, UNLIMITED


class TestTierMapping:
    @pytest.mark.parametrize(
        "stored,expected",
        [
            ("basic", Tier.PRO),
            ("premium", Tier.PRO),
            ("Pro", Tier.PRO),
            ("business", Tier.BUSINESS),
            ("free", Tier.FREE),
            ("enterprise", Tier.FREE),
            (None, Tier.FREE),
        ],
    )
    def test_stored_tiers(self, stored, expected):
        assert map_stored_tier(stored) == expected


class TestLedger:
    def test_usage_is_zero_filled(self):
        usage = get_usage("nobody")
        assert usage == {f.value: 0 for f in Feature}

    def test_increment_respects_limit_atomically(self):
        applied, current = increment_usage("u1", Feature.FORMS_CREATED, 2, 3)
        assert (applied, current) == (True, 2)
        applied, current = increment_usage("u1", Feature.FORMS_CREATED, 2, 3)
        assert (applied, current) == (False, 2)
        applied, current = increment_usage("u1", Feature.FORMS_CREATED, 1, 3)
        assert (applied, current) == (True, 3)

    def test_unlimited_has_no_ceiling(self):
        applied, current = increment_usage("u1", Feature.AI_REQUESTS, 500, UNLIMITED)
        assert applied and current == 500

    def test_reset_zeroes_counters(self):
        increment_usage("u1", Feature.AI_REQUESTS, 4, 10)
        assert reset_usage("u1")["ai_requests"] == 0


class TestGate:
    def test_allowed_below_limit(self):
        for _ in range(9):
            assert consume("u1", Feature.AI_REQUESTS).allowed
        decision = evaluate_gate("u1", Feature.AI_REQUESTS)
        assert decision.state == GateState.ALLOWED
        assert decision.remaining == 1

    def test_blocked_at_limit_with_upgrade_card(self):
        for _ in range(10):
            consume("u1", Feature.AI_REQUESTS)
        decision = evaluate_gate("u1", Feature.AI_REQUESTS)
        assert decision.state == GateState.BLOCKED
        assert decision.upgrade is not None
        assert decision.upgrade.usage == 10
        assert decision.upgrade.limit == 10
        assert decision.upgrade.upgrade_url

        blocked = consume("u1", Feature.AI_REQUESTS)
        assert not blocked.allowed
        assert get_usage("u1")["ai_requests"] == 10

    def test_upgrade_unblocks(self):
        for _ in range(10):
            consume("u1", Feature.AI_REQUESTS)
        assert not evaluate_gate("u1", Feature.AI_REQUESTS).allowed

        set_subscription_tier("u1", "premium")
        decision = evaluate_gate("u1", Feature.AI_REQUESTS)
        assert decision.allowed
        assert decision.limit == UNLIMITED
        assert decision.remaining == "unlimited"

    def test_require_usage_raises_403(self):
        for _ in range(3):
            require_usage("u1", Feature.FORMS_CREATED)
        with pytest.raises(QuotaExceededError) as exc_info:
            require_usage("u1", Feature.FORMS_CREATED)
        assert exc_info.value.status_code == 403
        assert exc_info.value.details["upgrade"]["feature"] == "forms_created"

    def test_require_features_takes_nothing_when_one_is_blocked(self):
        for _ in range(3):
            require_usage("u1", Feature.FORMS_CREATED)
        with pytest.raises(QuotaExceededError) as exc_info:
            require_features("u1", [Feature.AI_REQUESTS, Feature.FORMS_CREATED])
        assert exc_info.value.details["feature"] == "forms_created"
        assert get_usage("u1")["ai_requests"] == 0

    def test_require_features_takes_one_of_each(self):
        decisions = require_features("u1", [Feature.DOCUMENT_UPLOADS, Feature.AI_REQUESTS])
        assert [d.feature for d in decisions] == [Feature.DOCUMENT_UPLOADS, Feature.AI_REQUESTS]
        usage = get_usage("u1")
        assert usage["document_uploads"] == 1
        assert usage["ai_requests"] == 1


class TestUsageApi:
    def test_subscription_snapshot(self, client, user_headers):
        resp = client.get("/v1/subscription", headers=user_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["tier"] == "free"
        assert body["is_premium"] is False
        assert body["limits"]["ai_requests"] == 10
        assert body["usage"]["video_call_minutes"] == 0

    def test_gate_endpoint_blocked(self, client, user_headers):
        for _ in range(10):
            consume("user_1", Feature.AI_REQUESTS)
        resp = client.get("/v1/usage/gate/ai_requests", headers=user_headers)
        body = resp.json()
        assert body["state"] == "blocked"
        assert body["upgrade"]["title"] == "Premium Feature"

    def test_unknown_feature_is_400(self, client, user_headers):
        resp = client.get("/v1/usage/gate/teleports", headers=user_headers)
        assert resp.status_code == 400

    def test_ai_handler_blocked_after_quota(self, client, user_headers, gemini):
        gemini.queue({"recommendations": []})
        for _ in range(10):
            resp = client.post("/functions/v1/ai-drink-pairing", headers=user_headers, json={"foodItem": "Pasta"})
            assert resp.status_code == 200

        resp = client.post("/functions/v1/ai-drink-pairing", headers=user_headers, json={"foodItem": "Pasta"})
        assert resp.status_code == 403
        body = resp.json()
        assert body["error"]["code"] == "quota_exceeded"
        assert body["error"]["upgrade"]["usage"] == 10
        assert len(gemini.calls) == 10

    def test_admin_reset_and_tier_change(self, client, user_headers, admin_headers):
        client.post("/v1/usage/ai_requests/increment", headers=user_headers, json={"amount": 3})

        denied = client.post("/v1/usage/reset", json={"userId": "user_1"})
        assert denied.status_code == 401

        resp = client.post("/v1/usage/reset", headers=admin_headers, json={"userId": "user_1"})
        assert resp.status_code == 200
        assert resp.json()["usage"]["ai_requests"] == 0

        resp = client.put("/v1/subscription", headers=admin_headers, json={"userId": "user_1", "tier": "business"})
        assert resp.json()["tier"] == "business"
        assert resp.json()["is_premium"] is True

    def test_unknown_stored_tier_rejected(self, client, admin_headers):
        resp = client.put("/v1/subscription", headers=admin_headers, json={"userId": "u", "tier": "platinum"})
        assert resp.status_code == 400
