"""
galley/features/orders/service.py

Order history analysis.

Callers either post the order lines to analyze or name an organization,
in which case its most recent orders are read from the orders table.
"""

import json
from collections import Counter, defaultdict
from typing import List, Optional

from sqlalchemy import select

from galley.core.database import get_db_session, orders
from galley.core.errors import ValidationError
from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.operations import OrderAnalysis, OrderAnalysisRequest, OrderRecord

RECENT_ORDER_LIMIT = 200


def _line_records(row) -> List[OrderRecord]:
    """One record per item on a stored order; item-less orders count once."""
    placed = row.created_at.strftime("%H:%M") if row.created_at else None
    items = row.items if isinstance(row.items, list) else []
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        quantity = int(item.get("quantity") or 1)
        price = float(item.get("price") or 0)
        records.append(
            OrderRecord(
                item=str(item.get("name") or item.get("item") or "Unknown item"),
                quantity=quantity,
                revenue=round(price * quantity, 2),
                time=placed,
            )
        )
    if not records:
        records.append(OrderRecord(item=row.order_number, quantity=1, revenue=float(row.total_amount or 0), time=placed))
    return records


def load_recent_orders(organization_id: str, limit: int = RECENT_ORDER_LIMIT) -> List[OrderRecord]:
    with get_db_session() as session:
        rows = session.execute(
            select(orders)
            .where(orders.c.organization_id == organization_id)
            .order_by(orders.c.created_at.desc())
            .limit(limit)
        ).all()
    records: List[OrderRecord] = []
    for row in rows:
        records.extend(_line_records(row))
    return records


def resolve_orders(req: OrderAnalysisRequest) -> OrderAnalysisRequest:
    """Fill in orders from storage when only an organization was given."""
    if req.orders:
        return req
    if not req.organization_id:
        raise ValidationError("Either orders or organizationId is required")
    loaded = load_recent_orders(req.organization_id)
    if not loaded:
        raise ValidationError("No order data to analyze")
    return req.model_copy(update={"orders": loaded})


def _hour(time_value: Optional[str]) -> Optional[str]:
    if not time_value or ":" not in time_value:
        return None
    hour = time_value.split(":", 1)[0].strip()[-2:]
    return f"{int(hour):02d}:00" if hour.isdigit() else None


def summarize_orders(records: List[OrderRecord]) -> dict:
    quantities = Counter()
    revenue = 0.0
    by_hour = defaultdict(int)
    for record in records:
        quantities[record.item] += record.quantity
        revenue += record.revenue
        hour = _hour(record.time)
        if hour:
            by_hour[hour] += 1
    peak_hours = [hour for hour, _ in sorted(by_hour.items(), key=lambda kv: (-kv[1], kv[0]))[:2]]
    return {
        "quantities": quantities,
        "revenue": round(revenue, 2),
        "average_order_value": round(revenue / len(records), 2) if records else 0,
        "peak_hours": peak_hours,
    }


def build_order_prompt(req: OrderAnalysisRequest) -> str:
    data = {
        "recentOrders": [record.model_dump(by_alias=True, exclude_none=True) for record in req.orders],
        "customerFeedback": req.customer_feedback,
    }
    return f"""Analyze this restaurant order data and provide comprehensive business insights:

Order Data:
{json.dumps(data, indent=2)}

Respond in JSON with:
- orderTrends: {{ peakHours: string[], popularItems: array with name/count/trend, averageOrderValue: number, orderFrequency: string }}
- customerInsights: {{ repeatCustomers: percentage, newCustomers: percentage, customerSatisfaction: score out of 5, preferredChannels: array with channel/percentage }}
- recommendations: array with type/title/impact/priority(high/medium/low)
- predictions: {{ nextHourOrders: number, todayRevenue: number, staffingNeeded: number, inventoryAlerts: string array }}

Base the analysis on the provided data and industry best practices. Be specific and actionable."""


def fallback_order_analysis(req: OrderAnalysisRequest) -> dict:
    stats = summarize_orders(req.orders)
    top = stats["quantities"].most_common(3)
    recommendations = []
    if top:
        recommendations.append(
            {
                "type": "menu",
                "title": f"Feature {top[0][0]} during peak hours",
                "impact": f"{top[0][1]} units sold in this period",
                "priority": "high",
            }
        )
    return {
        "orderTrends": {
            "peakHours": stats["peak_hours"],
            "popularItems": [{"name": name, "count": count, "trend": ""} for name, count in top],
            "averageOrderValue": stats["average_order_value"],
            "orderFrequency": f"{len(req.orders)} order lines analyzed",
        },
        "customerInsights": {},
        "recommendations": recommendations,
        "predictions": {"todayRevenue": stats["revenue"], "inventoryAlerts": []},
    }


ORDER_TASK = AITask(
    name="orders.analyze",
    build_prompt=build_order_prompt,
    schema=OrderAnalysis,
    fallback=fallback_order_analysis,
    config=GenerationConfig(temperature=0.3, top_k=1, top_p=1.0, max_output_tokens=2048),
)


async def analyze_orders(req: OrderAnalysisRequest, client, *, user_id=None) -> dict:
    req = resolve_orders(req)
    outcome = await run_task(ORDER_TASK, req, client, user_id=user_id)
    return outcome.envelope(analysis=outcome.data, ordersAnalyzed=len(req.orders))
