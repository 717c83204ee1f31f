"""
galley/features/inventory/service.py

Stock analysis.

Two request shapes share one endpoint:
- a shelf photo (image + imageType): the model counts what it sees
- an item ledger: forecasts, reorder advice, waste, cost and risk are
  computed here from the numbers; the model adds a written analysis
"""

import calendar
import json
from datetime import date
from typing import Dict, List, Optional

from galley.features.ai.client import GenerationConfig, image_part, text_part
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.inventory import (
    InventoryAnalysisRequest,
    InventoryItem,
    PhotoInventory,
    PhotoInventoryRequest,
)

CARRYING_COST_RATE = 0.25
ORDER_COST = 50.0
OVERSTOCK_FACTOR = 1.5
STOCKOUT_BUFFER = 1.2
HIGH_SPOILAGE = 10
WASTE_SPOILAGE = 5
EXPIRY_ALERT_DAYS = 2

_SEASON_MONTHS = {
    "winter": (12, 1, 2),
    "spring": (3, 4, 5),
    "summer": (6, 7, 8),
    "autumn": (9, 10, 11),
    "fall": (9, 10, 11),
}

_WASTE_ROOT_CAUSES = [
    "Over-ordering due to inaccurate demand forecasting",
    "Poor inventory rotation (FIFO not followed)",
    "Inadequate storage conditions",
    "Lack of real-time inventory tracking",
]

_WASTE_SOLUTIONS = [
    {"solution": "Implement automated inventory tracking system", "potentialReduction": 40, "implementationDifficulty": "High", "costBenefit": 3.2},
    {"solution": "Staff training on proper FIFO rotation", "potentialReduction": 25, "implementationDifficulty": "Low", "costBenefit": 8.5},
    {"solution": "Improve storage temperature control", "potentialReduction": 20, "implementationDifficulty": "Medium", "costBenefit": 4.1},
]


def _money(value: float) -> float:
    return round(value, 2)


# ---------------------------------------------------------------------------
# demand
# ---------------------------------------------------------------------------

def seasonal_factor(item: InventoryItem, today: date) -> float:
    month_name = calendar.month_name[today.month]
    if month_name.lower() in (m.lower() for m in item.seasonality.peak_months):
        return 1.3
    for season in item.seasonality.low_season:
        if today.month in _SEASON_MONTHS.get(season.lower(), ()):
            return 0.8
    return 1.0


def trend_factor(item: InventoryItem, req: InventoryAnalysisRequest) -> float:
    preference = req.sales_data.customer_preferences.get(item.id)
    popularity = preference.popularity_score if preference else 50
    if popularity > 80:
        return 1.2
    if popularity < 30:
        return 0.8
    return 1.0


def weather_impact(req: InventoryAnalysisRequest) -> float:
    """Average historical sales impact (percent), clamped to +/-10%."""
    history = req.weather_data.historical if req.weather_data else []
    if not history:
        return 1.0
    average = sum(obs.sales_impact for obs in history) / len(history)
    return round(max(0.9, min(1.1, 1 + average / 100)), 3)


def event_impact(item: InventoryItem, req: InventoryAnalysisRequest) -> float:
    attendance = 0
    for event in req.events:
        focus = {f.lower() for f in event.menu_focus}
        if item.name.lower() in focus or item.category.lower() in focus:
            attendance += event.expected_attendance
    return round(1 + min(0.15, attendance / 1000), 3)


def _trend_direction(factor: float) -> str:
    if factor > 1.1:
        return "increasing"
    if factor < 0.9:
        return "decreasing"
    return "stable"


def forecast_demand(req: InventoryAnalysisRequest, today: date) -> dict:
    predictions = []
    weather = weather_impact(req)
    for item in req.current_inventory:
        seasonal = seasonal_factor(item, today)
        trend = trend_factor(item, req)
        events = event_impact(item, req)
        has_history = any(item.id in day for day in req.sales_data.daily_sales.values())
        predictions.append(
            {
                "itemId": item.id,
                "itemName": item.name,
                "forecastedDemand": round(item.average_daily_usage * seasonal * trend * weather * events * req.horizon_days),
                "confidence": 0.9 if has_history else 0.75,
                "seasonalFactor": seasonal,
                "weatherImpact": weather,
                "eventImpact": events,
                "trendDirection": _trend_direction(trend),
            }
        )

    return {
        "predictions": predictions,
        "aggregatedMetrics": {
            "totalDemandIncrease": sum(p["forecastedDemand"] for p in predictions),
            "highDemandItems": [p["itemName"] for p in predictions if p["trendDirection"] == "increasing"][:5],
            "lowDemandItems": [p["itemName"] for p in predictions if p["trendDirection"] == "decreasing"][:5],
            "newTrendItems": [p["itemName"] for p in predictions if p["eventImpact"] > 1][:5],
        },
    }


# ---------------------------------------------------------------------------
# stock levels, waste, cost
# ---------------------------------------------------------------------------

def understocked(items: List[InventoryItem]) -> List[InventoryItem]:
    return [item for item in items if item.current_stock <= item.minimum_stock]


def overstocked(items: List[InventoryItem]) -> List[InventoryItem]:
    return [item for item in items if item.maximum_stock and item.current_stock > item.maximum_stock * OVERSTOCK_FACTOR]


def _spoilage_value(item: InventoryItem) -> float:
    return item.stock_value * item.perishability.spoilage_rate / 100


def optimization_recommendations(items: List[InventoryItem]) -> List[dict]:
    recommendations = []

    low = understocked(items)
    if low:
        names = ", ".join(item.name for item in low[:3]) + ("..." if len(low) > 3 else "")
        recommendations.append(
            {
                "category": "Stock Replenishment",
                "priority": "critical",
                "action": f"Immediately order {len(low)} understocked items: {names}",
                "expectedImpact": "Prevent stockouts and maintain service levels",
                "implementation": {
                    "effort": "Low",
                    "timeline": "24-48 hours",
                    "resources": ["Procurement team", "Supplier contacts"],
                    "cost": _money(sum(item.minimum_stock * item.cost_per_unit for item in low)),
                },
                "metrics": {"costSavings": 0, "wastageReduction": 0, "serviceImprovement": 25},
            }
        )

    high = overstocked(items)
    if high:
        recommendations.append(
            {
                "category": "Overstock Reduction",
                "priority": "high",
                "action": f"Reduce overstock for {len(high)} items through promotions or menu specials",
                "expectedImpact": "Reduce carrying costs and prevent spoilage",
                "implementation": {
                    "effort": "Medium",
                    "timeline": "1-2 weeks",
                    "resources": ["Marketing team", "Kitchen staff"],
                    "cost": 500,
                },
                "metrics": {
                    "costSavings": _money(
                        sum((item.current_stock - item.maximum_stock) * item.cost_per_unit * 0.2 for item in high)
                    ),
                    "wastageReduction": 15,
                    "serviceImprovement": 5,
                },
            }
        )

    spoiling = [item for item in items if item.perishability.spoilage_rate > HIGH_SPOILAGE]
    if spoiling:
        recommendations.append(
            {
                "category": "Spoilage Reduction",
                "priority": "medium",
                "action": "Implement FIFO rotation and improve storage conditions for high-spoilage items",
                "expectedImpact": "Reduce food waste and associated costs",
                "implementation": {
                    "effort": "Medium",
                    "timeline": "2-3 weeks",
                    "resources": ["Kitchen staff", "Storage equipment"],
                    "cost": 1000,
                },
                "metrics": {
                    "costSavings": _money(sum(_spoilage_value(item) for item in spoiling)),
                    "wastageReduction": 30,
                    "serviceImprovement": 0,
                },
            }
        )

    return recommendations


def waste_opportunities(items: List[InventoryItem]) -> List[dict]:
    wasteful = sorted(
        (item for item in items if item.perishability.spoilage_rate > WASTE_SPOILAGE),
        key=_spoilage_value,
        reverse=True,
    )
    return [
        {
            "itemId": item.id,
            "itemName": item.name,
            "currentWastage": round(item.current_stock * item.perishability.spoilage_rate / 100, 2),
            "wasteValue": _money(_spoilage_value(item)),
            "rootCauses": list(_WASTE_ROOT_CAUSES),
            "solutions": [dict(solution) for solution in _WASTE_SOLUTIONS],
        }
        for item in wasteful[:10]
    ]


def cost_analysis(items: List[InventoryItem]) -> dict:
    total_value = sum(item.stock_value for item in items)
    carrying = total_value * CARRYING_COST_RATE
    spoilage = sum(_spoilage_value(item) for item in items)
    # a week of lost usage for every item already at or under its minimum
    stockout = sum(item.average_daily_usage * item.cost_per_unit * 7 for item in understocked(items))
    return {
        "totalInventoryValue": _money(total_value),
        "carryingCosts": _money(carrying),
        "orderingCosts": _money(len(items) * ORDER_COST),
        "stockoutCosts": _money(stockout),
        "spoilageCosts": _money(spoilage),
        "optimizationOpportunities": [
            {
                "area": "Inventory Level Optimization",
                "currentCost": _money(carrying),
                "optimizedCost": _money(carrying * 0.8),
                "savings": _money(carrying * 0.2),
                "paybackPeriod": "3 months",
            },
            {
                "area": "Waste Reduction",
                "currentCost": _money(spoilage),
                "optimizedCost": _money(spoilage * 0.6),
                "savings": _money(spoilage * 0.4),
                "paybackPeriod": "2 months",
            },
        ],
    }


# ---------------------------------------------------------------------------
# risk, plan, alerts, KPIs
# ---------------------------------------------------------------------------

def _supplier_risk(share: float, slowest_lead_time: float) -> str:
    if share > 0.5:
        return "high"
    if share > 0.25 or slowest_lead_time > 7:
        return "medium"
    return "low"


def assess_risks(items: List[InventoryItem]) -> dict:
    by_supplier: Dict[str, List[InventoryItem]] = {}
    for item in items:
        by_supplier.setdefault(item.supplier, []).append(item)

    supply_chain = []
    for supplier, supplied in by_supplier.items():
        share = len(supplied) / len(items)
        factors = []
        if share > 0.5:
            factors.append("Single source dependency")
        slowest = max(item.lead_time for item in supplied)
        if slowest > 7:
            factors.append(f"Lead time up to {slowest} days")
        supply_chain.append(
            {
                "supplier": supplier,
                "riskLevel": _supplier_risk(share, slowest),
                "itemShare": round(share * 100, 1),
                "riskFactors": factors or ["No concentration or lead-time concerns"],
                "mitigationStrategies": ["Develop backup suppliers", "Diversify sourcing", "Regular quality audits"],
            }
        )

    stockout = []
    for item in items:
        if item.current_stock > item.minimum_stock * STOCKOUT_BUFFER:
            continue
        if item.minimum_stock:
            probability = (item.minimum_stock * STOCKOUT_BUFFER - item.current_stock) / (item.minimum_stock * STOCKOUT_BUFFER) * 100
        else:
            probability = 0
        stockout.append(
            {
                "itemId": item.id,
                "itemName": item.name,
                "riskProbability": round(max(0.0, min(95.0, probability)), 1),
                "businessImpact": _money(item.average_daily_usage * item.cost_per_unit * 7),
                "preventionActions": ["Increase order frequency", "Raise minimum stock level", "Find alternative suppliers"],
            }
        )
    stockout.sort(key=lambda risk: risk["riskProbability"], reverse=True)

    overstock = [
        {
            "itemId": item.id,
            "itemName": item.name,
            "excessQuantity": item.current_stock - item.maximum_stock,
            "tieUpCapital": _money((item.current_stock - item.maximum_stock) * item.cost_per_unit),
            "spoilageRisk": item.perishability.spoilage_rate,
        }
        for item in items
        if item.maximum_stock and item.current_stock > item.maximum_stock
    ]
    overstock.sort(key=lambda risk: risk["tieUpCapital"], reverse=True)

    return {"supplyChainRisks": supply_chain, "stockoutRisks": stockout[:5], "overStockRisks": overstock[:5]}


_PLAN_STAGES = (
    ("immediate", ("critical",), "Inventory Manager", "24 hours"),
    ("shortTerm", ("high",), "Operations Team", "2 weeks"),
    ("longTerm", ("medium", "low"), "Management Team", "1 month"),
)


def _success_metric(stage: str, recommendation: dict) -> str:
    metrics = recommendation["metrics"]
    if stage == "immediate":
        return f"Reduce stockouts by {metrics['serviceImprovement']}%"
    if stage == "shortTerm":
        return f"Save ${metrics['costSavings']:.0f} monthly"
    return f"Improve efficiency by {metrics['wastageReduction']}%"


def action_plan(recommendations: List[dict]) -> dict:
    plan = {}
    for stage, priorities, owner, deadline in _PLAN_STAGES:
        matching = [r for r in recommendations if r["priority"] in priorities]
        plan[stage] = [
            {
                "action": r["action"],
                "priority": rank,
                "owner": owner,
                "deadline": deadline,
                "resources": r["implementation"]["resources"],
                "successMetrics": [_success_metric(stage, r)],
            }
            for rank, r in enumerate(matching, start=1)
        ]
    return plan


def stock_alerts(items: List[InventoryItem], forecast: dict) -> List[dict]:
    alerts = []
    for item in items:
        if item.current_stock <= item.minimum_stock:
            alerts.append(
                {
                    "severity": "critical",
                    "message": f"{item.name} is at critical stock level ({item.current_stock} {item.unit})",
                    "affectedItems": [item.name],
                    "recommendedAction": f"Order {item.minimum_stock * 2} {item.unit} immediately",
                    "deadline": "24 hours",
                }
            )
        elif item.average_daily_usage and item.current_stock / item.average_daily_usage < item.lead_time:
            alerts.append(
                {
                    "severity": "warning",
                    "message": f"{item.name} runs out before a new order can arrive ({item.lead_time} day lead time)",
                    "affectedItems": [item.name],
                    "recommendedAction": "Place the next order today",
                    "deadline": "24 hours",
                }
            )

    for item in items:
        if item.perishability.shelf_life <= EXPIRY_ALERT_DAYS:
            alerts.append(
                {
                    "severity": "warning",
                    "message": f"{item.name} expires within {EXPIRY_ALERT_DAYS} days",
                    "affectedItems": [item.name],
                    "recommendedAction": "Use in daily specials or promotional menu",
                    "deadline": "48 hours",
                }
            )

    rising = forecast["aggregatedMetrics"]["highDemandItems"]
    if rising:
        alerts.append(
            {
                "severity": "info",
                "message": "Demand is trending up for " + ", ".join(rising),
                "affectedItems": rising,
                "recommendedAction": "Raise par levels before the next order cycle",
            }
        )
    return alerts


def performance_metrics(items: List[InventoryItem]) -> dict:
    total_value = sum(item.stock_value for item in items)
    monthly_usage_value = sum(item.average_daily_usage * item.cost_per_unit * 30 for item in items)
    above_minimum = [item for item in items if item.current_stock > item.minimum_stock]
    covers_lead_time = [item for item in items if item.current_stock >= item.average_daily_usage * item.lead_time]
    spoilage = sum(_spoilage_value(item) for item in items)
    return {
        "turnoverRatio": round(monthly_usage_value / total_value, 2) if total_value else 0.0,
        "serviceLevel": round(len(above_minimum) / len(items) * 100, 1),
        "fillRate": round(len(covers_lead_time) / len(items) * 100, 1),
        "costEfficiency": round((1 - spoilage / total_value) * 100, 1) if total_value else 100.0,
        "wastagePercentage": round(sum(item.perishability.spoilage_rate for item in items) / len(items), 2),
    }


def analyze_stock(req: InventoryAnalysisRequest, today: Optional[date] = None) -> dict:
    """Every numeric section of the analysis; no model involved."""
    today = today or req.as_of or date.today()
    items = req.current_inventory
    forecast = forecast_demand(req, today)
    recommendations = optimization_recommendations(items)
    return {
        "demandForecast": forecast,
        "optimizationRecommendations": recommendations,
        "wasteReductionOpportunities": waste_opportunities(items),
        "costAnalysis": cost_analysis(items),
        "riskAssessment": assess_risks(items),
        "actionPlan": action_plan(recommendations),
        "alerts": stock_alerts(items, forecast),
        "performance": performance_metrics(items),
    }


# ---------------------------------------------------------------------------
# model tasks
# ---------------------------------------------------------------------------

def build_inventory_prompt(req: InventoryAnalysisRequest) -> str:
    items = [item.model_dump(by_alias=True) for item in req.current_inventory[:10]]
    more = " ... (showing first 10 items)" if len(req.current_inventory) > 10 else ""
    weather = req.weather_data.model_dump(by_alias=True) if req.weather_data else None
    return f"""As an expert inventory management specialist and restaurant operations analyst, provide inventory analysis and optimization recommendations.

CURRENT INVENTORY DATA:
{json.dumps(items, indent=2)}{more}
Total Items: {len(req.current_inventory)}

SALES HISTORY DATA:
{json.dumps(req.sales_data.model_dump(by_alias=True), indent=2)}

WEATHER FORECAST:
{json.dumps(weather, indent=2)}

UPCOMING EVENTS:
{json.dumps([event.model_dump(by_alias=True) for event in req.events], indent=2)}

ANALYSIS TYPE: {req.analysis_type}
TIME HORIZON: {req.time_horizon}

Cover demand forecasting, stock level optimization, waste reduction, cost analysis,
supply and stockout risk, a prioritized action plan (next 48 hours, 1-4 weeks, 1-3 months)
and the KPIs to track. Give specific, data-driven recommendations with quantified benefits."""


def fallback_inventory_insights(req: InventoryAnalysisRequest) -> str:
    low = understocked(req.current_inventory)
    high = overstocked(req.current_inventory)
    parts = [f"Reviewed {len(req.current_inventory)} items for {req.analysis_type.replace('_', ' ')}."]
    if low:
        parts.append("Reorder now: " + ", ".join(item.name for item in low) + ".")
    if high:
        parts.append("Work down overstock on " + ", ".join(item.name for item in high) + ".")
    if not low and not high:
        parts.append("Stock levels are within their minimum and maximum ranges.")
    return " ".join(parts)


INVENTORY_TASK = AITask(
    name="inventory.analyze",
    build_prompt=build_inventory_prompt,
    fallback=fallback_inventory_insights,
    config=GenerationConfig(temperature=0.4, top_k=40, top_p=0.8, max_output_tokens=4096),
    model_tier="pro",
)


PHOTO_PROMPT = """Analyze this inventory photo and identify all food and beverage items visible. For each item provide:

1. Item name (be specific, e.g. "Roma Tomatoes" not just "Tomatoes")
2. Category (produce, dairy, meat, pantry, beverages, etc.)
3. Estimated quantity (count, weight, or volume)
4. Unit of measurement (pieces, lbs, kg, liters, etc.)
5. Visible condition (fresh, good, fair, poor)
6. Confidence level (0.0 to 1.0) in your identification
7. Estimated expiry/best-by timeframe if applicable
8. Suggested storage location (refrigerator, freezer, pantry, etc.)

Respond in valid JSON format:
{
  "items": [
    {"name": "string", "category": "string", "quantity": 0, "unit": "string",
     "condition": "fresh|good|fair|poor", "confidence": 0.0,
     "expiryEstimate": "string (optional)", "location": "string (optional)"}
  ],
  "summary": {"totalItems": 0, "categoriesFound": ["string"], "averageConfidence": 0.0}
}"""


def build_photo_prompt(req: PhotoInventoryRequest):
    return [text_part(PHOTO_PROMPT), image_part(req.image, req.image_type)]


def fallback_photo_inventory(req: PhotoInventoryRequest) -> dict:
    return {
        "items": [
            {
                "name": "Unidentified Items",
                "category": "mixed",
                "quantity": 1,
                "unit": "batch",
                "condition": "good",
                "confidence": 0.5,
                "expiryEstimate": "Review manually",
                "location": "Storage area",
            }
        ],
        "summary": {"totalItems": 1, "categoriesFound": ["mixed"], "averageConfidence": 0.5},
    }


PHOTO_TASK = AITask(
    name="inventory.photo",
    build_prompt=build_photo_prompt,
    schema=PhotoInventory,
    fallback=fallback_photo_inventory,
    config=GenerationConfig(temperature=0.4, top_k=32, top_p=1, max_output_tokens=2048),
)


def summarize_photo(items: List[dict]) -> dict:
    categories = list(dict.fromkeys(item["category"] for item in items))
    confidence = sum(item["confidence"] for item in items) / len(items) if items else 0.0
    return {"totalItems": len(items), "categoriesFound": categories, "averageConfidence": round(confidence, 3)}


async def count_photo_inventory(req: PhotoInventoryRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(PHOTO_TASK, req, client, user_id=user_id)
    result = outcome.data
    if not result.get("summary"):
        result["summary"] = summarize_photo(result["items"])
    return outcome.envelope(**result)


async def analyze_inventory(req: InventoryAnalysisRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(INVENTORY_TASK, req, client, user_id=user_id)
    return outcome.envelope(
        analysis=analyze_stock(req),
        analysisType=req.analysis_type,
        timeHorizon=req.time_horizon,
        processedItems=len(req.current_inventory),
        aiInsights=outcome.data,
    )
