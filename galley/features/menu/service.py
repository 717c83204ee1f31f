"""
galley/features/menu/service.py

Menu engineering.

The keep/remove decision is a deterministic score computed from margins,
sales and ratings, weighted by the optimization goal. The model only
contributes a narrative analysis on top of it.
"""

import json
from collections import Counter
from typing import Dict, List

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.operations import MenuItem, MenuOptimizationRequest

KEEP_THRESHOLD = 70

NEW_ITEM_IDEAS = {
    "Appetizers": ("Truffle Arancini Balls", "Crispy risotto balls with truffle oil and parmesan", 14.0, 4.5),
    "Main Courses": ("Plant-Based Power Bowl", "Quinoa, roasted vegetables and tahini dressing", 18.0, 6.0),
    "Desserts": ("Deconstructed Tiramisu", "Modern take on the classic Italian dessert", 12.0, 3.5),
    "Beverages": ("Craft Cold Brew Flight", "Three varieties of house-made cold brew", 8.0, 2.0),
}


def optimization_score(item: MenuItem, req: MenuOptimizationRequest) -> float:
    score = 50.0

    if item.profit_margin > 60:
        score += 20
    elif item.profit_margin > 40:
        score += 10
    elif item.profit_margin < 20:
        score -= 15

    monthly = req.sales_data.monthly_sales.get(item.id, 0)
    if monthly > 100:
        score += 15
    elif monthly > 50:
        score += 5
    elif monthly < 10:
        score -= 20

    feedback = req.sales_data.customer_feedback.get(item.id)
    if feedback:
        if feedback.average_rating > 4.5:
            score += 15
        elif feedback.average_rating > 4.0:
            score += 5
        elif feedback.average_rating < 3.5:
            score -= 15

    if req.optimization_type == "profit":
        score += (item.profit_margin - 40) * 0.5
    elif req.optimization_type == "popularity":
        score += (item.popularity - 50) * 0.3
    elif req.optimization_type == "sustainability":
        # seasonal dishes use in-season produce
        score += 5 if item.seasonality else -5

    return max(0.0, min(100.0, score))


def _keep_reason(item: MenuItem, score: float) -> str:
    if score > 90:
        return f"{item.name} is a top performer with excellent profitability and customer satisfaction"
    if score > 80:
        return f"{item.name} shows strong performance and should be retained with minor optimizations"
    return f"{item.name} has potential for improvement and should be kept with strategic changes"


def _removal_reason(item: MenuItem, score: float) -> str:
    if score < 30:
        return f"{item.name} has poor profitability and low customer demand"
    if score < 50:
        return f"{item.name} underperforms compared to category alternatives"
    return f"{item.name} doesn't align with optimization goals"


def _suggested_changes(item: MenuItem) -> List[str]:
    changes = []
    if item.profit_margin < 50:
        changes.append("Consider price increase or cost reduction to improve margins")
    if item.preparation_time > 20:
        changes.append("Streamline preparation process to reduce kitchen time")
    changes.append("Update presentation and description for better appeal")
    return changes


def _new_items(menu: List[MenuItem]) -> List[dict]:
    """Suggest one idea per category the menu is thinnest in."""
    counts = Counter(item.category for item in menu)
    ranked = sorted(NEW_ITEM_IDEAS, key=lambda category: counts.get(category, 0))
    ideas = []
    for category in ranked:
        name, description, price, cost = NEW_ITEM_IDEAS[category]
        ideas.append(
            {
                "name": name,
                "category": category,
                "description": description,
                "suggestedPrice": price,
                "estimatedCost": cost,
                "ingredients": ["Premium ingredients", "Seasonal produce", "House-made components"],
            }
        )
    return ideas


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def rank_menu(req: MenuOptimizationRequest) -> Dict[str, object]:
    """Split the menu into kept and removed items with analytics."""
    kept, removed = [], []
    monthly = req.sales_data.monthly_sales

    for item in req.current_menu:
        score = round(optimization_score(item, req), 1)
        payload = item.model_dump(by_alias=True)
        if score > KEEP_THRESHOLD:
            kept.append(
                {
                    **payload,
                    "optimizationScore": score,
                    "reasonKept": _keep_reason(item, score),
                    "suggestedChanges": _suggested_changes(item),
                }
            )
        else:
            removed.append(
                {
                    "item": payload,
                    "optimizationScore": score,
                    "reason": _removal_reason(item, score),
                    "alternatives": [f"Similar item in {item.category} category", "Seasonal special replacement"],
                }
            )

    kept.sort(key=lambda entry: entry["optimizationScore"], reverse=True)
    kept_ids = {entry["id"] for entry in kept}
    current_revenue = sum(item.price * monthly.get(item.id, 0) for item in req.current_menu)
    retained_revenue = sum(item.price * monthly.get(item.id, 0) for item in req.current_menu if item.id in kept_ids)

    recommendations = [
        f"Keep {len(kept)} of {len(req.current_menu)} items for a {req.optimization_type} focus",
    ]
    if removed:
        recommendations.append("Retire " + ", ".join(entry["item"]["name"] for entry in removed))
    low_margin = [item.name for item in req.current_menu if item.id in kept_ids and item.profit_margin < 50]
    if low_margin:
        recommendations.append("Review pricing for " + ", ".join(low_margin))

    return {
        "recommendedMenu": kept,
        "removedItems": removed,
        "newItems": _new_items(req.current_menu),
        "analytics": {
            "currentRevenue": round(current_revenue, 2),
            "retainedRevenue": round(retained_revenue, 2),
            "averageMargin": _average([item.profit_margin for item in req.current_menu]),
            "projectedMargin": _average(
                [item.profit_margin for item in req.current_menu if item.id in kept_ids]
            ),
            "categoryBalance": dict(Counter(item.category for item in req.current_menu)),
        },
        "recommendations": recommendations,
    }


def build_menu_prompt(req: MenuOptimizationRequest) -> str:
    return f"""As an expert restaurant consultant and culinary business analyst, write a menu optimization strategy.

CURRENT MENU DATA:
{json.dumps([item.model_dump(by_alias=True) for item in req.current_menu], indent=2)}

SALES PERFORMANCE DATA:
{json.dumps(req.sales_data.model_dump(by_alias=True), indent=2)}

INVENTORY AND COSTS:
{json.dumps(req.inventory, indent=2)}

OPTIMIZATION CONSTRAINTS:
{json.dumps(req.constraints, indent=2)}

OPTIMIZATION FOCUS: {req.optimization_type}

Cover menu performance, items to keep, remove or add, price optimization, financial impact,
kitchen workflow, customer experience and a phased implementation plan.
Give specific, actionable recommendations with quantified benefits."""


def fallback_menu_analysis(req: MenuOptimizationRequest) -> str:
    ranking = rank_menu(req)
    return " ".join(ranking["recommendations"])


MENU_TASK = AITask(
    name="menu.optimize",
    build_prompt=build_menu_prompt,
    fallback=fallback_menu_analysis,
    config=GenerationConfig(temperature=0.4, top_k=40, top_p=0.8, max_output_tokens=4096),
    model_tier="pro",
)


async def optimize_menu(req: MenuOptimizationRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(MENU_TASK, req, client, user_id=user_id)
    return outcome.envelope(
        optimization=rank_menu(req),
        optimizationType=req.optimization_type,
        aiAnalysis=outcome.data,
    )
