"""Sommelier-style drink pairing for a dish."""

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.beverage import DrinkPairingRequest, DrinkPairingResult

HOUSE_RECOMMENDATIONS = [
    {
        "name": "House White Wine",
        "type": "Wine",
        "description": "A crisp, refreshing white wine that complements most dishes with its balanced acidity and light body.",
        "ingredients": ["White wine grapes", "Natural sulfites"],
        "pairingReason": "White wines typically pair well with a wide variety of foods due to their acidity and lighter flavor profile.",
        "difficulty": "Easy",
    },
    {
        "name": "Sparkling Water with Lemon",
        "type": "Non-alcoholic",
        "description": "Fresh sparkling water with a twist of lemon for cleansing the palate.",
        "ingredients": ["Sparkling water", "Fresh lemon"],
        "pairingReason": "The effervescence and citrus help cleanse the palate between bites.",
        "difficulty": "Easy",
    },
]


def build_pairing_prompt(req: DrinkPairingRequest) -> str:
    return f"""As an expert sommelier and mixologist, provide 3-5 drink pairing recommendations for the following:

Food Item: {req.food_item}
Customer Preferences: {req.customer_preferences or 'None specified'}
Occasion: {req.occasion or 'Casual dining'}

For each recommendation, provide:
1. Drink name
2. Type (wine, cocktail, beer, non-alcoholic, etc.)
3. Brief description (2-3 sentences)
4. Key ingredients list
5. Explanation of why it pairs well with the food
6. Difficulty level (Easy/Medium/Hard to prepare)

Consider flavor profiles, acidity, sweetness, temperature contrasts and traditional pairings.
Include both alcoholic and non-alcoholic options when appropriate.

Respond in valid JSON with this structure:
{{
  "recommendations": [
    {{
      "name": "string",
      "type": "string",
      "description": "string",
      "ingredients": ["string"],
      "pairingReason": "string",
      "difficulty": "Easy|Medium|Hard"
    }}
  ]
}}"""


def fallback_pairings(req: DrinkPairingRequest) -> dict:
    return {"recommendations": [dict(rec) for rec in HOUSE_RECOMMENDATIONS]}


PAIRING_TASK = AITask(
    name="drink.pairing",
    build_prompt=build_pairing_prompt,
    schema=DrinkPairingResult,
    fallback=fallback_pairings,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=2048),
)


async def recommend_pairings(req: DrinkPairingRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(PAIRING_TASK, req, client, user_id=user_id)
    return outcome.envelope(
        recommendations=outcome.data["recommendations"],
        foodItem=req.food_item,
        customerPreferences=req.customer_preferences,
        occasion=req.occasion,
    )
