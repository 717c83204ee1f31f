"""Recipe generation, document parsing and enhancement.

Three AI tasks share the recipe vocabulary in galley.models.recipe:
- generate: a new recipe from available ingredients
- parse: every recipe found in an uploaded document
- enhance: parse / optimize / scale / analyze an existing recipe
"""

import re
from typing import List

from galley.features.ai.client import GenerationConfig, image_part, text_part
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.recipe import (
    EnhancedRecipe,
    GeneratedRecipe,
    RecipeEnhanceRequest,
    RecipeGenerateRequest,
    RecipeParseRequest,
    RecipeParseResult,
)

DEFAULT_SCALE_SERVINGS = 50


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------

def build_generate_prompt(req: RecipeGenerateRequest) -> str:
    lines = [
        "Create a detailed recipe with the following requirements:",
        "",
        f"Ingredients available: {req.ingredients}",
    ]
    if req.cuisine_type:
        lines.append(f"Cuisine type: {req.cuisine_type}")
    if req.dietary_restrictions:
        lines.append(f"Dietary restrictions: {', '.join(req.dietary_restrictions)}")
    lines.append(f"Servings: {req.servings}")
    lines.append(f"Cooking time: {req.cooking_time} minutes")
    if req.difficulty:
        lines.append(f"Difficulty: {req.difficulty}")
    if req.meal_type:
        lines.append(f"Meal type: {req.meal_type}")
    if req.equipment:
        lines.append(f"Available equipment: {req.equipment}")
    if req.occasion:
        lines.append(f"Occasion: {req.occasion}")
    lines += [
        "",
        "Return only a JSON object with:",
        "- name: creative recipe name",
        "- description: brief appetizing description",
        "- ingredients: array of ingredient strings with quantities",
        "- instructions: array of step-by-step cooking instructions",
        "- prepTime: preparation time in minutes (number)",
        "- cookTime: cooking time in minutes (number)",
        "- difficulty: one of Easy, Medium, Hard",
        "- category: meal category",
        "- estimatedCost: estimated cost in USD (number)",
        "- allergens: array of potential allergens",
        "- nutritionalInfo: {calories, protein, carbs, fat} per serving",
        "- tips: array of helpful cooking tips",
        "",
        "Use the provided ingredients creatively and follow every dietary restriction.",
    ]
    return "\n".join(lines)


def fallback_generated_recipe(req: RecipeGenerateRequest) -> dict:
    items = req.ingredient_list()
    main = items[0] if items else "Special"
    return {
        "name": f"{req.cuisine_type or 'Fusion'} {main} Delight",
        "description": f"A delicious dish made with {' and '.join(items[:2]) or 'seasonal ingredients'}",
        "ingredients": [f"1 portion {item}" for item in items] or ["1 portion seasonal ingredients"],
        "instructions": [
            "Prepare all ingredients",
            "Cook according to your preferred method",
            "Season and serve hot",
        ],
        "prepTime": max(10, int(req.cooking_time * 0.3)),
        "cookTime": req.cooking_time,
        "difficulty": req.difficulty or "Medium",
        "category": req.meal_type or "Main Course",
        "estimatedCost": 12.99,
        "allergens": [],
        "nutritionalInfo": {"calories": 400, "protein": 25, "carbs": 35, "fat": 15},
        "tips": ["Taste and adjust seasoning as needed"],
    }


GENERATE_TASK = AITask(
    name="recipe.generate",
    build_prompt=build_generate_prompt,
    schema=GeneratedRecipe,
    fallback=fallback_generated_recipe,
    config=GenerationConfig(temperature=0.7, top_k=1, top_p=1.0, max_output_tokens=2048),
)


async def generate_recipe(req: RecipeGenerateRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(GENERATE_TASK, req, client, user_id=user_id)
    return outcome.envelope(recipe=outcome.data)


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

_COMMON_INGREDIENTS = (
    "flour", "sugar", "salt", "pepper", "oil", "butter", "eggs", "milk", "water",
    "onion", "garlic", "tomato", "chicken", "beef", "fish", "rice", "pasta",
)


def build_parse_prompt(req: RecipeParseRequest) -> str:
    return f"""You are an expert culinary assistant. Extract every recipe from the document below.

Document: "{req.file_name}" ({req.file_type})

Document content:
{req.content}

Return only JSON with this structure:
{{
  "recipes": [
    {{
      "name": "Recipe Name",
      "description": "Brief description of the dish",
      "ingredients": ["ingredient 1", "ingredient 2"],
      "instructions": ["step 1", "step 2"],
      "servings": 4,
      "prepTime": 15,
      "cookTime": 30,
      "difficulty": "Easy|Medium|Hard",
      "category": "Main Course|Appetizer|Dessert|etc",
      "allergens": ["Gluten", "Dairy"],
      "cost": 12.50,
      "nutritionalInfo": {{"calories": 420, "protein": 25, "carbs": 35, "fat": 15}},
      "tags": ["quick", "healthy"]
    }}
  ]
}}

Rules:
1. Extract ALL recipes found in the document; for spreadsheets and CSV treat each row as potential recipe data
2. If ingredients are listed without instructions, write logical cooking steps
3. Estimate unclear measurements, prep/cook times and costs realistically
4. Identify common allergens from the ingredients
5. If no recipes are found, return an empty recipes array"""


def _stem(file_name: str) -> str:
    return re.sub(r"\.[^/.]+$", "", file_name)


def fallback_parsed_recipes(req: RecipeParseRequest) -> dict:
    words = req.content.lower().split()
    found: List[str] = [
        ingredient for ingredient in _COMMON_INGREDIENTS
        if any(ingredient in word for word in words)
    ]
    return {
        "recipes": [
            {
                "name": f"Recipe from {_stem(req.file_name)}",
                "description": f"A recipe extracted from {req.file_name}",
                "ingredients": [f"1 cup {item}" for item in found]
                or ["2 cups main ingredient", "1 tsp salt", "2 tbsp oil", "1 cup water"],
                "instructions": [
                    "Prepare all ingredients",
                    "Heat oil in a large pan",
                    "Add ingredients and cook until done",
                    "Season with salt and pepper",
                    "Serve hot",
                ],
                "servings": 4,
                "prepTime": 15,
                "cookTime": 30,
                "difficulty": "Medium",
                "category": "Main Course",
                "allergens": [],
                "cost": 12.0,
                "nutritionalInfo": {"calories": 350, "protein": 20, "carbs": 30, "fat": 12},
                "tags": ["extracted"],
            }
        ]
    }


PARSE_TASK = AITask(
    name="recipe.parse",
    build_prompt=build_parse_prompt,
    schema=RecipeParseResult,
    fallback=fallback_parsed_recipes,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=8192),
)


async def parse_recipes(req: RecipeParseRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(PARSE_TASK, req, client, user_id=user_id)
    recipes = outcome.data["recipes"]
    return outcome.envelope(recipes=recipes, count=len(recipes))


# ---------------------------------------------------------------------------
# enhance
# ---------------------------------------------------------------------------

def _enhance_instructions(req: RecipeEnhanceRequest) -> str:
    recipe = req.recipe_text
    if req.enhancement_type == "parse":
        return (
            "As a professional chef and recipe analyst, parse this recipe text and extract comprehensive information.\n\n"
            f'Recipe text: "{recipe}"\n\n'
            "Include the name and description, every ingredient with amount, unit and substitutes, "
            "step-by-step instructions with timing and equipment, a nutrition estimate, ingredient cost "
            "estimates, dietary information and allergens, a quality score out of 100 and improvement suggestions."
        )
    if req.enhancement_type == "optimize":
        constraints = []
        if req.dietary_restrictions:
            constraints.append(f"Dietary restrictions: {', '.join(req.dietary_restrictions)}")
        if req.cost_target:
            constraints.append(f"Target cost per serving: ${req.cost_target}")
        return (
            "As a culinary optimization expert, analyze and improve this recipe.\n\n"
            f'Recipe: "{recipe}"\n'
            + ("\n".join(constraints) + "\n" if constraints else "")
            + "\nOptimize for cost efficiency at equal quality, nutritional balance, technique and timing, "
            "substitutions for dietary needs, waste reduction and kitchen workflow. "
            "Return the improved recipe and list each optimization as a suggestion."
        )
    if req.enhancement_type == "scale":
        servings = req.target_servings or DEFAULT_SCALE_SERVINGS
        return (
            "As a professional kitchen manager, scale this recipe for commercial use.\n\n"
            f'Recipe: "{recipe}"\n'
            f"Target servings: {servings}\n\n"
            "Scale ingredients with proper ratios, adjust cooking times for volume, note equipment, "
            "food safety, holding and storage, and compute volume costs."
        )
    return (
        "As a culinary analyst and food science expert, analyze this recipe.\n\n"
        f'Recipe: "{recipe}"\n\n'
        "Cover nutritional balance, flavor profile, technique, ingredient seasonality, cost-effectiveness, "
        "allergens, shelf life, market competitiveness and improvement opportunities. "
        "Put the insights in suggestions and rate the recipe in qualityScore."
    )


def build_enhance_prompt(req: RecipeEnhanceRequest):
    prompt = _enhance_instructions(req)
    if req.enhancement_type == "parse" and req.image_data:
        return [image_part(req.image_data), text_part(prompt)]
    return prompt


def fallback_enhanced_recipe(req: RecipeEnhanceRequest) -> dict:
    servings = req.target_servings or (DEFAULT_SCALE_SERVINGS if req.enhancement_type == "scale" else 4)
    return {
        "name": "AI Generated Recipe",
        "description": "Recipe enhanced by AI analysis",
        "ingredients": [{"name": "Various ingredients", "amount": "As needed", "unit": "portions"}],
        "instructions": [{"step": 1, "instruction": "Follow the original recipe instructions", "duration": "Varies"}],
        "metadata": {
            "servings": servings,
            "prepTime": "15 minutes",
            "cookTime": "30 minutes",
            "totalTime": "45 minutes",
            "difficulty": "Medium",
            "cuisine": "International",
            "mealType": ["Main Course"],
            "dietaryInfo": [],
            "allergens": [],
            "tags": ["AI Generated"],
        },
        "nutrition": {"calories": 350, "protein": 20, "carbs": 30, "fat": 15},
        "costing": {"totalCost": 12.0, "costPerServing": 3.0, "ingredientCosts": []},
        "qualityScore": 85,
        "suggestions": [
            "Consider reviewing ingredient proportions",
            "Optimize cooking techniques for better results",
        ],
    }


ENHANCED_RECIPE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "description": {"type": "string"},
        "ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "amount": {"type": "string"},
                    "unit": {"type": "string"},
                    "cost": {"type": "number"},
                    "allergens": {"type": "array", "items": {"type": "string"}},
                    "substitutes": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "instructions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "step": {"type": "number"},
                    "instruction": {"type": "string"},
                    "duration": {"type": "string"},
                    "temperature": {"type": "string"},
                    "equipment": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "metadata": {
            "type": "object",
            "properties": {
                "servings": {"type": "number"},
                "prepTime": {"type": "string"},
                "cookTime": {"type": "string"},
                "totalTime": {"type": "string"},
                "difficulty": {"type": "string", "enum": ["Easy", "Medium", "Hard"]},
                "cuisine": {"type": "string"},
                "mealType": {"type": "array", "items": {"type": "string"}},
                "dietaryInfo": {"type": "array", "items": {"type": "string"}},
                "allergens": {"type": "array", "items": {"type": "string"}},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
        },
        "nutrition": {
            "type": "object",
            "properties": {
                key: {"type": "number"}
                for key in ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium")
            },
        },
        "costing": {
            "type": "object",
            "properties": {
                "totalCost": {"type": "number"},
                "costPerServing": {"type": "number"},
                "ingredientCosts": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"ingredient": {"type": "string"}, "cost": {"type": "number"}},
                    },
                },
                "profitMargin": {"type": "number"},
            },
        },
        "qualityScore": {"type": "number"},
        "suggestions": {"type": "array", "items": {"type": "string"}},
    },
}

ENHANCE_TASK = AITask(
    name="recipe.enhance",
    build_prompt=build_enhance_prompt,
    schema=EnhancedRecipe,
    fallback=fallback_enhanced_recipe,
    config=GenerationConfig(
        temperature=0.3,
        top_k=40,
        top_p=0.8,
        max_output_tokens=4096,
        response_mime_type="application/json",
        response_schema=ENHANCED_RECIPE_SCHEMA,
    ),
    model_tier="pro",
)


async def enhance_recipe(req: RecipeEnhanceRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(ENHANCE_TASK, req, client, user_id=user_id)
    return outcome.envelope(recipe=outcome.data, enhancementType=req.enhancement_type)
