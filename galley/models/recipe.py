"""
galley/models/recipe.py

Request and result shapes for recipe generation, parsing and enhancement.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from galley.models.common import (
    CamelModel,
    coerce_difficulty,
    coerce_number,
    coerce_str_list,
    require_text,
)

Number = Union[int, float]
IngredientEntry = Union[str, Dict[str, Any]]


class NutritionalInfo(CamelModel):
    calories: Number = 0
    protein: Number = 0
    carbs: Number = 0
    fat: Number = 0

    @field_validator("calories", "protein", "carbs", "fat", mode="before")
    @classmethod
    def normalize_numeric(cls, value):
        return coerce_number(value, 0)


def _entries(value) -> list:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if item not in (None, "")]


# ---------------------------------------------------------------------------
# ai-recipe-generator
# ---------------------------------------------------------------------------

class RecipeGenerateRequest(CamelModel):
    ingredients: str
    servings: int = Field(gt=0)
    cooking_time: int = Field(gt=0)
    cuisine_type: Optional[str] = None
    dietary_restrictions: List[str] = []
    difficulty: Optional[str] = None
    meal_type: Optional[str] = None
    equipment: Optional[str] = None
    occasion: Optional[str] = None

    @field_validator("ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value):
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        return require_text(value, "ingredients")

    def ingredient_list(self) -> List[str]:
        return [item.strip() for item in self.ingredients.split(",") if item.strip()]


class GeneratedRecipe(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    description: str = ""
    ingredients: List[IngredientEntry] = Field(min_length=1)
    instructions: List[IngredientEntry] = Field(min_length=1)
    prep_time: Number = 15
    cook_time: Number = 30
    difficulty: str = "Medium"
    category: str = "Main Course"
    estimated_cost: Number = 0
    allergens: List[str] = []
    nutritional_info: NutritionalInfo = NutritionalInfo()
    tips: List[str] = []

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def normalize_steps(cls, value):
        return _entries(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        return coerce_difficulty(value)

    @field_validator("prep_time", "cook_time", mode="before")
    @classmethod
    def normalize_minutes(cls, value):
        return coerce_number(value, 0)

    @field_validator("estimated_cost", mode="before")
    @classmethod
    def normalize_cost(cls, value):
        return coerce_number(value, 0)

    @field_validator("allergens", "tips", mode="before")
    @classmethod
    def normalize_lists(cls, value):
        return coerce_str_list(value)


# ---------------------------------------------------------------------------
# ai-recipe-parser
# ---------------------------------------------------------------------------

class RecipeParseRequest(CamelModel):
    content: str
    file_name: str
    file_type: str = "text/plain"

    @field_validator("content", "file_name", mode="before")
    @classmethod
    def normalize_required(cls, value, info):
        return require_text(value, info.field_name)


class ParsedRecipe(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    description: str = ""
    ingredients: List[IngredientEntry] = []
    instructions: List[IngredientEntry] = []
    servings: int = 4
    prep_time: Number = 15
    cook_time: Number = 30
    difficulty: str = "Medium"
    category: str = "Main Course"
    allergens: List[str] = []
    cost: Optional[Number] = None
    nutritional_info: Optional[NutritionalInfo] = None
    tags: List[str] = []

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def normalize_steps(cls, value):
        return _entries(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        return coerce_difficulty(value)

    @field_validator("servings", mode="before")
    @classmethod
    def normalize_servings(cls, value):
        number = coerce_number(value, 4)
        return int(number) if number and number > 0 else 4

    @field_validator("prep_time", "cook_time", mode="before")
    @classmethod
    def normalize_minutes(cls, value):
        return coerce_number(value, 0)

    @field_validator("cost", mode="before")
    @classmethod
    def normalize_cost(cls, value):
        return coerce_number(value, None)

    @field_validator("allergens", "tags", mode="before")
    @classmethod
    def normalize_lists(cls, value):
        return coerce_str_list(value)


class RecipeParseResult(CamelModel):
    recipes: List[ParsedRecipe]


# ---------------------------------------------------------------------------
# ai-recipe-enhancer
# ---------------------------------------------------------------------------

EnhancementType = Literal["parse", "optimize", "scale", "analyze"]


class RecipeEnhanceRequest(CamelModel):
    recipe_text: str
    enhancement_type: EnhancementType
    image_data: Optional[str] = None  # base64, used by "parse"
    target_servings: Optional[int] = Field(default=None, gt=0)
    dietary_restrictions: List[str] = []
    cost_target: Optional[float] = Field(default=None, gt=0)

    @field_validator("recipe_text", mode="before")
    @classmethod
    def normalize_recipe_text(cls, value):
        return require_text(value, "recipeText")


class EnhancedIngredient(CamelModel):
    name: str = "Ingredient"
    amount: str = ""
    unit: str = ""
    cost: Optional[Number] = None
    allergens: List[str] = []
    substitutes: List[str] = []

    @field_validator("amount", "unit", mode="before")
    @classmethod
    def normalize_text(cls, value):
        return "" if value is None else str(value)

    @field_validator("cost", mode="before")
    @classmethod
    def normalize_cost(cls, value):
        return coerce_number(value, None)


class EnhancedStep(CamelModel):
    step: int = 0
    instruction: str = ""
    duration: Optional[str] = None
    temperature: Optional[str] = None
    equipment: List[str] = []

    @field_validator("step", mode="before")
    @classmethod
    def normalize_step(cls, value):
        number = coerce_number(value, 0)
        return int(number) if number is not None else 0

    @field_validator("duration", "temperature", mode="before")
    @classmethod
    def normalize_optional_text(cls, value):
        return None if value is None else str(value)


class RecipeMetadata(CamelModel):
    servings: Number = 4
    prep_time: str = ""
    cook_time: str = ""
    total_time: str = ""
    difficulty: str = "Medium"
    cuisine: str = ""
    meal_type: List[str] = []
    dietary_info: List[str] = []
    allergens: List[str] = []
    tags: List[str] = []

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        return coerce_difficulty(value)

    @field_validator("prep_time", "cook_time", "total_time", mode="before")
    @classmethod
    def normalize_times(cls, value):
        return "" if value is None else str(value)

    @field_validator("meal_type", "dietary_info", "allergens", "tags", mode="before")
    @classmethod
    def normalize_lists(cls, value):
        return coerce_str_list(value)


class IngredientCost(CamelModel):
    ingredient: str = ""
    cost: Number = 0


class RecipeCosting(CamelModel):
    total_cost: Number = 0
    cost_per_serving: Number = 0
    ingredient_costs: List[IngredientCost] = []
    profit_margin: Optional[Number] = None


class EnhancedNutrition(NutritionalInfo):
    fiber: Optional[Number] = None
    sugar: Optional[Number] = None
    sodium: Optional[Number] = None


class EnhancedRecipe(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    description: str = ""
    ingredients: List[EnhancedIngredient] = []
    instructions: List[EnhancedStep] = []
    metadata: RecipeMetadata = RecipeMetadata()
    nutrition: Optional[EnhancedNutrition] = None
    costing: Optional[RecipeCosting] = None
    quality_score: Number = 0
    suggestions: List[str] = []

    @field_validator("quality_score", mode="before")
    @classmethod
    def normalize_score(cls, value):
        return coerce_number(value, 0)

    @field_validator("suggestions", mode="before")
    @classmethod
    def normalize_suggestions(cls, value):
        return coerce_str_list(value)
