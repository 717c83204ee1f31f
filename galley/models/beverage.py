"""Drink pairing shapes."""

from typing import List, Optional

from pydantic import field_validator

from galley.models.common import CamelModel, coerce_difficulty, coerce_str_list


class DrinkPairingRequest(CamelModel):
    food_item: str
    customer_preferences: Optional[str] = None
    occasion: Optional[str] = None

    @field_validator("food_item", mode="before")
    @classmethod
    def normalize_food_item(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Food item is required")
        return value


class DrinkRecommendation(CamelModel):
    name: str = "Classic Pairing"
    type: str = "Wine"
    description: str = "A classic pairing option."
    ingredients: List[str] = ["Main ingredient"]
    pairing_reason: str = "Complements the dish well."
    difficulty: str = "Easy"

    @field_validator("name", "type", "description", "pairing_reason", mode="before")
    @classmethod
    def normalize_blank(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value):
        if not isinstance(value, list):
            return ["Main ingredient"]
        return coerce_str_list(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        return coerce_difficulty(value, default="Easy")


class DrinkPairingResult(CamelModel):
    recommendations: List[DrinkRecommendation] = []
