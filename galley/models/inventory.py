"""
galley/models/inventory.py

Stock analysis shapes for ai-inventory-analyzer: the item ledger the
caller sends, sales history, and the photo-count answer from the model.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from galley.models.common import CamelModel, coerce_number, coerce_record_list, coerce_str_list

Number = Union[int, float]

HORIZON_DAYS = {"1_week": 7, "2_weeks": 14, "1_month": 30, "3_months": 90}
CONDITIONS = ("fresh", "good", "fair", "poor")


class Perishability(CamelModel):
    shelf_life: Number = 30
    storage_requirements: str = ""
    spoilage_rate: Number = Field(default=0, ge=0, le=100)


class Seasonality(CamelModel):
    high_season: List[str] = []
    low_season: List[str] = []
    peak_months: List[str] = []


class InventoryItem(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    category: str = "general"
    current_stock: Number = Field(default=0, ge=0)
    unit: str = "units"
    cost_per_unit: Number = Field(default=0, ge=0)
    supplier: str = "Unassigned"
    minimum_stock: Number = Field(default=0, ge=0)
    maximum_stock: Number = Field(default=0, ge=0)
    average_daily_usage: Number = Field(default=0, ge=0)
    lead_time: Number = Field(default=0, ge=0)
    perishability: Perishability = Field(default_factory=Perishability)
    seasonality: Seasonality = Field(default_factory=Seasonality)
    last_order_date: Optional[str] = None
    last_order_quantity: Number = 0
    quality_score: Optional[Number] = None

    @property
    def stock_value(self) -> float:
        return self.current_stock * self.cost_per_unit


class PreferenceData(CamelModel):
    popularity_score: Number = 50
    repeat_order_rate: Number = 0
    seasonal_demand: Dict[str, Number] = {}


class SalesHistory(CamelModel):
    daily_sales: Dict[str, Dict[str, Number]] = {}
    weekly_trends: Dict[str, Dict[str, Number]] = {}
    monthly_patterns: Dict[str, Dict[str, Number]] = {}
    customer_preferences: Dict[str, PreferenceData] = {}


class WeatherObservation(CamelModel):
    date: Optional[str] = None
    temperature: Optional[Number] = None
    conditions: str = ""
    sales_impact: Number = 0


class WeatherData(CamelModel):
    forecast: List[WeatherObservation] = []
    historical: List[WeatherObservation] = []


class InventoryEvent(CamelModel):
    date: Optional[str] = None
    type: str = ""
    expected_attendance: Number = 0
    menu_focus: List[str] = []
    special_requirements: List[str] = []


class InventoryAnalysisRequest(CamelModel):
    current_inventory: List[InventoryItem] = Field(min_length=1)
    sales_data: SalesHistory = Field(default_factory=SalesHistory)
    weather_data: Optional[WeatherData] = None
    events: List[InventoryEvent] = []
    analysis_type: Literal["demand_forecast", "optimization", "waste_reduction", "cost_analysis"] = "optimization"
    time_horizon: Literal["1_week", "2_weeks", "1_month", "3_months"] = "1_week"
    as_of: Optional[date] = None

    @property
    def horizon_days(self) -> int:
        return HORIZON_DAYS[self.time_horizon]


# ---------------------------------------------------------------------------
# photo counts
# ---------------------------------------------------------------------------

class PhotoInventoryRequest(CamelModel):
    image: str = Field(min_length=1)
    image_type: str = Field(min_length=1)


class PhotoItem(CamelModel):
    name: str = Field(min_length=1)
    category: str = "mixed"
    quantity: Number = 1
    unit: str = "units"
    condition: str = "good"
    confidence: float = 0.5
    expiry_estimate: Optional[str] = None
    location: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def normalize_quantity(cls, value):
        return coerce_number(value, 1)

    @field_validator("condition", mode="before")
    @classmethod
    def normalize_condition(cls, value):
        if isinstance(value, str) and value.strip().lower() in CONDITIONS:
            return value.strip().lower()
        return "good"

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, value):
        number = coerce_number(value, 0.5)
        return max(0.0, min(1.0, float(number)))


class PhotoSummary(CamelModel):
    total_items: int = 0
    categories_found: List[str] = []
    average_confidence: float = 0.0

    @field_validator("categories_found", mode="before")
    @classmethod
    def normalize_categories(cls, value):
        return coerce_str_list(value)


class PhotoInventory(CamelModel):
    items: List[PhotoItem] = []
    summary: Optional[PhotoSummary] = None

    @field_validator("items", mode="before")
    @classmethod
    def normalize_items(cls, value: Any):
        return coerce_record_list(value)
