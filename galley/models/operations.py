"""
galley/models/operations.py

Front-of-house and back-office analysis shapes: checklists, the cash
drawer, order history, menu engineering and guest feedback.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from galley.models.common import CamelModel, coerce_number, coerce_str_list

Number = Union[int, float]


# ---------------------------------------------------------------------------
# ai-checklist-optimizer
# ---------------------------------------------------------------------------

class ChecklistItem(CamelModel):
    id: str = ""
    title: str
    description: str = ""
    completed: bool = False
    priority: Literal["low", "medium", "high"] = "medium"
    estimated_time: Number = 0
    assignee: Optional[str] = None


class ChecklistRequest(CamelModel):
    items: List[ChecklistItem] = Field(min_length=1)
    request_type: Literal["optimize", "suggest", "analyze"]
    context: str = "restaurant opening procedures"


class ChecklistResult(CamelModel):
    """Open-ended: each request type returns its own sections."""
    model_config = ConfigDict(extra="allow")

    immediate_actions: Optional[List[str]] = None
    suggestions: Optional[List[str]] = None
    recommendations: Optional[List[Any]] = None


# ---------------------------------------------------------------------------
# ai-cash-analyzer
# ---------------------------------------------------------------------------

class CashTransaction(CamelModel):
    id: str = ""
    type: Literal["in", "out"]
    amount: float = Field(ge=0)
    reason: str = ""
    server_name: str = ""
    timestamp: Optional[str] = None
    notes: Optional[str] = None


class CashAnalysisRequest(CamelModel):
    transactions: List[CashTransaction]
    current_balance: float


class CashAnalysis(CamelModel):
    status: Literal["positive", "negative", "balanced"] = "balanced"
    net_amount: Number = 0
    summary: str = ""
    patterns: List[str] = []
    recommendations: List[str] = []
    alerts: List[str] = []

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("positive", "negative", "balanced"):
            return value.strip().lower()
        return "balanced"

    @field_validator("net_amount", mode="before")
    @classmethod
    def normalize_amount(cls, value):
        return coerce_number(value, 0)

    @field_validator("patterns", "recommendations", "alerts", mode="before")
    @classmethod
    def normalize_lists(cls, value):
        return coerce_str_list(value)


# ---------------------------------------------------------------------------
# ai-order-analyzer
# ---------------------------------------------------------------------------

class OrderRecord(CamelModel):
    model_config = ConfigDict(extra="allow")

    item: str
    quantity: int = 1
    revenue: float = 0.0
    time: Optional[str] = None


class OrderAnalysisRequest(CamelModel):
    orders: List[OrderRecord] = []
    organization_id: Optional[str] = None
    customer_feedback: Optional[str] = None


class PopularItem(CamelModel):
    name: str
    count: Number = 0
    trend: str = ""


class OrderTrends(CamelModel):
    peak_hours: List[str] = []
    popular_items: List[PopularItem] = []
    average_order_value: Number = 0
    order_frequency: str = ""


class ChannelShare(CamelModel):
    channel: str
    percentage: Number = 0


class CustomerInsights(CamelModel):
    repeat_customers: Optional[Number] = None
    new_customers: Optional[Number] = None
    customer_satisfaction: Optional[Number] = None
    preferred_channels: List[ChannelShare] = []


class OrderRecommendation(CamelModel):
    type: str = "operations"
    title: str
    impact: str = ""
    priority: Literal["high", "medium", "low"] = "medium"

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("high", "medium", "low"):
            return value.strip().lower()
        return "medium"


class OrderPredictions(CamelModel):
    next_hour_orders: Optional[Number] = None
    today_revenue: Optional[Number] = None
    staffing_needed: Optional[Number] = None
    inventory_alerts: List[str] = []


class OrderAnalysis(CamelModel):
    order_trends: OrderTrends = OrderTrends()
    customer_insights: CustomerInsights = CustomerInsights()
    recommendations: List[OrderRecommendation] = []
    predictions: OrderPredictions = OrderPredictions()


# ---------------------------------------------------------------------------
# ai-menu-optimizer
# ---------------------------------------------------------------------------

OptimizationType = Literal["profit", "popularity", "sustainability", "balanced"]


class MenuItem(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    category: str = "Main Courses"
    price: float = Field(ge=0)
    cost: float = Field(default=0.0, ge=0)
    ingredients: List[str] = []
    preparation_time: Number = 0
    popularity: Number = 50
    profit_margin: Number = 0
    allergens: List[str] = []
    dietary_info: List[str] = []
    seasonality: List[str] = []


class ItemFeedback(CamelModel):
    average_rating: float = 0.0
    review_count: int = 0
    common_comments: List[str] = []
    complaints_rate: float = 0.0


class SalesData(CamelModel):
    daily_sales: Dict[str, Number] = {}
    weekly_sales: Dict[str, Number] = {}
    monthly_sales: Dict[str, Number] = {}
    customer_feedback: Dict[str, ItemFeedback] = {}


class MenuOptimizationRequest(CamelModel):
    current_menu: List[MenuItem] = Field(min_length=1)
    optimization_type: OptimizationType = "balanced"
    sales_data: SalesData = SalesData()
    inventory: List[Dict[str, Any]] = []
    constraints: Dict[str, Any] = {}


# ---------------------------------------------------------------------------
# ai-sentiment-analyzer
# ---------------------------------------------------------------------------

class FeedbackEntry(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    source: str = "reviews"
    content: str
    rating: Optional[float] = Field(default=None, ge=1, le=5)
    date: Optional[str] = None


class SentimentRequest(CamelModel):
    feedback_data: List[FeedbackEntry] = Field(min_length=1)
    analysis_type: Literal["comprehensive", "quick", "trend", "competitive"] = "comprehensive"
    timeframe: str = "last 30 days"
    focus_areas: List[str] = []
