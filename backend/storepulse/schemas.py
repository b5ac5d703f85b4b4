from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .domain import InsightTone, SourceDomain
from .services.report_service import ReportType


def _to_float(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


class AttributeModel(BaseModel):
    model_config = {"from_attributes": True}


class SalesSummary(AttributeModel):
    total_revenue: float
    total_orders: int
    average_order_value: float
    growth_rate_percent: float | None = None
    conversion_rate_percent: float | None = None

    @field_validator("total_revenue", "average_order_value", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _to_float(value)


class ConversionRates(AttributeModel):
    cart_conversion: float | None = None
    purchase_conversion: float | None = None
    overall_conversion: float | None = None


class TrafficSummary(AttributeModel):
    total_views: int
    unique_visitors: int
    unique_sessions: int
    avg_views_per_session: float
    event_counts: dict[str, int] = Field(default_factory=dict)
    conversion_rates: ConversionRates = Field(default_factory=ConversionRates)


class TimeSeriesPoint(AttributeModel):
    date: date
    revenue: float = 0.0
    orders: int = 0
    views: int = 0
    unique_visitors: int = 0
    unique_sessions: int = 0

    @field_validator("revenue", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _to_float(value)


class EventBreakdownEntry(AttributeModel):
    event_type: str
    label: str
    count: int


class TopProduct(AttributeModel):
    product_id: str | None = None
    name: str
    views: int


class HighlightMetric(AttributeModel):
    label: str
    value: float
    helper: str
    delta: float | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _to_float(value)


class DerivedMetrics(AttributeModel):
    best_revenue_day: TimeSeriesPoint | None = None
    best_traffic_day: TimeSeriesPoint | None = None
    effective_conversion: float | None = None
    growth_rate_percent: float | None = None
    average_order_value: float | None = None
    low_stock_count: int | None = None
    out_of_stock_count: int | None = None

    @field_validator("average_order_value", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _to_float(value)


class Insight(AttributeModel):
    title: str
    detail: str
    tone: InsightTone
    rank: int


class AnalyticsDashboard(AttributeModel):
    store_id: str
    period_days: int
    generated_at: datetime
    sales_summary: SalesSummary | None = None
    traffic_summary: TrafficSummary | None = None
    revenue_series: list[TimeSeriesPoint] = Field(default_factory=list)
    traffic_series: list[TimeSeriesPoint] = Field(default_factory=list)
    event_breakdown: list[EventBreakdownEntry] = Field(default_factory=list)
    top_products: list[TopProduct] = Field(default_factory=list)
    highlights: list[HighlightMetric] = Field(default_factory=list)
    derived: DerivedMetrics
    insights: list[Insight] = Field(default_factory=list)
    featured_insights: list[Insight] = Field(default_factory=list)
    has_any_data: bool
    failed_domains: list[SourceDomain] = Field(default_factory=list)


class ForecastWindow(AttributeModel):
    predicted_revenue: float
    predicted_orders: int
    confidence: float | None = None
    confidence_level: str | None = None

    @field_validator("predicted_revenue", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _to_float(value)


class SalesForecast(AttributeModel):
    next_7_days: ForecastWindow | None = None
    next_30_days: ForecastWindow | None = None
    recommendations: list[str] = Field(default_factory=list)


class PromoSuggestion(AttributeModel):
    type: str
    title: str
    description: str
    priority: Literal["high", "medium", "low"]
    products: list[str] = Field(default_factory=list)
    expected_impact: str | None = None


class PricingStrategy(AttributeModel):
    current_strategy: str
    recommendations: list[str] = Field(default_factory=list)
    opportunities: list[str] = Field(default_factory=list)


class InventorySummary(AttributeModel):
    total_products: int = 0
    tracking_inventory: int = 0
    total_quantity: int = 0
    low_stock_count: int = 0
    out_of_stock_count: int = 0


class InventoryAlert(AttributeModel):
    title: str
    message: str
    level: str


class StoreInsightsView(AttributeModel):
    store_id: str
    period_days: int
    generated_at: datetime
    forecast: SalesForecast | None = None
    promotions: list[PromoSuggestion] | None = None
    pricing: PricingStrategy | None = None
    inventory: InventorySummary | None = None
    inventory_alerts: list[InventoryAlert] = Field(default_factory=list)
    sales_summary: SalesSummary | None = None
    traffic_summary: TrafficSummary | None = None
    has_any_insights: bool
    failed_domains: list[SourceDomain] = Field(default_factory=list)


class ReportResponse(BaseModel):
    type: ReportType
    start_date: date
    end_date: date
    summary: dict[str, Any] = Field(default_factory=dict)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    display_rows: list[dict[str, Any]] = Field(default_factory=list)
    note: str | None = None


class TrackEventRequest(BaseModel):
    event_type: Literal["page_view", "product_view", "add_to_cart", "purchase", "search"]
    product_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrackEventAccepted(BaseModel):
    tracked: bool
    session_id: str
