"""Typed domain representations shared by ingestion, derivation, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


class SourceDomain(str, Enum):
    SALES = "sales"
    TRAFFIC = "traffic"
    PRODUCT_VIEWS = "product_views"
    SALES_SUMMARY = "sales_summary"
    PREDICTIONS = "predictions"
    PROMOTIONS = "promotions"
    PRICING = "pricing"
    INVENTORY = "inventory"
    LOW_STOCK = "low_stock"


class OutcomeStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    EMPTY = "empty"


class InsightTone(str, Enum):
    POSITIVE = "positive"
    WARNING = "warning"
    INFO = "info"


@dataclass(slots=True, frozen=True)
class ErrorInfo:
    message: str
    details: Any = None
    status_code: int | None = None


@dataclass(slots=True, frozen=True)
class SourceOutcome:
    """Settled result of one gateway call within a collection cycle."""

    domain: SourceDomain
    status: OutcomeStatus
    payload: dict[str, Any] | None = None
    error: ErrorInfo | None = None

    @property
    def usable(self) -> bool:
        """Failed domains are omitted; ok and empty domains still contribute."""

        return self.status != OutcomeStatus.FAILED


@dataclass(slots=True)
class NormalizedSalesSummary:
    total_revenue: Decimal
    total_orders: int
    average_order_value: Decimal
    growth_rate_percent: float | None
    conversion_rate_percent: float | None


@dataclass(slots=True)
class ConversionRates:
    cart_conversion: float | None = None
    purchase_conversion: float | None = None
    overall_conversion: float | None = None


@dataclass(slots=True)
class NormalizedTrafficSummary:
    total_views: int
    unique_visitors: int
    unique_sessions: int
    avg_views_per_session: float
    event_counts: dict[str, int] = field(default_factory=dict)
    conversion_rates: ConversionRates = field(default_factory=ConversionRates)


@dataclass(slots=True, frozen=True)
class TimeSeriesPoint:
    """Day bucket; every numeric field defaults to zero so arithmetic stays total."""

    date: date
    revenue: Decimal = Decimal("0")
    orders: int = 0
    views: int = 0
    unique_visitors: int = 0
    unique_sessions: int = 0


@dataclass(slots=True, frozen=True)
class ProductViewCount:
    product_id: str | None
    product_name: str
    views: int


@dataclass(slots=True)
class ForecastWindow:
    predicted_revenue: Decimal
    predicted_orders: int
    confidence: float | None
    confidence_level: str | None = None


@dataclass(slots=True)
class SalesForecast:
    next_7_days: ForecastWindow | None
    next_30_days: ForecastWindow | None
    recommendations: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PromoSuggestion:
    type: str
    title: str
    description: str
    priority: str
    products: list[str] = field(default_factory=list)
    expected_impact: str | None = None


@dataclass(slots=True)
class PricingStrategy:
    current_strategy: str
    recommendations: list[str] = field(default_factory=list)
    opportunities: list[str] = field(default_factory=list)


@dataclass(slots=True)
class InventorySummary:
    total_products: int = 0
    tracking_inventory: int = 0
    total_quantity: int = 0
    low_stock_count: int = 0
    out_of_stock_count: int = 0


@dataclass(slots=True, frozen=True)
class LowStockProduct:
    product_id: str
    name: str
    stock: int
    low_stock_threshold: int


@dataclass(slots=True)
class DerivedMetrics:
    """Secondary metrics computed from normalized data, never fetched."""

    best_revenue_day: TimeSeriesPoint | None = None
    best_traffic_day: TimeSeriesPoint | None = None
    effective_conversion: float | None = None
    growth_rate_percent: float | None = None
    average_order_value: Decimal | None = None
    low_stock_count: int | None = None
    out_of_stock_count: int | None = None


@dataclass(slots=True, frozen=True)
class Insight:
    title: str
    detail: str
    tone: InsightTone
    rank: int


@dataclass(slots=True, frozen=True)
class InventoryAlert:
    title: str
    message: str
    level: str


@dataclass(slots=True, frozen=True)
class HighlightMetric:
    """Raw metric card value; formatting is left to the renderer."""

    label: str
    value: Decimal | float | int
    helper: str
    delta: float | None = None
