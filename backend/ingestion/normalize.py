from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser
from loguru import logger

from storepulse.domain import (
    ConversionRates,
    ForecastWindow,
    InventorySummary,
    LowStockProduct,
    NormalizedSalesSummary,
    NormalizedTrafficSummary,
    OutcomeStatus,
    PricingStrategy,
    ProductViewCount,
    PromoSuggestion,
    SalesForecast,
    SourceDomain,
    SourceOutcome,
    TimeSeriesPoint,
)

PathProbe = tuple[str, ...]

# Ordered newest envelope first. The backend moved these objects around over
# time and dashboards must keep working against every deployed version.
SALES_OVERVIEW_PATHS: tuple[PathProbe, ...] = (
    ("analytics", "overview"),
    ("overview",),
    ("summary",),
    ("analytics", "summary"),
)
TIME_SERIES_PATHS: tuple[PathProbe, ...] = (
    ("analytics", "time_series"),
    ("time_series",),
)
TRAFFIC_OVERVIEW_PATHS: tuple[PathProbe, ...] = (
    ("analytics", "overview"),
    ("overview",),
)
EVENT_TYPE_PATHS: tuple[PathProbe, ...] = (
    ("analytics", "event_types"),
    ("event_types",),
)
CONVERSION_RATE_PATHS: tuple[PathProbe, ...] = (
    ("analytics", "conversion_rates"),
    ("conversion_rates",),
)
PRODUCT_VIEW_PATHS: tuple[PathProbe, ...] = (("products",), ("analytics", "products"))
PREDICTION_PATHS: tuple[PathProbe, ...] = (("predictions",), ("analytics", "predictions"))
PROMOTION_PATHS: tuple[PathProbe, ...] = (("suggestions",), ("promotions",))
PRICING_PATHS: tuple[PathProbe, ...] = (("analysis",), ("strategy",))
INVENTORY_PATHS: tuple[PathProbe, ...] = (("summary",), ())
LOW_STOCK_PATHS: tuple[PathProbe, ...] = (("products",), ("low_stock",))
ORDER_LIST_PATHS: tuple[PathProbe, ...] = (("orders",), ())

_PRIORITIES = ("high", "medium", "low")


def probe(
    payload: Any,
    paths: Sequence[PathProbe],
    *,
    expect: type | tuple[type, ...] = dict,
) -> Any | None:
    """Return the value at the first path that holds a non-null ``expect`` value."""

    for path in paths:
        node = payload
        for key in path:
            if not isinstance(node, dict):
                node = None
                break
            node = node.get(key)
        if node is not None and isinstance(node, expect):
            return node
    return None


# ----------------------------------------------------------------------
# Numeric coercion


def _is_numeric_input(value: Any) -> bool:
    return value is not None and not isinstance(value, bool)


def to_decimal(value: Any) -> Decimal:
    """Parse sums and amounts; anything unusable becomes zero."""

    if not _is_numeric_input(value):
        return Decimal("0")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not parsed.is_finite():
        return Decimal("0")
    return parsed


def to_int(value: Any) -> int:
    """Parse counts; anything unusable becomes zero."""

    if not _is_numeric_input(value):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        float_val = _parse_float(value)
        if float_val is None:
            return 0
        return int(round(float_val))


def to_rate(value: Any) -> float | None:
    """Parse rates and percentages; unknown stays ``None`` because 0% is a real value."""

    if not _is_numeric_input(value):
        return None
    return _parse_float(value)


def to_float(value: Any) -> float:
    parsed = to_rate(value)
    return 0.0 if parsed is None else parsed


def _parse_float(value: Any) -> float | None:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, TypeError, OverflowError):
        return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


# ----------------------------------------------------------------------
# Per-domain normalizers


def normalize_sales_summary(payload: Any) -> NormalizedSalesSummary | None:
    overview = probe(payload, SALES_OVERVIEW_PATHS)
    if overview is None:
        return None

    total_revenue = to_decimal(overview.get("total_revenue"))
    total_orders = to_int(overview.get("total_orders"))
    if _is_numeric_input(overview.get("average_order_value")):
        average_order_value = to_decimal(overview.get("average_order_value"))
    else:
        average_order_value = (
            total_revenue / total_orders if total_orders else Decimal("0")
        )

    return NormalizedSalesSummary(
        total_revenue=total_revenue,
        total_orders=total_orders,
        average_order_value=average_order_value,
        growth_rate_percent=to_rate(overview.get("growth_rate")),
        conversion_rate_percent=to_rate(overview.get("conversion_rate")),
    )


def empty_sales_summary() -> NormalizedSalesSummary:
    return NormalizedSalesSummary(
        total_revenue=Decimal("0"),
        total_orders=0,
        average_order_value=Decimal("0"),
        growth_rate_percent=None,
        conversion_rate_percent=None,
    )


def normalize_conversion_rates(payload: Any) -> ConversionRates:
    rates = probe(payload, CONVERSION_RATE_PATHS)
    if rates is None:
        return ConversionRates()
    return ConversionRates(
        cart_conversion=to_rate(rates.get("cart_conversion")),
        purchase_conversion=to_rate(rates.get("purchase_conversion")),
        overall_conversion=to_rate(rates.get("overall_conversion")),
    )


def normalize_event_counts(payload: Any) -> dict[str, int]:
    events = probe(payload, EVENT_TYPE_PATHS)
    if events is None:
        return {}
    return {str(name): to_int(count) for name, count in events.items()}


def normalize_traffic_summary(payload: Any) -> NormalizedTrafficSummary | None:
    overview = probe(payload, TRAFFIC_OVERVIEW_PATHS)
    if overview is None:
        return None
    return NormalizedTrafficSummary(
        total_views=to_int(overview.get("total_views")),
        unique_visitors=to_int(overview.get("unique_visitors")),
        unique_sessions=to_int(overview.get("unique_sessions")),
        avg_views_per_session=to_float(overview.get("average_views_per_session")),
        event_counts=normalize_event_counts(payload),
        conversion_rates=normalize_conversion_rates(payload),
    )


def empty_traffic_summary() -> NormalizedTrafficSummary:
    return NormalizedTrafficSummary(
        total_views=0,
        unique_visitors=0,
        unique_sessions=0,
        avg_views_per_session=0.0,
    )


def normalize_time_series_point(raw_point: dict[str, Any]) -> TimeSeriesPoint | None:
    bucket = _parse_date(raw_point.get("date") or raw_point.get("period"))
    if bucket is None:
        return None
    return TimeSeriesPoint(
        date=bucket,
        revenue=to_decimal(raw_point.get("revenue")),
        orders=to_int(raw_point.get("orders")),
        views=to_int(raw_point.get("views")),
        unique_visitors=to_int(raw_point.get("unique_visitors")),
        unique_sessions=to_int(raw_point.get("unique_sessions")),
    )


def normalize_time_series(payload: Any) -> list[TimeSeriesPoint]:
    raw_series = probe(payload, TIME_SERIES_PATHS, expect=list)
    if raw_series is None:
        return []
    points: list[TimeSeriesPoint] = []
    for raw_point in raw_series:
        if not isinstance(raw_point, dict):
            continue
        point = normalize_time_series_point(raw_point)
        if point is None:
            logger.debug("Skipping time series bucket without a usable date: {}", raw_point)
            continue
        points.append(point)
    points.sort(key=lambda item: item.date)
    return points


def normalize_product_views(payload: Any) -> list[ProductViewCount]:
    raw_products = probe(payload, PRODUCT_VIEW_PATHS, expect=list)
    if raw_products is None:
        return []
    products: list[ProductViewCount] = []
    for raw_product in raw_products:
        if not isinstance(raw_product, dict):
            continue
        raw_id = raw_product.get("product_id") or raw_product.get("id")
        name = raw_product.get("product_name") or raw_product.get("name") or "Unknown product"
        products.append(
            ProductViewCount(
                product_id=str(raw_id) if raw_id else None,
                product_name=str(name),
                views=to_int(raw_product.get("views") or raw_product.get("view_count")),
            )
        )
    return products


def _normalize_forecast_window(raw_window: Any) -> ForecastWindow | None:
    if not isinstance(raw_window, dict):
        return None
    raw_confidence = raw_window.get("confidence")
    confidence_level = raw_window.get("confidence_level")
    if isinstance(raw_confidence, str) and to_rate(raw_confidence) is None:
        confidence_level = confidence_level or raw_confidence
    return ForecastWindow(
        predicted_revenue=to_decimal(raw_window.get("predicted_revenue")),
        predicted_orders=to_int(raw_window.get("predicted_orders")),
        confidence=to_rate(raw_confidence),
        confidence_level=str(confidence_level) if confidence_level else None,
    )


def normalize_sales_forecast(payload: Any) -> SalesForecast | None:
    predictions = probe(payload, PREDICTION_PATHS)
    if predictions is None:
        return None
    return SalesForecast(
        next_7_days=_normalize_forecast_window(predictions.get("next_7_days")),
        next_30_days=_normalize_forecast_window(predictions.get("next_30_days")),
        recommendations=_string_list(predictions.get("recommendations")),
    )


def normalize_priority(value: Any) -> str:
    lowered = str(value).strip().lower() if value is not None else ""
    if lowered in _PRIORITIES[:2]:
        return lowered
    return "low"


def normalize_promotions(payload: Any) -> list[PromoSuggestion] | None:
    raw_suggestions = probe(payload, PROMOTION_PATHS, expect=list)
    if raw_suggestions is None:
        return None
    suggestions: list[PromoSuggestion] = []
    for raw in raw_suggestions:
        if not isinstance(raw, dict):
            continue
        products: list[str] = []
        for product in raw.get("products") or []:
            if isinstance(product, dict):
                name = product.get("name")
                if name:
                    products.append(str(name))
            elif product is not None:
                products.append(str(product))
        impact = raw.get("expected_impact")
        suggestions.append(
            PromoSuggestion(
                type=str(raw.get("type") or "Promotion"),
                title=str(raw.get("title") or "Promotional Opportunity"),
                description=str(raw.get("description") or "No description available"),
                priority=normalize_priority(raw.get("priority")),
                products=products,
                expected_impact=str(impact) if impact else None,
            )
        )
    return suggestions


def normalize_pricing_strategy(payload: Any) -> PricingStrategy | None:
    analysis = probe(payload, PRICING_PATHS)
    if analysis is None:
        return None
    return PricingStrategy(
        current_strategy=str(analysis.get("current_strategy") or "Standard pricing"),
        recommendations=_string_list(analysis.get("recommendations")),
        opportunities=_string_list(analysis.get("opportunities")),
    )


def normalize_inventory_summary(payload: Any) -> InventorySummary | None:
    summary = probe(payload, INVENTORY_PATHS)
    if summary is None:
        return None
    return InventorySummary(
        total_products=to_int(summary.get("total_products")),
        tracking_inventory=to_int(summary.get("tracking_inventory")),
        total_quantity=to_int(summary.get("total_quantity")),
        low_stock_count=to_int(summary.get("low_stock_count")),
        out_of_stock_count=to_int(summary.get("out_of_stock_count")),
    )


def normalize_low_stock(payload: Any) -> list[LowStockProduct]:
    raw_products = probe(payload, LOW_STOCK_PATHS, expect=list)
    if raw_products is None:
        return []
    products: list[LowStockProduct] = []
    for raw in raw_products:
        if not isinstance(raw, dict):
            continue
        stock = raw.get("stock")
        if stock is None:
            stock = raw.get("inventory_quantity", raw.get("quantity"))
        products.append(
            LowStockProduct(
                product_id=str(raw.get("id") or raw.get("product_id") or ""),
                name=str(raw.get("name") or raw.get("product_name") or ""),
                stock=to_int(stock),
                low_stock_threshold=to_int(raw.get("low_stock_threshold")),
            )
        )
    return products


def extract_orders(payload: Any) -> list[dict[str, Any]]:
    raw_orders = probe(payload, ORDER_LIST_PATHS, expect=list)
    if raw_orders is None:
        return []
    return [order for order in raw_orders if isinstance(order, dict)]


# ----------------------------------------------------------------------
# Outcome set -> snapshot


@dataclass(slots=True)
class NormalizedSnapshot:
    """Canonical view of one collection cycle's outcomes.

    ``populated`` lists the domains whose payload matched a known shape, which
    is how "no data yet" is told apart from zero-valued defaults.
    """

    sales_summary: NormalizedSalesSummary | None = None
    traffic_summary: NormalizedTrafficSummary | None = None
    revenue_series: list[TimeSeriesPoint] = field(default_factory=list)
    traffic_series: list[TimeSeriesPoint] = field(default_factory=list)
    product_views: list[ProductViewCount] = field(default_factory=list)
    forecast: SalesForecast | None = None
    promotions: list[PromoSuggestion] | None = None
    pricing: PricingStrategy | None = None
    inventory: InventorySummary | None = None
    low_stock: list[LowStockProduct] | None = None
    populated: frozenset[SourceDomain] = frozenset()

    def has(self, *domains: SourceDomain) -> bool:
        return any(domain in self.populated for domain in domains)


# Dispatch order is fixed by domain, independent of the order requests were issued.
_DISPATCH_ORDER: tuple[SourceDomain, ...] = (
    SourceDomain.SALES,
    SourceDomain.SALES_SUMMARY,
    SourceDomain.TRAFFIC,
    SourceDomain.PRODUCT_VIEWS,
    SourceDomain.PREDICTIONS,
    SourceDomain.PROMOTIONS,
    SourceDomain.PRICING,
    SourceDomain.INVENTORY,
    SourceDomain.LOW_STOCK,
)


def normalize_outcomes(outcomes: Iterable[SourceOutcome]) -> NormalizedSnapshot:
    by_domain: dict[SourceDomain, SourceOutcome] = {}
    for outcome in outcomes:
        by_domain[outcome.domain] = outcome

    snapshot = NormalizedSnapshot()
    populated: set[SourceDomain] = set()

    for domain in _DISPATCH_ORDER:
        outcome = by_domain.get(domain)
        if outcome is None or outcome.status == OutcomeStatus.FAILED:
            continue
        payload = outcome.payload if outcome.status == OutcomeStatus.OK else None
        if _apply_domain(snapshot, domain, payload):
            populated.add(domain)

    snapshot.populated = frozenset(populated)
    return snapshot


def _apply_domain(
    snapshot: NormalizedSnapshot, domain: SourceDomain, payload: dict[str, Any] | None
) -> bool:
    """Fold one usable domain into the snapshot; return True when real data matched."""

    if domain in (SourceDomain.SALES, SourceDomain.SALES_SUMMARY):
        summary = normalize_sales_summary(payload)
        if domain == SourceDomain.SALES:
            snapshot.revenue_series = normalize_time_series(payload)
        if snapshot.sales_summary is None or (
            summary is not None and domain == SourceDomain.SALES
        ):
            snapshot.sales_summary = summary or empty_sales_summary()
        return summary is not None

    if domain == SourceDomain.TRAFFIC:
        summary = normalize_traffic_summary(payload)
        snapshot.traffic_summary = summary or empty_traffic_summary()
        snapshot.traffic_series = normalize_time_series(payload)
        if summary is None:
            # Event counts and conversion rates can arrive without an overview.
            snapshot.traffic_summary.event_counts = normalize_event_counts(payload)
            snapshot.traffic_summary.conversion_rates = normalize_conversion_rates(payload)
        return summary is not None

    if domain == SourceDomain.PRODUCT_VIEWS:
        snapshot.product_views = normalize_product_views(payload)
        return bool(snapshot.product_views)

    if domain == SourceDomain.PREDICTIONS:
        snapshot.forecast = normalize_sales_forecast(payload)
        return snapshot.forecast is not None

    if domain == SourceDomain.PROMOTIONS:
        promotions = normalize_promotions(payload)
        snapshot.promotions = promotions or []
        return promotions is not None

    if domain == SourceDomain.PRICING:
        snapshot.pricing = normalize_pricing_strategy(payload)
        return snapshot.pricing is not None

    if domain == SourceDomain.INVENTORY:
        inventory = normalize_inventory_summary(payload)
        snapshot.inventory = inventory or InventorySummary()
        return inventory is not None

    if domain == SourceDomain.LOW_STOCK:
        snapshot.low_stock = normalize_low_stock(payload)
        return bool(snapshot.low_stock)

    return False


__all__ = [
    "NormalizedSnapshot",
    "extract_orders",
    "normalize_outcomes",
    "normalize_sales_summary",
    "normalize_time_series",
    "normalize_traffic_summary",
    "probe",
    "to_decimal",
    "to_int",
    "to_rate",
]
