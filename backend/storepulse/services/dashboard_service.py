"""Assemble the analytics dashboard and store insights views for one store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Protocol

from loguru import logger

from ingestion.client import SourceRequestError, is_store_uuid, read_envelope
from ingestion.collector import SourceRequest, collect
from ingestion.normalize import NormalizedSnapshot, normalize_outcomes, probe
from storepulse.core.config import Settings, get_settings
from storepulse.domain import (
    DerivedMetrics,
    HighlightMetric,
    Insight,
    InventoryAlert,
    InventorySummary,
    NormalizedSalesSummary,
    NormalizedTrafficSummary,
    OutcomeStatus,
    PricingStrategy,
    PromoSuggestion,
    SalesForecast,
    SourceDomain,
    SourceOutcome,
    TimeSeriesPoint,
)

from .cycles import CycleTracker
from .insight_service import InsightInputs, synthesize_insights
from .metrics_service import derive_metrics, inventory_alerts

TOP_PRODUCT_COUNT = 5
PRODUCT_NAME_DISPLAY_LENGTH = 20

EVENT_TYPE_LABELS: tuple[tuple[str, str], ...] = (
    ("page_view", "Page Views"),
    ("product_view", "Product Views"),
    ("add_to_cart", "Add to Cart"),
    ("purchase", "Purchases"),
    ("search", "Searches"),
)


class StoreLookupError(Exception):
    """Raised when a store reference cannot be resolved to a store id."""

    def __init__(self, store_ref: str, message: str | None = None) -> None:
        self.store_ref = store_ref
        self.message = message or f"Store '{store_ref}' not found"
        super().__init__(self.message)


class DashboardSource(Protocol):
    async def get_sales_analytics(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_traffic_analytics(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_product_view_analytics(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_sales_summary(self, store_id: str, period: int = 30) -> dict[str, Any]: ...

    async def get_sales_predictions(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_promo_suggestions(self, store_id: str) -> dict[str, Any]: ...

    async def get_pricing_strategy(self, store_id: str) -> dict[str, Any]: ...

    async def get_inventory_summary(self, store_id: str) -> dict[str, Any]: ...

    async def get_store(self, store_id: str) -> dict[str, Any]: ...

    async def get_store_by_slug(self, slug: str) -> dict[str, Any]: ...


@dataclass(slots=True, frozen=True)
class EventBreakdownEntry:
    event_type: str
    label: str
    count: int


@dataclass(slots=True, frozen=True)
class TopProduct:
    product_id: str | None
    name: str
    views: int


@dataclass(slots=True)
class AnalyticsDashboard:
    store_id: str
    period_days: int
    generated_at: datetime
    sales_summary: NormalizedSalesSummary | None
    traffic_summary: NormalizedTrafficSummary | None
    revenue_series: list[TimeSeriesPoint]
    traffic_series: list[TimeSeriesPoint]
    event_breakdown: list[EventBreakdownEntry]
    top_products: list[TopProduct]
    highlights: list[HighlightMetric]
    derived: DerivedMetrics
    insights: list[Insight]
    has_any_data: bool
    failed_domains: list[SourceDomain] = field(default_factory=list)


@dataclass(slots=True)
class StoreInsightsView:
    store_id: str
    period_days: int
    generated_at: datetime
    forecast: SalesForecast | None
    promotions: list[PromoSuggestion] | None
    pricing: PricingStrategy | None
    inventory: InventorySummary | None
    inventory_alerts: list[InventoryAlert]
    sales_summary: NormalizedSalesSummary | None
    traffic_summary: NormalizedTrafficSummary | None
    has_any_insights: bool
    failed_domains: list[SourceDomain] = field(default_factory=list)


# ----------------------------------------------------------------------
# Request sets


def analytics_requests(
    client: DashboardSource, store_id: str, *, period: int, product_limit: int
) -> list[SourceRequest]:
    return [
        SourceRequest(
            SourceDomain.SALES,
            partial(client.get_sales_analytics, store_id, period=period, group_by="day"),
        ),
        SourceRequest(
            SourceDomain.TRAFFIC,
            partial(client.get_traffic_analytics, store_id, period=period, group_by="day"),
        ),
        SourceRequest(
            SourceDomain.PRODUCT_VIEWS,
            partial(
                client.get_product_view_analytics, store_id, period=period, limit=product_limit
            ),
        ),
    ]


def insight_requests(client: DashboardSource, store_id: str, *, period: int) -> list[SourceRequest]:
    return [
        SourceRequest(
            SourceDomain.PREDICTIONS,
            partial(client.get_sales_predictions, store_id, period=period),
        ),
        SourceRequest(SourceDomain.PROMOTIONS, partial(client.get_promo_suggestions, store_id)),
        SourceRequest(SourceDomain.PRICING, partial(client.get_pricing_strategy, store_id)),
        SourceRequest(SourceDomain.INVENTORY, partial(client.get_inventory_summary, store_id)),
        SourceRequest(
            SourceDomain.SALES_SUMMARY, partial(client.get_sales_summary, store_id, period)
        ),
        SourceRequest(
            SourceDomain.TRAFFIC, partial(client.get_traffic_analytics, store_id, period=period)
        ),
    ]


# ----------------------------------------------------------------------
# View helpers


def event_breakdown(traffic: NormalizedTrafficSummary | None) -> list[EventBreakdownEntry]:
    if traffic is None:
        return []
    entries = [
        EventBreakdownEntry(event_type=key, label=label, count=traffic.event_counts.get(key, 0))
        for key, label in EVENT_TYPE_LABELS
    ]
    return [entry for entry in entries if entry.count > 0]


def _display_name(name: str) -> str:
    if len(name) > PRODUCT_NAME_DISPLAY_LENGTH:
        return name[:PRODUCT_NAME_DISPLAY_LENGTH] + "..."
    return name


def top_products(snapshot: NormalizedSnapshot) -> list[TopProduct]:
    return [
        TopProduct(
            product_id=product.product_id,
            name=_display_name(product.product_name),
            views=product.views,
        )
        for product in snapshot.product_views[:TOP_PRODUCT_COUNT]
    ]


def highlight_metrics(
    snapshot: NormalizedSnapshot, derived: DerivedMetrics, period_days: int
) -> list[HighlightMetric]:
    highlights: list[HighlightMetric] = []
    sales = snapshot.sales_summary
    if sales is not None and snapshot.has(SourceDomain.SALES, SourceDomain.SALES_SUMMARY):
        highlights.extend(
            [
                HighlightMetric(
                    label="Revenue",
                    value=sales.total_revenue,
                    helper=f"{period_days}-day total",
                    delta=derived.growth_rate_percent,
                ),
                HighlightMetric(
                    label="Orders", value=sales.total_orders, helper="Orders processed"
                ),
                HighlightMetric(
                    label="Avg. order value",
                    value=sales.average_order_value,
                    helper="Per delivered order",
                ),
            ]
        )

    traffic = snapshot.traffic_summary
    if traffic is not None and snapshot.has(SourceDomain.TRAFFIC):
        highlights.extend(
            [
                HighlightMetric(
                    label="Total views", value=traffic.total_views, helper="Store impressions"
                ),
                HighlightMetric(
                    label="Unique visitors",
                    value=traffic.unique_visitors,
                    helper="People reached",
                ),
                HighlightMetric(
                    label="Avg. views/session",
                    value=traffic.avg_views_per_session,
                    helper="Engagement depth",
                ),
            ]
        )

    if derived.effective_conversion is not None:
        highlights.append(
            HighlightMetric(
                label="Purchase conversion",
                value=derived.effective_conversion,
                helper="Views → purchases",
            )
        )
    return highlights


def _failed_domains(outcomes: list[SourceOutcome]) -> list[SourceDomain]:
    return [outcome.domain for outcome in outcomes if outcome.status == OutcomeStatus.FAILED]


def build_analytics_dashboard(
    store_id: str,
    period_days: int,
    outcomes: list[SourceOutcome],
    *,
    currency_symbol: str | None = None,
) -> AnalyticsDashboard:
    snapshot = normalize_outcomes(outcomes)
    derived = derive_metrics(snapshot)
    breakdown = event_breakdown(snapshot.traffic_summary)
    products = top_products(snapshot)

    has_any_data = bool(
        snapshot.revenue_series
        or snapshot.traffic_series
        or breakdown
        or products
        or snapshot.has(SourceDomain.SALES, SourceDomain.TRAFFIC)
    )
    insights = synthesize_insights(
        InsightInputs(
            derived=derived,
            sales_summary=snapshot.sales_summary,
            traffic_summary=snapshot.traffic_summary,
            has_any_data=has_any_data,
        ),
        currency_symbol=currency_symbol,
    )

    return AnalyticsDashboard(
        store_id=store_id,
        period_days=period_days,
        generated_at=datetime.now(timezone.utc),
        sales_summary=snapshot.sales_summary,
        traffic_summary=snapshot.traffic_summary,
        revenue_series=snapshot.revenue_series,
        traffic_series=snapshot.traffic_series,
        event_breakdown=breakdown,
        top_products=products,
        highlights=highlight_metrics(snapshot, derived, period_days),
        derived=derived,
        insights=insights,
        has_any_data=has_any_data,
        failed_domains=_failed_domains(outcomes),
    )


def build_store_insights(
    store_id: str,
    period_days: int,
    outcomes: list[SourceOutcome],
    *,
    promo_display_limit: int,
) -> StoreInsightsView:
    snapshot = normalize_outcomes(outcomes)
    derived = derive_metrics(snapshot)
    promotions = snapshot.promotions
    if promotions is not None:
        promotions = promotions[:promo_display_limit]

    return StoreInsightsView(
        store_id=store_id,
        period_days=period_days,
        generated_at=datetime.now(timezone.utc),
        forecast=snapshot.forecast,
        promotions=promotions,
        pricing=snapshot.pricing,
        inventory=snapshot.inventory,
        inventory_alerts=inventory_alerts(derived),
        sales_summary=snapshot.sales_summary,
        traffic_summary=snapshot.traffic_summary,
        has_any_insights=bool(snapshot.populated) or promotions is not None,
        failed_domains=_failed_domains(outcomes),
    )


# ----------------------------------------------------------------------
# Service


class DashboardService:
    """Collects and assembles dashboard views; one instance per console session."""

    def __init__(self, client: DashboardSource, *, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._analytics_cycles: CycleTracker[AnalyticsDashboard] = CycleTracker(name="analytics")
        self._insights_cycles: CycleTracker[StoreInsightsView] = CycleTracker(name="insights")

    async def resolve_store(self, store_ref: str) -> str:
        """Resolve a store id or slug to the store's id."""

        store_ref = store_ref.strip()
        if not store_ref:
            raise StoreLookupError(store_ref, "Store reference must not be empty")
        try:
            if is_store_uuid(store_ref):
                payload = await self._client.get_store(store_ref)
            else:
                payload = await self._client.get_store_by_slug(store_ref)
        except SourceRequestError as exc:
            raise StoreLookupError(store_ref, exc.message) from exc

        envelope = read_envelope(payload)
        if not envelope.success or not envelope.has_data:
            message = envelope.error.message if envelope.error else None
            raise StoreLookupError(store_ref, message)
        store = probe(envelope.data, (("store",), ()))
        store_id = store.get("id") if store else None
        if not store_id:
            raise StoreLookupError(store_ref, f"Store '{store_ref}' has no id")
        return str(store_id)

    async def load_analytics(self, store_id: str, period: int | None = None) -> AnalyticsDashboard:
        period_days = period or self._settings.default_period_days
        outcomes = await collect(
            analytics_requests(
                self._client,
                store_id,
                period=period_days,
                product_limit=self._settings.product_view_limit,
            )
        )
        dashboard = build_analytics_dashboard(
            store_id,
            period_days,
            outcomes,
            currency_symbol=self._settings.currency_symbol,
        )
        logger.info(
            "Analytics cycle for store {} complete: {} insights, failed domains={}",
            store_id,
            len(dashboard.insights),
            [domain.value for domain in dashboard.failed_domains],
        )
        return dashboard

    async def load_insights(self, store_id: str, period: int | None = None) -> StoreInsightsView:
        period_days = period or self._settings.default_period_days
        outcomes = await collect(insight_requests(self._client, store_id, period=period_days))
        view = build_store_insights(
            store_id,
            period_days,
            outcomes,
            promo_display_limit=self._settings.promo_display_limit,
        )
        logger.info(
            "Insights cycle for store {} complete: has_any_insights={}, failed domains={}",
            store_id,
            view.has_any_insights,
            [domain.value for domain in view.failed_domains],
        )
        return view

    async def refresh_analytics(
        self, store_id: str, period: int | None = None
    ) -> AnalyticsDashboard | None:
        """Start a new analytics cycle; a superseded cycle never replaces newer state."""

        cycle_id = self._analytics_cycles.begin()
        dashboard = await self.load_analytics(store_id, period)
        self._analytics_cycles.publish(cycle_id, dashboard)
        return self._analytics_cycles.latest

    async def refresh_insights(
        self, store_id: str, period: int | None = None
    ) -> StoreInsightsView | None:
        cycle_id = self._insights_cycles.begin()
        view = await self.load_insights(store_id, period)
        self._insights_cycles.publish(cycle_id, view)
        return self._insights_cycles.latest


__all__ = [
    "AnalyticsDashboard",
    "DashboardService",
    "EVENT_TYPE_LABELS",
    "EventBreakdownEntry",
    "StoreInsightsView",
    "StoreLookupError",
    "TopProduct",
    "analytics_requests",
    "build_analytics_dashboard",
    "build_store_insights",
    "event_breakdown",
    "highlight_metrics",
    "insight_requests",
    "top_products",
]
