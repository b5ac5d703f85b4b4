"""Pure derivations over a normalized snapshot. Nothing here performs I/O."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import Decimal
from enum import Enum

from ingestion.normalize import NormalizedSnapshot
from storepulse.domain import (
    DerivedMetrics,
    InventoryAlert,
    InventorySummary,
    LowStockProduct,
    NormalizedSalesSummary,
    NormalizedTrafficSummary,
    SourceDomain,
    TimeSeriesPoint,
)

# Fixed policy, deliberately not exposed through Settings.
GROWTH_TREND_THRESHOLD_PERCENT = 5.0
HEALTHY_CONVERSION_THRESHOLD_PERCENT = 3.0


class GrowthTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class ConversionHealth(str, Enum):
    HEALTHY = "healthy"
    NEEDS_IMPROVEMENT = "needs_improvement"


def classify_growth(growth_rate_percent: float | None) -> GrowthTrend | None:
    if growth_rate_percent is None:
        return None
    if growth_rate_percent > GROWTH_TREND_THRESHOLD_PERCENT:
        return GrowthTrend.UP
    if growth_rate_percent < -GROWTH_TREND_THRESHOLD_PERCENT:
        return GrowthTrend.DOWN
    return GrowthTrend.NEUTRAL


def classify_conversion(conversion_percent: float | None) -> ConversionHealth | None:
    if conversion_percent is None:
        return None
    if conversion_percent >= HEALTHY_CONVERSION_THRESHOLD_PERCENT:
        return ConversionHealth.HEALTHY
    return ConversionHealth.NEEDS_IMPROVEMENT


def _first_maximum(
    series: Sequence[TimeSeriesPoint],
    key: Callable[[TimeSeriesPoint], Decimal | int],
) -> TimeSeriesPoint | None:
    best: TimeSeriesPoint | None = None
    # sorted() is stable, so equal dates keep their arrival order too.
    for point in sorted(series, key=lambda item: item.date):
        if best is None or key(point) > key(best):
            best = point
    return best


def best_revenue_day(series: Sequence[TimeSeriesPoint]) -> TimeSeriesPoint | None:
    """Highest-revenue bucket; ties go to the chronologically first day."""

    return _first_maximum(series, lambda point: point.revenue)


def best_traffic_day(series: Sequence[TimeSeriesPoint]) -> TimeSeriesPoint | None:
    return _first_maximum(series, lambda point: point.views)


def effective_conversion(
    traffic: NormalizedTrafficSummary | None,
    sales: NormalizedSalesSummary | None,
) -> float | None:
    """Resolve purchase conversion: traffic purchase, traffic overall, then sales."""

    if traffic is not None:
        rates = traffic.conversion_rates
        if rates.purchase_conversion is not None:
            return rates.purchase_conversion
        if rates.overall_conversion is not None:
            return rates.overall_conversion
    if sales is not None:
        return sales.conversion_rate_percent
    return None


def period_growth(series: Sequence[TimeSeriesPoint]) -> float | None:
    """Revenue growth of the later half of the window over the earlier half."""

    ordered = sorted(series, key=lambda item: item.date)
    half = len(ordered) // 2
    if half == 0:
        return None
    earlier = sum((point.revenue for point in ordered[:half]), Decimal("0"))
    later = sum((point.revenue for point in ordered[len(ordered) - half :]), Decimal("0"))
    if earlier <= 0:
        return None
    return float((later - earlier) / earlier * 100)


def average_order_value(total_revenue: Decimal, total_orders: int) -> Decimal:
    if total_orders <= 0:
        return Decimal("0")
    return total_revenue / total_orders


def stock_aggregates(
    inventory: InventorySummary | None,
    low_stock: Sequence[LowStockProduct] | None,
) -> tuple[int | None, int | None]:
    """Return ``(low_stock_count, out_of_stock_count)`` from the best available source."""

    if inventory is not None:
        return inventory.low_stock_count, inventory.out_of_stock_count
    if low_stock is not None:
        out_of_stock = sum(1 for product in low_stock if product.stock <= 0)
        return len(low_stock), out_of_stock
    return None, None


def derive_metrics(snapshot: NormalizedSnapshot) -> DerivedMetrics:
    sales = snapshot.sales_summary
    growth = sales.growth_rate_percent if sales is not None else None
    if growth is None and snapshot.has(SourceDomain.SALES):
        growth = period_growth(snapshot.revenue_series)

    inventory = snapshot.inventory if snapshot.has(SourceDomain.INVENTORY) else None
    low_count, out_count = stock_aggregates(inventory, snapshot.low_stock)
    if low_count is None and snapshot.inventory is not None:
        # Inventory answered successfully but empty.
        low_count, out_count = 0, 0

    return DerivedMetrics(
        best_revenue_day=best_revenue_day(snapshot.revenue_series),
        best_traffic_day=best_traffic_day(snapshot.traffic_series),
        effective_conversion=effective_conversion(snapshot.traffic_summary, sales),
        growth_rate_percent=growth,
        average_order_value=sales.average_order_value if sales is not None else None,
        low_stock_count=low_count,
        out_of_stock_count=out_count,
    )


def inventory_alerts(derived: DerivedMetrics) -> list[InventoryAlert]:
    low = derived.low_stock_count
    out = derived.out_of_stock_count
    if low is None and out is None:
        return []

    alerts: list[InventoryAlert] = []
    if low:
        alerts.append(
            InventoryAlert(
                title="Low Stock Items",
                message=f"{low} products need restocking",
                level="warning",
            )
        )
    if out:
        alerts.append(
            InventoryAlert(
                title="Out of Stock",
                message=f"{out} products are out of stock",
                level="danger",
            )
        )
    if not low and not out:
        alerts.append(
            InventoryAlert(
                title="Inventory Status",
                message="All products are well-stocked",
                level="success",
            )
        )
    return alerts


__all__ = [
    "ConversionHealth",
    "GROWTH_TREND_THRESHOLD_PERCENT",
    "GrowthTrend",
    "HEALTHY_CONVERSION_THRESHOLD_PERCENT",
    "average_order_value",
    "best_revenue_day",
    "best_traffic_day",
    "classify_conversion",
    "classify_growth",
    "derive_metrics",
    "effective_conversion",
    "inventory_alerts",
    "period_growth",
    "stock_aggregates",
]
