"""Rule-based synthesis of human-readable store insights.

Rules are evaluated in a fixed order and every matching rule fires; this is not
a first-match chain. The synthesizer never truncates its output, callers take
the display prefix they need.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from storepulse.core.config import settings
from storepulse.domain import (
    DerivedMetrics,
    Insight,
    InsightTone,
    NormalizedSalesSummary,
    NormalizedTrafficSummary,
)

from .metrics_service import (
    ConversionHealth,
    GrowthTrend,
    classify_conversion,
    classify_growth,
)


@dataclass(slots=True, frozen=True)
class InsightInputs:
    derived: DerivedMetrics
    sales_summary: NormalizedSalesSummary | None = None
    traffic_summary: NormalizedTrafficSummary | None = None
    has_any_data: bool = False


@dataclass(slots=True, frozen=True)
class InsightDraft:
    title: str
    detail: str
    tone: InsightTone


InsightRule = Callable[[InsightInputs, str], InsightDraft | None]


def format_currency(amount: Decimal | float | int, symbol: str) -> str:
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{symbol}{value:,.2f}"


def _format_day(day: date) -> str:
    return f"{day:%b} {day.day}"


def growth_rule(inputs: InsightInputs, currency: str) -> InsightDraft | None:
    growth = inputs.derived.growth_rate_percent
    trend = classify_growth(growth)
    if trend == GrowthTrend.UP:
        return InsightDraft(
            title="Revenue trending up",
            detail=(
                f"Sales climbed {growth:.1f}% vs the previous window. "
                "Keep inventory stocked to ride the momentum."
            ),
            tone=InsightTone.POSITIVE,
        )
    if trend == GrowthTrend.DOWN:
        return InsightDraft(
            title="Revenue slowdown detected",
            detail=(
                f"Revenue dipped {abs(growth):.1f}%. "
                "Refresh promotions or review pricing to spark activity."
            ),
            tone=InsightTone.WARNING,
        )
    return None


def conversion_rule(inputs: InsightInputs, currency: str) -> InsightDraft | None:
    conversion = inputs.derived.effective_conversion
    health = classify_conversion(conversion)
    if health == ConversionHealth.HEALTHY:
        return InsightDraft(
            title="Healthy buyer conversion",
            detail=(
                f"Roughly {conversion:.1f}% of engaged shoppers complete a purchase, "
                "stronger than most new stores."
            ),
            tone=InsightTone.POSITIVE,
        )
    if health == ConversionHealth.NEEDS_IMPROVEMENT:
        return InsightDraft(
            title="Boost checkout conversion",
            detail=(
                f"Only {conversion:.1f}% of engaged visitors purchase. "
                "Simplify checkout or add trust markers to recover carts."
            ),
            tone=InsightTone.WARNING,
        )
    return None


def best_sales_day_rule(inputs: InsightInputs, currency: str) -> InsightDraft | None:
    best = inputs.derived.best_revenue_day
    if best is None:
        return None
    return InsightDraft(
        title="Best sales day",
        detail=(
            f"{_format_day(best.date)} brought in {format_currency(best.revenue, currency)} "
            f"from {best.orders} orders. Mirror the campaigns you ran that day."
        ),
        tone=InsightTone.INFO,
    )


def peak_traffic_rule(inputs: InsightInputs, currency: str) -> InsightDraft | None:
    best = inputs.derived.best_traffic_day
    if best is None or best.views <= 0:
        return None
    return InsightDraft(
        title="Peak traffic spike",
        detail=(
            f"{_format_day(best.date)} delivered {best.views:,} views. "
            "Consider retargeting those visitors."
        ),
        tone=InsightTone.INFO,
    )


def unconverted_views_rule(inputs: InsightInputs, currency: str) -> InsightDraft | None:
    traffic = inputs.traffic_summary
    if traffic is None:
        return None
    counts = traffic.event_counts
    # add_to_cart must be reported as exactly zero; a missing counter is not zero.
    if counts.get("product_view", 0) > 0 and counts.get("add_to_cart") == 0:
        return InsightDraft(
            title="Views are not converting",
            detail=(
                "Customers are browsing but not adding to cart. Double-check product "
                "imagery, price anchoring, and featured benefits."
            ),
            tone=InsightTone.WARNING,
        )
    return None


DEFAULT_RULES: tuple[InsightRule, ...] = (
    growth_rule,
    conversion_rule,
    best_sales_day_rule,
    peak_traffic_rule,
    unconverted_views_rule,
)

ANALYTICS_READY = InsightDraft(
    title="Analytics ready",
    detail=(
        "Great job collecting traffic and order signals. Use the charts below to "
        "decide which channels to scale next."
    ),
    tone=InsightTone.INFO,
)


def synthesize_insights(
    inputs: InsightInputs,
    *,
    rules: Sequence[InsightRule] = DEFAULT_RULES,
    currency_symbol: str | None = None,
) -> list[Insight]:
    currency = currency_symbol if currency_symbol is not None else settings.currency_symbol
    drafts = [draft for rule in rules if (draft := rule(inputs, currency)) is not None]
    if not drafts and inputs.has_any_data:
        drafts.append(ANALYTICS_READY)
    return [
        Insight(title=draft.title, detail=draft.detail, tone=draft.tone, rank=index)
        for index, draft in enumerate(drafts, start=1)
    ]


def top_insights(insights: Sequence[Insight], limit: int | None = None) -> list[Insight]:
    return list(insights[: limit if limit is not None else settings.insight_display_limit])


__all__ = [
    "ANALYTICS_READY",
    "DEFAULT_RULES",
    "InsightDraft",
    "InsightInputs",
    "InsightRule",
    "format_currency",
    "synthesize_insights",
    "top_insights",
]
