"""Tabular reports over the platform's sales, order, inventory and traffic data."""

from __future__ import annotations

import csv
import io
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Protocol

from dateutil import parser as date_parser
from loguru import logger

from ingestion.client import SourceRequestError, read_envelope
from ingestion.normalize import (
    extract_orders,
    normalize_inventory_summary,
    normalize_low_stock,
    normalize_sales_summary,
    normalize_time_series,
    normalize_traffic_summary,
    to_decimal,
)
from storepulse.core.config import settings
from storepulse.domain import InventorySummary

from .cycles import CycleTracker
from .metrics_service import average_order_value

DEFAULT_REPORT_ERROR = "Failed to generate report. Please try again."
END_OF_DAY = time(23, 59, 59, 999000)
ALL_FILTER = "all"
UNKNOWN_ITEM_NAME = "Unknown item"

CSV_HEADERS: dict[str, tuple[str, ...]] = {
    "sales": ("Date", "Revenue", "Orders"),
    "orders": (
        "Order ID",
        "Date",
        "Customer",
        "Status",
        "Payment Status",
        "Total Amount",
        "Items",
    ),
    "inventory": (
        "Product ID",
        "Product Name",
        "Current Stock",
        "Low Stock Threshold",
        "Status",
    ),
    "traffic": ("Date", "Views", "Unique Visitors", "Sessions"),
}


class ReportType(str, Enum):
    SALES = "sales"
    ORDERS = "orders"
    INVENTORY = "inventory"
    TRAFFIC = "traffic"


class ReportGenerationError(Exception):
    """Raised when the data behind a report could not be fetched."""

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or DEFAULT_REPORT_ERROR
        self.status_code = status_code
        super().__init__(self.message)


class ReportSource(Protocol):
    async def get_sales_analytics(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_traffic_analytics(self, store_id: str, **kwargs: Any) -> dict[str, Any]: ...

    async def get_store_orders(self, store_id: str) -> dict[str, Any]: ...

    async def get_inventory_summary(self, store_id: str) -> dict[str, Any]: ...

    async def get_low_stock_products(self, store_id: str) -> dict[str, Any]: ...


@dataclass(slots=True, frozen=True)
class DateRange:
    start: date
    end: date

    @classmethod
    def trailing(cls, days: int | None = None, *, today: date | None = None) -> "DateRange":
        end = today or datetime.now(timezone.utc).date()
        return cls(start=end - timedelta(days=days or settings.default_period_days), end=end)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def ends_at(self) -> datetime:
        """End of the last day, inclusive to the millisecond."""

        return datetime.combine(self.end, END_OF_DAY)

    def contains(self, moment: datetime) -> bool:
        # Timestamps compare at millisecond precision.
        moment = moment.replace(microsecond=moment.microsecond // 1000 * 1000)
        return self.starts_at <= moment <= self.ends_at

    def period_days(self) -> int:
        span = self.end - self.start
        return max(1, math.ceil(span.total_seconds() / 86400) + 1)


def _filter_value(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == ALL_FILTER:
        return None
    return value


@dataclass(slots=True, frozen=True)
class ReportFilters:
    order_status: str | None = None
    payment_status: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "order_status", _filter_value(self.order_status))
        object.__setattr__(self, "payment_status", _filter_value(self.payment_status))


@dataclass(slots=True, frozen=True)
class ReportRequest:
    type: ReportType
    date_range: DateRange
    filters: ReportFilters = field(default_factory=ReportFilters)


@dataclass(slots=True)
class ReportResult:
    type: ReportType
    rows: list[dict[str, Any]]
    summary: dict[str, Any]
    display_rows: list[dict[str, Any]] = field(default_factory=list)
    note: str | None = None


@dataclass(slots=True, frozen=True)
class ReportExport:
    filename: str
    content: str
    media_type: str = "text/csv"


# ----------------------------------------------------------------------
# Orders filtering


def parse_order_timestamp(value: Any) -> datetime | None:
    """Parse ``created_at`` into a naive UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def filter_orders(
    orders: Iterable[dict[str, Any]],
    date_range: DateRange,
    filters: ReportFilters,
) -> list[dict[str, Any]]:
    """Apply date, status and payment filters; each is an independent predicate."""

    selected: list[dict[str, Any]] = []
    for order in orders:
        created_at = parse_order_timestamp(order.get("created_at"))
        if created_at is None or not date_range.contains(created_at):
            continue
        if filters.order_status is not None and order.get("status") != filters.order_status:
            continue
        if (
            filters.payment_status is not None
            and order.get("payment_status") != filters.payment_status
        ):
            continue
        selected.append(order)
    return selected


def summarize_orders(orders: list[dict[str, Any]]) -> dict[str, Any]:
    total_revenue = sum((to_decimal(order.get("total_amount")) for order in orders), Decimal("0"))
    total_orders = len(orders)
    return {
        "total_revenue": total_revenue,
        "total_orders": total_orders,
        "average_order_value": average_order_value(total_revenue, total_orders),
        "by_status": dict(Counter(str(order.get("status")) for order in orders)),
        "by_payment_status": dict(
            Counter(str(order.get("payment_status")) for order in orders)
        ),
    }


# ----------------------------------------------------------------------
# CSV rendering


def format_order_items(items: Any) -> str:
    if not isinstance(items, list) or not items:
        return "N/A"
    parts = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = item.get("product_name") or UNKNOWN_ITEM_NAME
        parts.append(f"{name} (x{item.get('quantity') or 0})")
    return "; ".join(parts) or "N/A"


def _csv_value(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _inventory_summary_rows(inventory: dict[str, Any]) -> list[tuple[str, Any]]:
    return [
        ("Total Products", inventory.get("total_products") or 0),
        ("Tracking Inventory", inventory.get("tracking_inventory") or 0),
        ("Total Quantity", inventory.get("total_quantity") or 0),
        ("Low Stock Items", inventory.get("low_stock_count") or 0),
        ("Out of Stock", inventory.get("out_of_stock_count") or 0),
    ]


def render_csv(result: ReportResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS[result.type.value])

    if result.type == ReportType.SALES:
        for row in result.rows:
            writer.writerow([_csv_value(row["date"]), row["revenue"], row["orders"]])

    elif result.type == ReportType.ORDERS:
        for order in result.rows:
            writer.writerow(
                [
                    order.get("id"),
                    order.get("created_at"),
                    order.get("customer_name") or "Guest",
                    order.get("status"),
                    order.get("payment_status"),
                    _csv_value(order.get("total_amount")),
                    format_order_items(order.get("items")),
                ]
            )

    elif result.type == ReportType.INVENTORY:
        for row in result.rows:
            writer.writerow(
                [
                    row["product_id"],
                    row["name"],
                    row["stock"],
                    row["low_stock_threshold"],
                    row["status"],
                ]
            )
        writer.writerow([])
        writer.writerow(["Summary"])
        for label, value in _inventory_summary_rows(result.summary):
            writer.writerow([label, value])

    elif result.type == ReportType.TRAFFIC:
        if result.rows:
            for row in result.rows:
                writer.writerow(
                    [
                        _csv_value(row["date"]),
                        row["views"],
                        row["unique_visitors"],
                        row["unique_sessions"],
                    ]
                )
        else:
            writer.writerow(
                [
                    "Summary",
                    result.summary.get("total_views") or 0,
                    result.summary.get("unique_visitors") or 0,
                    result.summary.get("unique_sessions") or 0,
                ]
            )

    return buffer.getvalue()


def export_filename(request: ReportRequest, *, today: date | None = None) -> str:
    if request.type == ReportType.INVENTORY:
        stamp = today or datetime.now(timezone.utc).date()
        return f"inventory-report-{stamp.isoformat()}.csv"
    return (
        f"{request.type.value}-report-"
        f"{request.date_range.start.isoformat()}-to-{request.date_range.end.isoformat()}.csv"
    )


def export_report(
    result: ReportResult, request: ReportRequest, *, today: date | None = None
) -> ReportExport:
    return ReportExport(
        filename=export_filename(request, today=today),
        content=render_csv(result),
    )


# ----------------------------------------------------------------------
# Builder


class ReportBuilder:
    """Fetch one report's source data and shape it into rows and a summary."""

    def __init__(self, client: ReportSource, *, orders_display_limit: int | None = None) -> None:
        self._client = client
        self._orders_display_limit = orders_display_limit or settings.orders_display_limit

    async def build(self, store_id: str, request: ReportRequest) -> ReportResult:
        builders = {
            ReportType.SALES: self._build_sales,
            ReportType.ORDERS: self._build_orders,
            ReportType.INVENTORY: self._build_inventory,
            ReportType.TRAFFIC: self._build_traffic,
        }
        logger.info(
            "Building {} report for store {} ({} to {})",
            request.type.value,
            store_id,
            request.date_range.start,
            request.date_range.end,
        )
        try:
            return await builders[request.type](store_id, request)
        except SourceRequestError as exc:
            logger.warning("{} report failed for store {}: {}", request.type.value, store_id, exc)
            raise ReportGenerationError(exc.message, status_code=exc.status_code) from exc

    @staticmethod
    def _unwrap(payload: dict[str, Any]) -> Any:
        envelope = read_envelope(payload)
        if not envelope.success:
            raise ReportGenerationError(envelope.error.message if envelope.error else None)
        return envelope.data

    async def _build_sales(self, store_id: str, request: ReportRequest) -> ReportResult:
        payload = await self._client.get_sales_analytics(
            store_id,
            start_date=request.date_range.start,
            end_date=request.date_range.end,
            group_by="day",
        )
        data = self._unwrap(payload)
        overview = normalize_sales_summary(data)
        rows = [
            {"date": point.date, "revenue": point.revenue, "orders": point.orders}
            for point in normalize_time_series(data)
        ]
        summary = {
            "total_revenue": overview.total_revenue if overview else Decimal("0"),
            "total_orders": overview.total_orders if overview else 0,
            "average_order_value": overview.average_order_value if overview else Decimal("0"),
        }
        return ReportResult(type=ReportType.SALES, rows=rows, summary=summary, display_rows=rows)

    async def _build_orders(self, store_id: str, request: ReportRequest) -> ReportResult:
        payload = await self._client.get_store_orders(store_id)
        orders = filter_orders(
            extract_orders(self._unwrap(payload)), request.date_range, request.filters
        )
        limit = self._orders_display_limit
        note = None
        if len(orders) > limit:
            note = f"Showing first {limit} of {len(orders)} orders. Export CSV to see all orders."
        return ReportResult(
            type=ReportType.ORDERS,
            rows=orders,
            summary=summarize_orders(orders),
            display_rows=orders[:limit],
            note=note,
        )

    async def _build_inventory(self, store_id: str, request: ReportRequest) -> ReportResult:
        inventory = normalize_inventory_summary(
            self._unwrap(await self._client.get_inventory_summary(store_id))
        ) or InventorySummary()

        # The low-stock list is optional; its failure leaves the report with the summary only.
        low_stock = []
        try:
            low_stock_payload = await self._client.get_low_stock_products(store_id)
        except SourceRequestError as exc:
            logger.warning("Low-stock list unavailable for store {}: {}", store_id, exc)
        else:
            envelope = read_envelope(low_stock_payload)
            if envelope.success:
                low_stock = normalize_low_stock(envelope.data)

        rows = [
            {
                "product_id": product.product_id,
                "name": product.name,
                "stock": product.stock,
                "low_stock_threshold": product.low_stock_threshold,
                "status": "Low Stock",
            }
            for product in low_stock
        ]
        summary = {
            "total_products": inventory.total_products,
            "tracking_inventory": inventory.tracking_inventory,
            "total_quantity": inventory.total_quantity,
            "low_stock_count": inventory.low_stock_count,
            "out_of_stock_count": inventory.out_of_stock_count,
        }
        return ReportResult(
            type=ReportType.INVENTORY, rows=rows, summary=summary, display_rows=rows
        )

    async def _build_traffic(self, store_id: str, request: ReportRequest) -> ReportResult:
        payload = await self._client.get_traffic_analytics(
            store_id, period=request.date_range.period_days(), group_by="day"
        )
        data = self._unwrap(payload)
        overview = normalize_traffic_summary(data)
        rows = [
            {
                "date": point.date,
                "views": point.views,
                "unique_visitors": point.unique_visitors,
                "unique_sessions": point.unique_sessions,
            }
            for point in normalize_time_series(data)
        ]
        summary = {
            "total_views": overview.total_views if overview else 0,
            "unique_visitors": overview.unique_visitors if overview else 0,
            "unique_sessions": overview.unique_sessions if overview else 0,
            "average_views_per_session": overview.avg_views_per_session if overview else 0.0,
        }
        return ReportResult(
            type=ReportType.TRAFFIC, rows=rows, summary=summary, display_rows=rows
        )


class ReportWorkspace:
    """Holds the report currently on screen across refreshes.

    A failed refresh keeps the previously displayed result and exposes the
    error message instead. Refreshes that were superseded while in flight are
    discarded.
    """

    def __init__(self, builder: ReportBuilder, store_id: str) -> None:
        self._builder = builder
        self._store_id = store_id
        self._cycles: CycleTracker[ReportResult] = CycleTracker(name="report")
        self.request: ReportRequest | None = None
        self.error: str | None = None

    @property
    def result(self) -> ReportResult | None:
        return self._cycles.latest

    async def refresh(self, request: ReportRequest) -> ReportResult | None:
        cycle_id = self._cycles.begin()
        try:
            result = await self._builder.build(self._store_id, request)
        except ReportGenerationError as exc:
            if self._cycles.is_current(cycle_id):
                self.error = exc.message
            return self.result
        if self._cycles.publish(cycle_id, result):
            self.request = request
            self.error = None
        return self.result

    def export(self, *, today: date | None = None) -> ReportExport | None:
        if self.result is None or self.request is None:
            return None
        return export_report(self.result, self.request, today=today)


__all__ = [
    "CSV_HEADERS",
    "DEFAULT_REPORT_ERROR",
    "DateRange",
    "ReportBuilder",
    "ReportExport",
    "ReportFilters",
    "ReportGenerationError",
    "ReportRequest",
    "ReportResult",
    "ReportType",
    "ReportWorkspace",
    "export_filename",
    "export_report",
    "filter_orders",
    "format_order_items",
    "parse_order_timestamp",
    "render_csv",
    "summarize_orders",
]
