import argparse
import asyncio
from datetime import date
from pathlib import Path
from typing import Callable

from loguru import logger

from ingestion.client import StoreApiClient
from storepulse.services.dashboard_service import DashboardService, StoreLookupError
from storepulse.services.report_service import (
    DateRange,
    ReportBuilder,
    ReportExport,
    ReportFilters,
    ReportGenerationError,
    ReportRequest,
    ReportType,
    ReportWorkspace,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export a store report as CSV")
    parser.add_argument("store", help="Store UUID or slug")
    parser.add_argument(
        "--type",
        dest="report_type",
        choices=[report_type.value for report_type in ReportType],
        default=ReportType.SALES.value,
        help="Report to build",
    )
    parser.add_argument("--start-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--end-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--order-status", default=None, help="Order status filter (orders report)")
    parser.add_argument(
        "--payment-status", default=None, help="Payment status filter (orders report)"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory the CSV file is written to",
    )
    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> ReportRequest:
    window = DateRange.trailing()
    return ReportRequest(
        type=ReportType(args.report_type),
        date_range=DateRange(
            start=args.start_date or window.start,
            end=args.end_date or window.end,
        ),
        filters=ReportFilters(
            order_status=args.order_status, payment_status=args.payment_status
        ),
    )


async def generate(
    store_ref: str,
    request: ReportRequest,
    *,
    client_factory: Callable[[], StoreApiClient] | None = None,
) -> ReportExport:
    async with (client_factory or StoreApiClient)() as client:
        store_id = await DashboardService(client).resolve_store(store_ref)
        workspace = ReportWorkspace(ReportBuilder(client), store_id)
        await workspace.refresh(request)
    if workspace.error is not None:
        raise ReportGenerationError(workspace.error)
    return workspace.export()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    request = build_request(args)
    try:
        export = asyncio.run(generate(args.store, request))
    except (StoreLookupError, ReportGenerationError) as exc:
        logger.error("Report export failed: {}", exc)
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    target = args.output_dir / export.filename
    target.write_text(export.content, encoding="utf-8")
    logger.info("Wrote {} report to {}", request.type.value, target)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
