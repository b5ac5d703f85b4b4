from __future__ import annotations

import asyncio
from datetime import date

from ingestion.client import SourceRequestError
from scripts import export_report
from storepulse.services.report_service import ReportType


def test_build_request_from_args():
    args = export_report.parse_args(
        [
            "craft-corner",
            "--type",
            "orders",
            "--start-date",
            "2026-03-01",
            "--end-date",
            "2026-03-05",
            "--order-status",
            "delivered",
            "--payment-status",
            "all",
        ]
    )
    request = export_report.build_request(args)

    assert request.type == ReportType.ORDERS
    assert request.date_range.start == date(2026, 3, 1)
    assert request.date_range.end == date(2026, 3, 5)
    assert request.filters.order_status == "delivered"
    assert request.filters.payment_status is None


def test_generate_uses_supplied_client(fake_client_factory, client_context, store_id, orders_payload):
    fake = fake_client_factory(
        {
            "get_store_by_slug": {"success": True, "data": {"store": {"id": store_id}}},
            "get_store_orders": orders_payload,
        }
    )
    args = export_report.parse_args(
        ["craft-corner", "--type", "orders", "--start-date", "2026-03-01", "--end-date", "2026-03-05"]
    )

    export = asyncio.run(
        export_report.generate(
            args.store, export_report.build_request(args), client_factory=lambda: client_context(fake)
        )
    )

    assert export.filename == "orders-report-2026-03-01-to-2026-03-05.csv"
    assert export.content.startswith(
        "Order ID,Date,Customer,Status,Payment Status,Total Amount,Items\n"
    )


def test_main_writes_csv_file(
    tmp_path, monkeypatch, fake_client_factory, client_context, store_id, sales_payload
):
    fake = fake_client_factory(
        {"get_store": {"success": True, "data": {"id": store_id}}, "get_sales_analytics": sales_payload}
    )
    monkeypatch.setattr(export_report, "StoreApiClient", lambda: client_context(fake))

    exit_code = export_report.main(
        [
            store_id,
            "--start-date",
            "2026-03-01",
            "--end-date",
            "2026-03-04",
            "--output-dir",
            str(tmp_path / "exports"),
        ]
    )

    assert exit_code == 0
    written = tmp_path / "exports" / "sales-report-2026-03-01-to-2026-03-04.csv"
    assert written.read_text(encoding="utf-8").splitlines()[0] == "Date,Revenue,Orders"


def test_main_reports_failure(tmp_path, monkeypatch, fake_client_factory, client_context, store_id):
    fake = fake_client_factory(
        {
            "get_store": {"success": True, "data": {"id": store_id}},
            "get_sales_analytics": SourceRequestError("Analytics service unavailable", status_code=503),
        }
    )
    monkeypatch.setattr(export_report, "StoreApiClient", lambda: client_context(fake))

    exit_code = export_report.main([store_id, "--output-dir", str(tmp_path)])

    assert exit_code == 1
    assert list(tmp_path.iterdir()) == []
