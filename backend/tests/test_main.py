from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ingestion.client import SourceRequestError
from ingestion.tracking import EventTracker, TrackingSession
from storepulse.main import app, get_event_tracker, get_store_client


@pytest.fixture
def client():
    """Test client that cleans up dependency overrides after each test."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def platform(fake_client_factory, store_id):
    fake = fake_client_factory(
        {
            "get_store": {"success": True, "data": {"id": store_id}},
            "get_store_by_slug": {"success": True, "data": {"store": {"id": store_id}}},
        }
    )
    app.dependency_overrides[get_store_client] = lambda: fake
    return fake


def test_healthcheck(client):
    """Verify the healthcheck endpoint returns a successful response."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analytics_endpoint(client, platform, sales_payload, traffic_payload, product_views_payload):
    """Verify the analytics view resolves slugs and returns featured insights."""
    platform.responses.update(
        {
            "get_sales_analytics": sales_payload,
            "get_traffic_analytics": traffic_payload,
            "get_product_view_analytics": product_views_payload,
        }
    )

    response = client.get("/stores/craft-corner/analytics", params={"period": 7})

    assert response.status_code == 200
    body = response.json()
    assert body["period_days"] == 7
    assert body["has_any_data"] is True
    assert len(body["insights"]) == 4
    assert [insight["title"] for insight in body["featured_insights"]] == [
        "Revenue trending up",
        "Boost checkout conversion",
        "Best sales day",
    ]
    assert body["sales_summary"]["total_revenue"] == 7101.0
    assert body["derived"]["best_revenue_day"]["date"] == "2026-03-02"
    assert body["failed_domains"] == []


def test_analytics_endpoint_survives_total_failure(client, platform, store_id):
    """Verify a store whose every source fails still answers with an empty view."""
    response = client.get(f"/stores/{store_id}/analytics")

    assert response.status_code == 200
    body = response.json()
    assert body["insights"] == []
    assert body["has_any_data"] is False
    assert body["failed_domains"] == ["sales", "traffic", "product_views"]


def test_unknown_store_is_404(client, platform):
    """Verify unresolved store references map to 404."""
    platform.responses["get_store_by_slug"] = SourceRequestError("Store not found", status_code=404)

    response = client.get("/stores/ghost-shop/insights")

    assert response.status_code == 404
    assert response.json()["detail"] == "Store not found"


def test_insights_endpoint(client, platform, insight_payloads, traffic_payload, store_id):
    """Verify the insights view exposes promotions, pricing and inventory alerts."""
    platform.responses.update({**insight_payloads, "get_traffic_analytics": traffic_payload})

    response = client.get(f"/stores/{store_id}/insights")

    assert response.status_code == 200
    body = response.json()
    assert body["has_any_insights"] is True
    assert len(body["promotions"]) == 6
    assert body["pricing"]["current_strategy"] == "Standard pricing"
    assert body["forecast"]["next_7_days"]["predicted_revenue"] == 4200.75
    assert [alert["level"] for alert in body["inventory_alerts"]] == ["warning", "danger"]


def test_orders_report_endpoint(client, platform, orders_payload, store_id):
    """Verify report filters are applied from query parameters."""
    platform.responses["get_store_orders"] = orders_payload

    response = client.get(
        f"/stores/{store_id}/reports/orders",
        params={
            "start_date": "2026-03-01",
            "end_date": "2026-03-05",
            "order_status": "delivered",
            "payment_status": "all",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "orders"
    assert [row["id"] for row in body["rows"]] == ["ord-1", "ord-3"]
    assert body["summary"]["total_orders"] == 2
    assert body["summary"]["by_status"] == {"delivered": 2}


def test_report_rejects_inverted_range_and_unknown_type(client, platform, store_id):
    """Verify invalid report parameters are rejected before any fetch."""
    inverted = client.get(
        f"/stores/{store_id}/reports/sales",
        params={"start_date": "2026-03-05", "end_date": "2026-03-01"},
    )
    unknown = client.get(f"/stores/{store_id}/reports/refunds")

    assert inverted.status_code == 422
    assert unknown.status_code == 422


def test_report_failure_is_502(client, platform, store_id):
    """Verify upstream report failures surface their message."""
    platform.responses["get_sales_analytics"] = SourceRequestError(
        "Analytics service unavailable", status_code=503
    )

    response = client.get(f"/stores/{store_id}/reports/sales")

    assert response.status_code == 502
    assert response.json()["detail"] == "Analytics service unavailable"


def test_report_export_downloads_csv(client, platform, sales_payload, store_id):
    """Verify the export endpoint returns a CSV attachment."""
    platform.responses["get_sales_analytics"] = sales_payload

    response = client.get(
        f"/stores/{store_id}/reports/sales/export",
        params={"start_date": "2026-03-01", "end_date": "2026-03-04"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == (
        'attachment; filename="sales-report-2026-03-01-to-2026-03-04.csv"'
    )
    lines = response.text.splitlines()
    assert lines[0] == "Date,Revenue,Orders"
    assert len(lines) == 5


def test_track_event_endpoint(client, fake_client_factory, store_id):
    """Verify tracking is accepted and skipped for non-UUID stores."""
    sink = fake_client_factory({"post_event": {"success": True}})
    tracker = EventTracker(sink, TrackingSession(session_id="session_1_abcdefg"))
    app.dependency_overrides[get_event_tracker] = lambda: tracker

    accepted = client.post(
        f"/stores/{store_id}/events",
        json={"event_type": "product_view", "product_id": "p-1"},
    )
    skipped = client.post("/stores/cart/events", json={"event_type": "page_view"})
    invalid = client.post(f"/stores/{store_id}/events", json={"event_type": "refund"})

    assert accepted.status_code == 202
    assert accepted.json() == {"tracked": True, "session_id": "session_1_abcdefg"}
    assert skipped.status_code == 202
    assert skipped.json()["tracked"] is False
    assert invalid.status_code == 422
