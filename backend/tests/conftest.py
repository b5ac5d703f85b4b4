from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from ingestion.client import SourceRequestError
from storepulse.core.config import Settings

STORE_ID = "3f2b8c1e-9d4a-4c6b-8e2f-1a7d5c9b0e42"

_DATA_DIR = Path(__file__).parent / "data"


def _load(name: str) -> dict[str, Any]:
    return json.loads((_DATA_DIR / name).read_text(encoding="utf-8"))


class FakeStoreClient:
    """In-memory stand-in for ``StoreApiClient``.

    Each gateway method returns the payload registered under its name, or
    raises it when the registered value is an exception.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def _respond(self, name: str, *args: Any, **kwargs: Any) -> dict[str, Any]:
        self.calls.append((name, args, kwargs))
        response = self.responses.get(name)
        if response is None:
            raise SourceRequestError(f"No fake response for {name}", status_code=500)
        if isinstance(response, BaseException):
            raise response
        return response

    def called(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    async def get_sales_analytics(self, store_id, **kwargs):
        return await self._respond("get_sales_analytics", store_id, **kwargs)

    async def get_traffic_analytics(self, store_id, **kwargs):
        return await self._respond("get_traffic_analytics", store_id, **kwargs)

    async def get_product_view_analytics(self, store_id, **kwargs):
        return await self._respond("get_product_view_analytics", store_id, **kwargs)

    async def get_sales_summary(self, store_id, period=30):
        return await self._respond("get_sales_summary", store_id, period)

    async def get_sales_predictions(self, store_id, **kwargs):
        return await self._respond("get_sales_predictions", store_id, **kwargs)

    async def get_promo_suggestions(self, store_id):
        return await self._respond("get_promo_suggestions", store_id)

    async def get_pricing_strategy(self, store_id):
        return await self._respond("get_pricing_strategy", store_id)

    async def get_inventory_summary(self, store_id):
        return await self._respond("get_inventory_summary", store_id)

    async def get_low_stock_products(self, store_id):
        return await self._respond("get_low_stock_products", store_id)

    async def get_store_orders(self, store_id):
        return await self._respond("get_store_orders", store_id)

    async def get_store(self, store_id):
        return await self._respond("get_store", store_id)

    async def get_store_by_slug(self, slug):
        return await self._respond("get_store_by_slug", slug)

    async def post_event(self, payload):
        return await self._respond("post_event", payload)


@pytest.fixture
def store_id() -> str:
    return STORE_ID


@pytest.fixture
def sales_payload() -> dict[str, Any]:
    return _load("sales_analytics.json")


@pytest.fixture
def traffic_payload() -> dict[str, Any]:
    return _load("traffic_analytics.json")


@pytest.fixture
def product_views_payload() -> dict[str, Any]:
    return _load("product_views.json")


@pytest.fixture
def orders_payload() -> dict[str, Any]:
    return _load("store_orders.json")


@pytest.fixture
def insight_payloads() -> dict[str, Any]:
    return {
        "get_sales_predictions": {
            "success": True,
            "data": {
                "predictions": {
                    "next_7_days": {
                        "predicted_revenue": "4200.75",
                        "predicted_orders": 12,
                        "confidence": 0.82,
                    },
                    "next_30_days": {
                        "predicted_revenue": 18000,
                        "predicted_orders": "51",
                        "confidence": "medium",
                    },
                    "recommendations": ["Restock bestsellers before the weekend", ""],
                }
            },
        },
        "get_promo_suggestions": {
            "success": True,
            "data": {
                "suggestions": [
                    {
                        "type": "bundle",
                        "title": f"Bundle offer {index}",
                        "description": "Pair slow movers with bestsellers",
                        "priority": priority,
                        "products": [{"name": "Brass Diya"}, "Jute Tote"],
                    }
                    for index, priority in enumerate(
                        ["HIGH", "medium", "urgent", None, "low", "high", "medium"], start=1
                    )
                ]
            },
        },
        "get_pricing_strategy": {
            "success": True,
            "data": {
                "analysis": {
                    "recommendations": ["Round prices to .99"],
                    "opportunities": ["Premium tier for handmade items"],
                }
            },
        },
        "get_inventory_summary": {
            "success": True,
            "data": {
                "summary": {
                    "total_products": 40,
                    "tracking_inventory": 35,
                    "total_quantity": 812,
                    "low_stock_count": 4,
                    "out_of_stock_count": 1,
                }
            },
        },
        "get_sales_summary": {
            "success": True,
            "data": {
                "summary": {
                    "total_revenue": 9800,
                    "total_orders": 28,
                    "growth_rate": -7.5,
                    "conversion_rate": 3.4,
                }
            },
        },
    }


class StubClientContext:
    """Async context manager handing out a prepared fake client."""

    def __init__(self, client: FakeStoreClient) -> None:
        self.client = client
        self.closed = False

    async def __aenter__(self) -> FakeStoreClient:
        return self.client

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True


@pytest.fixture
def fake_client_factory():
    return FakeStoreClient


@pytest.fixture
def client_context():
    return StubClientContext


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        store_api_base_url="http://platform.test/",
        store_api_token="test-token",
        request_timeout_seconds=2.0,
        default_period_days=30,
        product_view_limit=10,
        insight_display_limit=3,
        promo_display_limit=6,
        orders_display_limit=2,
    )
    monkeypatch.setattr("storepulse.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("storepulse.core.config.settings", settings)
    return settings
