from __future__ import annotations

import asyncio
import json
from datetime import date

import httpx
import pytest

from ingestion.client import SourceRequestError, StoreApiClient, is_store_uuid, read_envelope


def _run_with(handler, call):
    async def scenario():
        async with StoreApiClient(
            base_url="http://platform.test",
            token="secret",
            timeout=1.0,
            transport=httpx.MockTransport(handler),
        ) as client:
            return await call(client)

    return asyncio.run(scenario())


def test_sales_analytics_builds_query_and_headers(store_id):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"analytics": {}}})

    payload = _run_with(
        handler,
        lambda client: client.get_sales_analytics(
            store_id, start_date=date(2026, 3, 1), end_date=date(2026, 3, 5)
        ),
    )

    assert payload == {"success": True, "data": {"analytics": {}}}
    request = seen[0]
    assert request.url.path == f"/api/analytics/store/{store_id}/sales"
    assert dict(request.url.params) == {
        "start_date": "2026-03-01",
        "end_date": "2026-03-05",
        "group_by": "day",
    }
    assert request.headers["Authorization"] == "Bearer secret"


def test_error_status_raises_with_envelope_message(store_id):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404, json={"success": False, "error": {"message": "Store not found", "details": "x"}}
        )

    with pytest.raises(SourceRequestError) as excinfo:
        _run_with(handler, lambda client: client.get_inventory_summary(store_id))

    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Store not found"
    assert excinfo.value.to_error_info().details == "x"


def test_transport_error_is_wrapped(store_id):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(SourceRequestError) as excinfo:
        _run_with(handler, lambda client: client.get_store_orders(store_id))
    assert "ConnectTimeout" in excinfo.value.message
    assert excinfo.value.status_code is None


def test_invalid_json_is_a_request_error(store_id):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(SourceRequestError):
        _run_with(handler, lambda client: client.get_pricing_strategy(store_id))


def test_post_event_sends_json_body():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/analytics/track"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"success": True})

    _run_with(handler, lambda client: client.post_event({"event_type": "search"}))
    assert bodies == [{"event_type": "search"}]


def test_store_lookup_paths():
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"success": True, "data": {"id": "s"}})

    async def both(client):
        await client.get_store("abc")
        await client.get_store_by_slug("craft-corner")

    _run_with(handler, both)
    assert paths == ["/api/stores/abc", "/api/stores/slug/craft-corner"]


def test_read_envelope_shapes():
    envelope = read_envelope({"success": False, "error": "Boom"})
    assert not envelope.success
    assert envelope.error.message == "Boom"
    assert not read_envelope([1, 2]).success
    assert read_envelope({"success": True, "data": {}}).has_data is False
    assert read_envelope({"success": True, "data": {"a": 1}}).has_data is True


def test_is_store_uuid(store_id):
    assert is_store_uuid(store_id)
    assert is_store_uuid(store_id.upper())
    assert not is_store_uuid("cart")
    assert not is_store_uuid(None)
