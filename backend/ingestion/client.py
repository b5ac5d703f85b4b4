from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import httpx
from loguru import logger

from storepulse.core.config import settings
from storepulse.domain import ErrorInfo


STORE_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_store_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(STORE_UUID_PATTERN.match(value))


class SourceRequestError(Exception):
    """Raised when a platform API request fails at the transport or HTTP level."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            message=self.message, details=self.details, status_code=self.status_code
        )


@dataclass(slots=True, frozen=True)
class Envelope:
    """The platform's ``{success, data?, error?}`` response wrapper."""

    success: bool
    data: Any = None
    error: ErrorInfo | None = None

    @property
    def has_data(self) -> bool:
        if self.data is None:
            return False
        if isinstance(self.data, (dict, list)):
            return bool(self.data)
        return True


def read_envelope(payload: Any) -> Envelope:
    if not isinstance(payload, dict):
        return Envelope(
            success=False,
            error=ErrorInfo(message="Unexpected response envelope"),
        )
    raw_error = payload.get("error")
    error: ErrorInfo | None = None
    if isinstance(raw_error, dict):
        error = ErrorInfo(
            message=str(raw_error.get("message") or "Request failed"),
            details=raw_error.get("details"),
        )
    elif isinstance(raw_error, str) and raw_error:
        error = ErrorInfo(message=raw_error)
    return Envelope(success=bool(payload.get("success")), data=payload.get("data"), error=error)


class StoreApiClient:
    """Thin async wrapper around the store platform REST endpoints."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.resolved_base_url
        self.timeout = timeout or settings.request_timeout_seconds
        headers = {"Content-Type": "application/json"}
        bearer = token if token is not None else settings.store_api_token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=transport,
        )

    @staticmethod
    def _serialize_param(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            parts: list[str] = []
            for item in value:
                serialized = StoreApiClient._serialize_param(item)
                if serialized is not None:
                    parts.append(serialized)
            return ",".join(parts) if parts else None
        return str(value)

    def _build_params(self, params: dict[str, Any] | None) -> dict[str, str]:
        built: dict[str, str] = {}
        for key, value in (params or {}).items():
            serialized = self._serialize_param(value)
            if serialized is not None:
                built[key] = serialized
        return built

    @staticmethod
    def _error_from_response(response: httpx.Response) -> SourceRequestError:
        message = f"HTTP {response.status_code} from {response.request.url.path}"
        details: Any = None
        try:
            envelope = read_envelope(response.json())
        except ValueError:
            envelope = None
        if envelope is not None and envelope.error is not None:
            message = envelope.error.message
            details = envelope.error.details
        return SourceRequestError(
            message, status_code=response.status_code, details=details
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        query = self._build_params(params)
        logger.info("Store API {} {} params={}", method, path, query)
        try:
            response = await self.client.request(method, path, params=query, json=json)
        except httpx.HTTPError as exc:
            raise SourceRequestError(f"{type(exc).__name__}: {exc}") from exc
        if response.is_error:
            raise self._error_from_response(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceRequestError(
                f"Invalid JSON from {path}", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise SourceRequestError(
                f"Unexpected response envelope from {path}",
                status_code=response.status_code,
            )
        return payload

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    # ------------------------------------------------------------------
    # Analytics

    async def get_sales_analytics(
        self,
        store_id: str,
        *,
        period: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        group_by: str = "day",
    ) -> dict[str, Any]:
        return await self._get(
            f"/api/analytics/store/{store_id}/sales",
            {
                "period": period,
                "start_date": start_date,
                "end_date": end_date,
                "group_by": group_by,
            },
        )

    async def get_traffic_analytics(
        self, store_id: str, *, period: int | None = None, group_by: str = "day"
    ) -> dict[str, Any]:
        return await self._get(
            f"/api/analytics/store/{store_id}/traffic",
            {"period": period, "group_by": group_by},
        )

    async def get_product_view_analytics(
        self, store_id: str, *, period: int | None = None, limit: int | None = None
    ) -> dict[str, Any]:
        return await self._get(
            f"/api/analytics/store/{store_id}/product-views",
            {"period": period, "limit": limit},
        )

    async def get_sales_summary(self, store_id: str, period: int = 30) -> dict[str, Any]:
        return await self._get(
            f"/api/analytics/store/{store_id}/summary", {"period": period}
        )

    async def post_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/analytics/track", json=payload)

    # ------------------------------------------------------------------
    # Predictions, promotions, pricing

    async def get_sales_predictions(
        self, store_id: str, *, period: int | None = None
    ) -> dict[str, Any]:
        return await self._get(
            f"/api/predictions/store/{store_id}/sales", {"period": period}
        )

    async def get_promo_suggestions(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/promo/store/{store_id}/suggestions")

    async def get_pricing_strategy(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/pricing/store/{store_id}/strategy")

    # ------------------------------------------------------------------
    # Inventory, orders, stores

    async def get_inventory_summary(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/inventory/store/{store_id}/summary")

    async def get_low_stock_products(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/inventory/store/{store_id}/low-stock")

    async def get_store_orders(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/orders/store/{store_id}")

    async def get_store(self, store_id: str) -> dict[str, Any]:
        return await self._get(f"/api/stores/{store_id}")

    async def get_store_by_slug(self, slug: str) -> dict[str, Any]:
        return await self._get(f"/api/stores/slug/{slug}")

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "StoreApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
