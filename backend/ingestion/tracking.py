"""Fire-and-forget storefront event tracking."""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from .client import is_store_uuid

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
SESSION_SUFFIX_LENGTH = 7

EVENT_TYPES = ("page_view", "product_view", "add_to_cart", "purchase", "search")


class EventSink(Protocol):
    async def post_event(self, payload: dict[str, Any]) -> dict[str, Any]: ...


@dataclass(slots=True, frozen=True)
class TrackingSession:
    """Identifies one console/browser session across tracked events."""

    session_id: str

    @classmethod
    def start(
        cls, *, now_ms: int | None = None, rng: random.Random | None = None
    ) -> "TrackingSession":
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        chooser = rng or random.Random()
        suffix = "".join(chooser.choice(_BASE36) for _ in range(SESSION_SUFFIX_LENGTH))
        return cls(session_id=f"session_{stamp}_{suffix}")


class EventTracker:
    """Posts analytics events in the background.

    Tracking never blocks or fails the caller: sends run as tasks on the
    running loop and any error is logged and dropped.
    """

    def __init__(self, sink: EventSink, session: TrackingSession | None = None) -> None:
        self._sink = sink
        self._session = session
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def session(self) -> TrackingSession:
        if self._session is None:
            self._session = TrackingSession.start()
        return self._session

    def track_event(
        self,
        store_id: str,
        event_type: str,
        *,
        product_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> asyncio.Task[None] | None:
        if not is_store_uuid(store_id):
            logger.debug("Skipping {} event for non-UUID store {}", event_type, store_id)
            return None

        payload = {
            "store_id": store_id,
            "event_type": event_type,
            "product_id": product_id,
            "session_id": self.session.session_id,
            "metadata": metadata or {},
        }
        task = asyncio.get_running_loop().create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _send(self, payload: dict[str, Any]) -> None:
        try:
            await self._sink.post_event(payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Analytics tracking failed for {}: {}", payload["event_type"], exc)

    def track_page_view(self, store_id: str, page_path: str) -> asyncio.Task[None] | None:
        return self.track_event(store_id, "page_view", metadata={"page_path": page_path})

    def track_product_view(self, store_id: str, product_id: str) -> asyncio.Task[None] | None:
        return self.track_event(store_id, "product_view", product_id=product_id)

    def track_add_to_cart(
        self, store_id: str, product_id: str, quantity: int = 1
    ) -> asyncio.Task[None] | None:
        return self.track_event(
            store_id, "add_to_cart", product_id=product_id, metadata={"quantity": quantity}
        )

    def track_purchase(
        self, store_id: str, order_id: str, total: Any
    ) -> asyncio.Task[None] | None:
        return self.track_event(
            store_id, "purchase", metadata={"order_id": order_id, "total": total}
        )

    def track_search(self, store_id: str, query: str) -> asyncio.Task[None] | None:
        return self.track_event(store_id, "search", metadata={"query": query})

    async def drain(self) -> None:
        """Wait for in-flight sends; used on shutdown."""

        if self._pending:
            await asyncio.gather(*list(self._pending))


__all__ = ["EVENT_TYPES", "EventTracker", "TrackingSession"]
