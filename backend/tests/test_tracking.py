from __future__ import annotations

import asyncio
import random
import re

from ingestion.client import SourceRequestError
from ingestion.tracking import EventTracker, TrackingSession

SESSION_PATTERN = re.compile(r"^session_\d+_[0-9a-z]{7}$")


def test_session_id_format():
    session = TrackingSession.start(now_ms=1767225600000, rng=random.Random(7))
    assert SESSION_PATTERN.match(session.session_id)
    assert session.session_id.startswith("session_1767225600000_")
    assert SESSION_PATTERN.match(TrackingSession.start().session_id)


def test_session_created_once_and_reused(fake_client_factory):
    tracker = EventTracker(fake_client_factory({}))
    assert tracker.session is tracker.session


def test_track_event_posts_payload_in_background(fake_client_factory, store_id):
    client = fake_client_factory({"post_event": {"success": True}})
    session = TrackingSession(session_id="session_1_abcdefg")
    tracker = EventTracker(client, session)

    async def scenario():
        tracker.track_add_to_cart(store_id, "p-1", quantity=3)
        tracker.track_search(store_id, "brass")
        await tracker.drain()

    asyncio.run(scenario())

    payloads = [args[0] for args, _ in client.called("post_event")]
    assert payloads == [
        {
            "store_id": store_id,
            "event_type": "add_to_cart",
            "product_id": "p-1",
            "session_id": "session_1_abcdefg",
            "metadata": {"quantity": 3},
        },
        {
            "store_id": store_id,
            "event_type": "search",
            "product_id": None,
            "session_id": "session_1_abcdefg",
            "metadata": {"query": "brass"},
        },
    ]


def test_non_uuid_store_is_skipped(fake_client_factory):
    client = fake_client_factory({"post_event": {"success": True}})
    tracker = EventTracker(client)

    async def scenario():
        return tracker.track_page_view("cart", "/stores/cart")

    assert asyncio.run(scenario()) is None
    assert client.calls == []


def test_tracking_errors_are_swallowed(fake_client_factory, store_id):
    client = fake_client_factory({"post_event": SourceRequestError("tracking down", status_code=500)})
    tracker = EventTracker(client)

    async def scenario():
        task = tracker.track_purchase(store_id, "ord-1", 450)
        await task
        return task

    task = asyncio.run(scenario())
    assert task.done()
    assert task.exception() is None
    assert len(client.called("post_event")) == 1
