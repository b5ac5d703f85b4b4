from __future__ import annotations

import asyncio
import itertools

import pytest

from ingestion.client import SourceRequestError
from ingestion.collector import SourceRequest, collect, settle_all
from storepulse.domain import OutcomeStatus, SourceDomain

DOMAINS = (SourceDomain.SALES, SourceDomain.TRAFFIC, SourceDomain.PRODUCT_VIEWS)


def _fetcher(result, delay: float = 0.0):
    async def fetch():
        await asyncio.sleep(delay)
        if isinstance(result, BaseException):
            raise result
        return result

    return fetch


def test_settle_all_does_not_short_circuit():
    async def scenario():
        return await settle_all(
            [
                _fetcher(ValueError("first"))(),
                _fetcher({"value": 2}, delay=0.01)(),
            ]
        )

    settled = asyncio.run(scenario())
    assert settled[0].rejected
    assert isinstance(settled[0].error, ValueError)
    assert not settled[1].rejected
    assert settled[1].value == {"value": 2}


def test_collect_preserves_request_order_despite_completion_order():
    requests = [
        SourceRequest(SourceDomain.SALES, _fetcher({"success": True, "data": {"a": 1}}, 0.02)),
        SourceRequest(SourceDomain.TRAFFIC, _fetcher({"success": True, "data": {"b": 1}}, 0.0)),
    ]
    outcomes = asyncio.run(collect(requests))
    assert [outcome.domain for outcome in outcomes] == [SourceDomain.SALES, SourceDomain.TRAFFIC]
    assert outcomes[0].payload == {"a": 1}


def test_collect_classifies_failed_and_empty_outcomes():
    requests = [
        SourceRequest(
            SourceDomain.SALES,
            _fetcher(SourceRequestError("Server exploded", status_code=503)),
        ),
        SourceRequest(
            SourceDomain.TRAFFIC,
            _fetcher({"success": False, "error": {"message": "Store not found"}}),
        ),
        SourceRequest(SourceDomain.PRODUCT_VIEWS, _fetcher({"success": True})),
        SourceRequest(SourceDomain.INVENTORY, _fetcher({"success": True, "data": {}})),
    ]
    outcomes = asyncio.run(collect(requests))

    assert outcomes[0].status == OutcomeStatus.FAILED
    assert outcomes[0].error.message == "Server exploded"
    assert outcomes[0].error.status_code == 503
    assert outcomes[1].status == OutcomeStatus.FAILED
    assert outcomes[1].error.message == "Store not found"
    assert outcomes[2].status == OutcomeStatus.EMPTY
    assert outcomes[3].status == OutcomeStatus.EMPTY
    assert all(outcome.payload is None for outcome in outcomes)


@pytest.mark.parametrize(
    "failing",
    [subset for size in range(len(DOMAINS) + 1) for subset in itertools.combinations(DOMAINS, size)],
)
def test_failure_of_any_subset_leaves_others_intact(failing):
    requests = [
        SourceRequest(
            domain,
            _fetcher(
                RuntimeError("down")
                if domain in failing
                else {"success": True, "data": {"domain": domain.value}}
            ),
        )
        for domain in DOMAINS
    ]
    outcomes = asyncio.run(collect(requests))

    assert len(outcomes) == len(DOMAINS)
    for outcome in outcomes:
        if outcome.domain in failing:
            assert outcome.status == OutcomeStatus.FAILED
        else:
            assert outcome.status == OutcomeStatus.OK
            assert outcome.payload == {"domain": outcome.domain.value}
