"""Settle-all collection of independent source fetches."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger

from storepulse.domain import ErrorInfo, OutcomeStatus, SourceDomain, SourceOutcome

from .client import SourceRequestError, read_envelope

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Settled(Generic[T]):
    """Either the resolved value or the exception of one awaitable."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def rejected(self) -> bool:
        return self.error is not None


async def settle_all(awaitables: Iterable[Awaitable[T]]) -> list[Settled[T]]:
    """Await every awaitable and report each one's result in input order.

    Unlike ``asyncio.gather`` without ``return_exceptions`` a failure never
    short-circuits the remaining awaitables.
    """

    results = await asyncio.gather(*awaitables, return_exceptions=True)
    settled: list[Settled[T]] = []
    for result in results:
        if isinstance(result, (Exception, asyncio.CancelledError)):
            settled.append(Settled(error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            settled.append(Settled(value=result))
    return settled


@dataclass(slots=True, frozen=True)
class SourceRequest:
    domain: SourceDomain
    fetch: Callable[[], Awaitable[dict[str, Any]]]


def classify_outcome(domain: SourceDomain, settled: Settled[Any]) -> SourceOutcome:
    if settled.rejected:
        error = settled.error
        if isinstance(error, SourceRequestError):
            info = error.to_error_info()
        else:
            info = ErrorInfo(message=f"{type(error).__name__}: {error}")
        return SourceOutcome(domain=domain, status=OutcomeStatus.FAILED, error=info)

    envelope = read_envelope(settled.value)
    if not envelope.success:
        return SourceOutcome(
            domain=domain,
            status=OutcomeStatus.FAILED,
            error=envelope.error or ErrorInfo(message="Request was not successful"),
        )
    if not envelope.has_data or not isinstance(envelope.data, dict):
        return SourceOutcome(domain=domain, status=OutcomeStatus.EMPTY)
    return SourceOutcome(domain=domain, status=OutcomeStatus.OK, payload=envelope.data)


async def collect(requests: Sequence[SourceRequest]) -> list[SourceOutcome]:
    """Run every request concurrently; always returns one outcome per request."""

    settled = await settle_all(request.fetch() for request in requests)
    outcomes = [
        classify_outcome(request.domain, result)
        for request, result in zip(requests, settled)
    ]
    for outcome in outcomes:
        if outcome.status == OutcomeStatus.FAILED:
            logger.warning(
                "Source {} failed: {}",
                outcome.domain.value,
                outcome.error.message if outcome.error else "unknown error",
            )
        elif outcome.status == OutcomeStatus.EMPTY:
            logger.debug("Source {} returned no data", outcome.domain.value)
    return outcomes


__all__ = ["Settled", "SourceRequest", "classify_outcome", "collect", "settle_all"]
