from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import date
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, Response

from ingestion.client import StoreApiClient
from ingestion.tracking import EventTracker

from . import schemas
from .core.config import settings
from .services.dashboard_service import DashboardService, StoreLookupError
from .services.insight_service import top_insights
from .services.report_service import (
    DateRange,
    ReportBuilder,
    ReportFilters,
    ReportGenerationError,
    ReportRequest,
    ReportType,
    export_report,
)

app = FastAPI(title="StorePulse Analytics API", version="0.1.0", debug=settings.debug)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Flush pending tracking events and release the shared tracking client."""

    tracker: EventTracker | None = getattr(app.state, "event_tracker", None)
    if tracker is not None:
        await tracker.drain()
    client: StoreApiClient | None = getattr(app.state, "tracking_client", None)
    if client is not None:
        await client.aclose()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


async def get_store_client() -> AsyncIterator[StoreApiClient]:
    """Provide a platform API client scoped to one request."""

    client = StoreApiClient()
    try:
        yield client
    finally:
        await client.aclose()


def _dashboard_service(client: StoreApiClient = Depends(get_store_client)) -> DashboardService:
    return DashboardService(client)


def _report_builder(client: StoreApiClient = Depends(get_store_client)) -> ReportBuilder:
    return ReportBuilder(client)


def get_event_tracker(request: Request) -> EventTracker:
    """Tracking outlives the request, so it shares one client for the app's lifetime."""

    state = request.app.state
    tracker = getattr(state, "event_tracker", None)
    if tracker is None:
        state.tracking_client = StoreApiClient()
        tracker = EventTracker(state.tracking_client)
        state.event_tracker = tracker
    return tracker


async def _resolve_store(store_ref: str, service: DashboardService) -> str:
    try:
        return await service.resolve_store(store_ref)
    except StoreLookupError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc


def _report_request(
    report_type: ReportType,
    *,
    start_date: Annotated[date | None, Query(description="First day of the report window")] = None,
    end_date: Annotated[date | None, Query(description="Last day of the report window, inclusive")] = None,
    order_status: Annotated[
        str | None, Query(description="Order status filter (orders report)", examples=["delivered"])
    ] = None,
    payment_status: Annotated[
        str | None, Query(description="Payment status filter (orders report)", examples=["paid"])
    ] = None,
) -> ReportRequest:
    """Normalize shared report query parameters."""

    window = DateRange.trailing()
    date_range = DateRange(start=start_date or window.start, end=end_date or window.end)
    if date_range.start > date_range.end:
        raise HTTPException(status_code=422, detail="start_date must not be after end_date")
    return ReportRequest(
        type=report_type,
        date_range=date_range,
        filters=ReportFilters(order_status=order_status, payment_status=payment_status),
    )


PeriodQuery = Annotated[int | None, Query(ge=1, le=365, description="Window in days")]


@app.get(
    "/stores/{store_ref}/analytics",
    response_model=schemas.AnalyticsDashboard,
    tags=["analytics"],
)
async def get_analytics(
    store_ref: str,
    period: PeriodQuery = None,
    service: DashboardService = Depends(_dashboard_service),
):
    """Sales, traffic and product-view analytics with synthesized insights."""

    store_id = await _resolve_store(store_ref, service)
    dashboard = await service.load_analytics(store_id, period)
    response = schemas.AnalyticsDashboard.model_validate(dashboard)
    response.featured_insights = [
        schemas.Insight.model_validate(insight) for insight in top_insights(dashboard.insights)
    ]
    return response


@app.get(
    "/stores/{store_ref}/insights",
    response_model=schemas.StoreInsightsView,
    tags=["analytics"],
)
async def get_store_insights(
    store_ref: str,
    period: PeriodQuery = None,
    service: DashboardService = Depends(_dashboard_service),
):
    """Forecasts, promotions, pricing and inventory health for a store."""

    store_id = await _resolve_store(store_ref, service)
    view = await service.load_insights(store_id, period)
    return schemas.StoreInsightsView.model_validate(view)


@app.get(
    "/stores/{store_ref}/reports/{report_type}",
    response_model=schemas.ReportResponse,
    tags=["reports"],
)
async def get_report(
    store_ref: str,
    report: ReportRequest = Depends(_report_request),
    service: DashboardService = Depends(_dashboard_service),
    builder: ReportBuilder = Depends(_report_builder),
):
    """Build one report and return its rows and summary."""

    store_id = await _resolve_store(store_ref, service)
    try:
        result = await builder.build(store_id, report)
    except ReportGenerationError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return schemas.ReportResponse(
        type=result.type,
        start_date=report.date_range.start,
        end_date=report.date_range.end,
        summary=result.summary,
        rows=result.rows,
        display_rows=result.display_rows,
        note=result.note,
    )


@app.get("/stores/{store_ref}/reports/{report_type}/export", tags=["reports"])
async def export_report_csv(
    store_ref: str,
    report: ReportRequest = Depends(_report_request),
    service: DashboardService = Depends(_dashboard_service),
    builder: ReportBuilder = Depends(_report_builder),
) -> Response:
    """Download a report as CSV with the full, uncapped row set."""

    store_id = await _resolve_store(store_ref, service)
    try:
        result = await builder.build(store_id, report)
    except ReportGenerationError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    export = export_report(result, report)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@app.post(
    "/stores/{store_id}/events",
    response_model=schemas.TrackEventAccepted,
    status_code=202,
    tags=["tracking"],
)
async def track_event(
    payload: schemas.TrackEventRequest,
    store_id: Annotated[str, Path(description="Store UUID; other references are ignored")],
    tracker: EventTracker = Depends(get_event_tracker),
):
    """Queue a storefront analytics event without waiting for the platform."""

    task = tracker.track_event(
        store_id,
        payload.event_type,
        product_id=payload.product_id,
        metadata=payload.metadata,
    )
    return schemas.TrackEventAccepted(
        tracked=task is not None, session_id=tracker.session.session_id
    )
