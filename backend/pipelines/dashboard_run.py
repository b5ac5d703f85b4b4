from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from loguru import logger

from ingestion.client import StoreApiClient
from pipelines.context import DashboardRunContext
from storepulse import schemas
from storepulse.core.config import Settings, get_settings
from storepulse.services.dashboard_service import DashboardService, StoreLookupError
from storepulse.services.insight_service import top_insights

VIEWS = ("analytics", "insights")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run one dashboard collection cycle for a store")
    parser.add_argument("store", help="Store UUID or slug")
    parser.add_argument(
        "--view",
        choices=VIEWS,
        default="analytics",
        help="Which dashboard view to collect",
    )
    parser.add_argument(
        "--period",
        type=int,
        default=settings.default_period_days,
        help="Analytics window in days",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Write JSON summary to the specified path instead of stdout",
    )
    return parser.parse_args(argv)


async def collect_view(
    context: DashboardRunContext, client: StoreApiClient
) -> dict[str, Any]:
    service = DashboardService(client, settings=context.settings)
    store_id = await service.resolve_store(context.store_ref)

    if context.view == "insights":
        view = await service.refresh_insights(store_id, context.period_days)
        body = schemas.StoreInsightsView.model_validate(view).model_dump(mode="json")
    else:
        dashboard = await service.refresh_analytics(store_id, context.period_days)
        response = schemas.AnalyticsDashboard.model_validate(dashboard)
        response.featured_insights = [
            schemas.Insight.model_validate(insight)
            for insight in top_insights(
                dashboard.insights, context.settings.insight_display_limit
            )
        ]
        body = response.model_dump(mode="json")

    return {
        "run_id": context.run_id,
        "started_at": context.started_at.isoformat(),
        "view": context.view,
        "store_ref": context.store_ref,
        "result": body,
    }


def _write_summary(path: Path, summary: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(summary, indent=2, sort_keys=True, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


async def run(
    args: argparse.Namespace,
    settings: Settings,
    *,
    client_factory: Callable[[], StoreApiClient] = StoreApiClient,
) -> dict[str, Any]:
    context = DashboardRunContext(
        run_id=str(uuid4()),
        started_at=datetime.now(timezone.utc),
        store_ref=args.store,
        view=args.view,
        period_days=args.period,
        settings=settings,
    )
    logger.info(
        "Starting {} run {} for store {} ({} days)",
        context.view,
        context.run_id,
        context.store_ref,
        context.period_days,
    )
    async with client_factory() as client:
        summary = await collect_view(context, client)

    if args.summary_path:
        _write_summary(args.summary_path, summary)
        logger.info("Wrote dashboard summary to {}", args.summary_path)
    return summary


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    try:
        summary = asyncio.run(run(args, settings))
    except StoreLookupError as exc:
        logger.error("Could not resolve store {}: {}", exc.store_ref, exc.message)
        return 1

    if not args.summary_path:
        print(json.dumps(summary, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
