from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from storepulse.core.config import Settings


@dataclass(slots=True)
class DashboardRunContext:
    """Runtime context for one command-line collection cycle."""

    run_id: str
    started_at: datetime
    store_ref: str
    view: str
    period_days: int
    settings: Settings
