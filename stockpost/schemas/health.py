from __future__ import annotations
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class HealthOut(BaseModel):
    status: str = "ok"
    feed: str
    scheduler_state: str
    schedule_mode: str
    next_fire_at: datetime | None = None
    cycles_run: int = 0
    cycle_in_flight: bool = False
    last_fingerprint: str | None = None
    last_cycle: dict[str, Any] | None = None


class TriggerOut(BaseModel):
    started: bool
    outcome: dict[str, Any] | None = None
