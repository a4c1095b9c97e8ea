from __future__ import annotations

from pydantic import BaseModel


class SessionStats(BaseModel):
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    no_show: int
    # Pending/confirmed sessions that have not started yet.
    upcoming: int
    # Aggregates over sessions that were not cancelled. Prices are summed
    # nominally across currencies; no FX conversion is applied.
    total_duration_minutes: int
    total_price: float
