"""Snapshot of the latest acquisition result."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from redwood.models.air_traffic import RankedAircraft


class Outcome(str, Enum):
    PENDING = "pending"
    OK = "ok"
    FAILED = "failed"


class Snapshot(BaseModel):
    """One complete, immutable capture of the ranked aircraft list.

    A snapshot is never updated in place. Each acquisition cycle builds a new
    value and swaps it into the shared store.
    """

    aircraft: tuple[RankedAircraft, ...] = Field(
        default=(), description="In-range aircraft, closest first"
    )
    captured_at: Optional[datetime] = Field(
        default=None, description="When the cycle that produced this value finished"
    )
    outcome: Outcome = Field(default=Outcome.PENDING)
    error: Optional[str] = Field(
        default=None, description="Failure reason when outcome is FAILED"
    )
    last_success_at: Optional[datetime] = Field(
        default=None, description="Capture time of the most recent OK cycle"
    )
    received_count: int = Field(
        default=0, description="Records returned by the provider in the last OK cycle"
    )
    enriched_count: int = Field(
        default=0, description="In-range aircraft matched in the local registry"
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def pending(cls) -> "Snapshot":
        return cls()

    @property
    def is_pending(self) -> bool:
        return self.outcome is Outcome.PENDING

    @property
    def is_stale(self) -> bool:
        return self.outcome is Outcome.FAILED


__all__ = ["Outcome", "Snapshot"]
