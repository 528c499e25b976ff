"""Drift resolution models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from models.drift import DriftReport

Strategy = Literal["emergency", "intervention", "collaborative", "informational"]
ResolutionStatus = Literal[
    "initiated",
    "emergency-response-active",
    "intervention-in-progress",
    "collaborative-review",
    "monitoring",
    "completed",
    "archived",
]


class ResolutionAction(BaseModel):
    type: str
    timestamp: datetime
    ok: bool = True
    details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class ResolutionOutcome(BaseModel):
    status: str = "resolved"
    lessons_learned: list[str] = Field(default_factory=list)
    prevention_measures: list[str] = Field(default_factory=list)


class Resolution(BaseModel):
    """Tracked workflow executed in response to a drift report."""

    id: str
    strategy: Strategy
    status: ResolutionStatus = "initiated"
    drift_report: DriftReport
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: float | None = None
    actions: list[ResolutionAction] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    outcome: ResolutionOutcome | None = None
    learning_patterns: list[str] = Field(default_factory=list)

    def action_types(self) -> list[str]:
        return [action.type for action in self.actions]
