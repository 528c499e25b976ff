"""Drift check and report models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Severity = Literal["none", "minor", "moderate", "major", "critical"]

SEVERITY_ORDER: dict[str, int] = {"none": 0, "minor": 1, "moderate": 2, "major": 3, "critical": 4}


class DriftCheck(BaseModel):
    """Result of one category check; ``error`` is set when the check failed."""

    name: str
    drift: float | None = None
    details: str = ""
    items: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.drift is not None


class DriftTrend(BaseModel):
    increasing: bool = False
    rate: float = 0.0
    slope: float = 0.0


class DriftReport(BaseModel):
    timestamp: datetime
    checks: list[DriftCheck] = Field(default_factory=list)
    overall_drift: int = 0
    severity: Severity = "none"
    recommendations: list[str] = Field(default_factory=list)
    partial: bool = False
    trend: DriftTrend | None = None

    def check(self, name: str) -> DriftCheck | None:
        return next((c for c in self.checks if c.name == name), None)
