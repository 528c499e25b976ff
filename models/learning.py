"""Violation pattern models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ViolationPattern(BaseModel):
    """Recurring violation signature with running statistics."""

    id: str
    type: str
    occurrences: int = 1
    confidence: float = 0.0
    first_seen: datetime
    last_seen: datetime
    pattern: dict[str, Any] = Field(default_factory=dict)
    examples: list[dict[str, Any]] = Field(default_factory=list)


class Violation(BaseModel):
    """A review/blocked verification forwarded for learning."""

    item: dict[str, Any]
    confidence: int
    reason: str = ""
    details: dict[str, int] = Field(default_factory=dict)
    truth: dict[str, Any]
    category: str = "general"


class ProjectInsights(BaseModel):
    common_violations: list[dict[str, Any]] = Field(default_factory=list)
    prevention_strategies: list[dict[str, Any]] = Field(default_factory=list)
    risk_factors: list[dict[str, Any]] = Field(default_factory=list)
    recommendations: list[dict[str, Any]] = Field(default_factory=list)
