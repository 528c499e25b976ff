"""Verification input and result models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

ItemCategory = Literal["backlog", "sprint-task", "document", "decision", "sprint-goals", "general"]
VerificationStatus = Literal["allowed", "warning", "review", "blocked"]

STATUS_ORDER: dict[str, int] = {"allowed": 0, "warning": 1, "review": 2, "blocked": 3}


class VerificationItem(BaseModel):
    """Work artifact submitted for verification."""

    model_config = {"frozen": True}

    id: str | None = None
    title: str = ""
    description: str = ""
    acceptance_criteria: str = ""
    details: str = ""
    category: ItemCategory = "general"

    @field_validator("acceptance_criteria", "description", "details", mode="before")
    @classmethod
    def _join_lists(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return " ".join(str(part) for part in value)
        return value

    def text(self) -> str:
        return " ".join(
            part for part in (self.title, self.description, self.acceptance_criteria, self.details)
        )


class ScoreBreakdown(BaseModel):
    domain_alignment: int = 0
    user_alignment: int = 0
    competitor_feature: int = 0
    historical_pattern: int = 0


class ConfidenceScore(BaseModel):
    """Weighted estimate (0-100) that an item violates the project truth."""

    score: int
    details: ScoreBreakdown
    primary_factor: str
    reason: str
    hard_block_terms: list[str] = Field(default_factory=list)


class VerificationResult(BaseModel):
    status: VerificationStatus
    confidence: int
    message: str
    recommendation: str = ""
    details: ScoreBreakdown | None = None
    truth_missing: bool = False


class BacklogVerification(BaseModel):
    """Outcome of verifying a whole backlog."""

    success: bool
    message: str = ""
    total: int = 0
    aligned: int = 0
    warnings: int = 0
    reviews: int = 0
    violations: int = 0
    errors: int = 0
    purity_score: int = 0
    items: list[dict[str, Any]] = Field(default_factory=list)
    partial: bool = False


class SprintVerification(BaseModel):
    success: bool
    message: str = ""
    sprint_name: str = ""
    can_proceed: bool = True
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    partial: bool = False
