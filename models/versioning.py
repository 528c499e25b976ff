"""Truth version models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from models.truth import ProjectTruth

ChangeType = Literal["initial", "major", "minor", "patch", "none"]


class VersionChanges(BaseModel):
    type: ChangeType = "patch"
    summary: str = ""
    details: list[dict[str, Any]] = Field(default_factory=list)


class TruthVersion(BaseModel):
    """Immutable snapshot of the project truth."""

    id: str
    version: str
    timestamp: datetime
    author: str
    change_reason: str
    changes: VersionChanges
    content_hash: str
    truth: ProjectTruth
