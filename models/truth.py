"""Project truth models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TargetUsers(BaseModel):
    """Primary and optional secondary audience."""

    primary: str = ""
    secondary: str = ""


class Competitor(BaseModel):
    name: str
    description: str = ""


class DomainTerm(BaseModel):
    term: str
    definition: str = ""


class ProjectTruth(BaseModel):
    """Canonical statement of what the project is and is not."""

    project_name: str = "Project"
    what_were_building: str = ""
    industry: str = ""
    target_users: TargetUsers = Field(default_factory=TargetUsers)
    not_this: list[str] = Field(default_factory=list)
    competitors: list[Competitor] = Field(default_factory=list)
    domain_terms: list[DomainTerm] = Field(default_factory=list)
    version: str = "1.0"
    last_verified: datetime | None = None

    def content(self) -> dict:
        """Versioned content, without bookkeeping fields."""
        return self.model_dump(mode="json", exclude={"version", "last_verified"})
