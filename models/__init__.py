"""Typed payload models for context verification."""

from models.drift import DriftCheck, DriftReport, DriftTrend, Severity
from models.learning import ProjectInsights, Violation, ViolationPattern
from models.resolution import Resolution, ResolutionAction, ResolutionOutcome, Strategy
from models.truth import Competitor, DomainTerm, ProjectTruth, TargetUsers
from models.verification import (
    BacklogVerification,
    ConfidenceScore,
    ScoreBreakdown,
    SprintVerification,
    VerificationItem,
    VerificationResult,
)
from models.versioning import TruthVersion, VersionChanges

__all__ = [
    "BacklogVerification",
    "Competitor",
    "ConfidenceScore",
    "DomainTerm",
    "DriftCheck",
    "DriftReport",
    "DriftTrend",
    "ProjectInsights",
    "ProjectTruth",
    "Resolution",
    "ResolutionAction",
    "ResolutionOutcome",
    "ScoreBreakdown",
    "Severity",
    "SprintVerification",
    "Strategy",
    "TargetUsers",
    "TruthVersion",
    "VerificationItem",
    "VerificationResult",
    "VersionChanges",
    "Violation",
    "ViolationPattern",
]
