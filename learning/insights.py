"""Descriptions, strategies and risk analysis derived from learned patterns."""

from __future__ import annotations

from typing import Any

from models.learning import ViolationPattern
from models.truth import ProjectTruth

GLOBAL_PATTERN_TYPES = ("feature-creep", "terminology-drift")

DESCRIPTIONS = {
    "domain-mismatch": "Using terms from wrong domain",
    "user-misalignment": "Targeting wrong user type",
    "feature-creep": "Scope expansion attempts",
    "not-this-violation": "Prohibited feature attempts",
    "terminology-drift": "Inconsistent terminology",
}

STRATEGIES: dict[str, dict[str, str]] = {
    "domain-mismatch": {
        "name": "Domain Vocabulary Enforcement",
        "description": "Validate all content against approved domain terminology",
        "priority": "high",
    },
    "user-misalignment": {
        "name": "Target User Validation",
        "description": "Ensure all features explicitly benefit target users",
        "priority": "high",
    },
    "feature-creep": {
        "name": "Scope Change Control",
        "description": "Require approval for any scope expansions",
        "priority": "critical",
    },
    "not-this-violation": {
        "name": "Blacklist Enforcement",
        "description": "Block any items containing NOT THIS terms",
        "priority": "critical",
    },
    "terminology-drift": {
        "name": "Glossary Compliance",
        "description": "Enforce consistent use of domain terms",
        "priority": "medium",
    },
}

ROOT_CAUSES = (
    ("not-this-violation", "Direct violation of explicitly prohibited features/concepts"),
    ("domain-mismatch", "Using terminology from wrong industry/domain"),
    ("user-misalignment", "Feature targets wrong user type"),
    ("feature-creep", "Scope expansion beyond original project boundaries"),
)


def is_relevant(pattern: ViolationPattern, truth: ProjectTruth) -> bool:
    """Same industry, same target users, or a globally applicable type."""
    data = pattern.pattern
    if data.get("industry") and data["industry"] == truth.industry:
        return True
    if data.get("target_users") and data["target_users"] == truth.target_users.model_dump():
        return True
    return pattern.type in GLOBAL_PATTERN_TYPES


def describe(pattern: ViolationPattern) -> str:
    label = DESCRIPTIONS.get(pattern.type, pattern.type)
    return f"{label} ({pattern.occurrences} times)"


def prevention_strategy(pattern_type: str) -> dict[str, str] | None:
    strategy = STRATEGIES.get(pattern_type)
    return dict(strategy, pattern_type=pattern_type) if strategy else None


def root_cause(patterns: list[dict[str, Any]]) -> str | None:
    if not patterns:
        return None
    kinds = {p["type"] for p in patterns}
    for kind, cause in ROOT_CAUSES:
        if kind in kinds:
            return cause
    return "Context drift from original project goals"


def prevention_for(pattern: dict[str, Any]) -> dict[str, Any] | None:
    """Concrete enforcement proposal for one freshly detected pattern."""
    kind = pattern["type"]
    if kind == "domain-mismatch":
        return {
            "type": "vocabulary-enforcement",
            "description": "Add domain-specific vocabulary validation",
            "implementation": {"validation": "domain-terms-check", "blocked_terms": pattern["violating_terms"]},
        }
    if kind == "user-misalignment":
        return {
            "type": "user-story-template",
            "description": "Enforce user story format that explicitly mentions target users",
            "implementation": {
                "template": "As a [TARGET_USER], I want...",
                "validation": "user-mention-required",
                "allowed_users": pattern["target_users"],
            },
        }
    if kind == "feature-creep":
        return {
            "type": "scope-change-control",
            "description": "Require explicit approval for scope expansions",
            "implementation": {
                "process": "change-request-required",
                "approvers": ["product-owner", "project-manager"],
            },
        }
    if kind == "not-this-violation":
        return {
            "type": "blacklist-enforcement",
            "description": "Block items containing NOT THIS terms",
            "implementation": {"validation": "not-this-check", "blocked_terms": pattern["violated"]},
        }
    if kind == "terminology-drift":
        return {
            "type": "glossary-enforcement",
            "description": "Require use of approved domain terminology",
            "implementation": {"validation": "term-consistency-check", "glossary": pattern["expected_terms"]},
        }
    return None


def risk_factors(truth: ProjectTruth, relevant: list[ViolationPattern]) -> list[dict[str, str]]:
    """Completeness gaps in the truth document plus violation history."""
    risks = []
    if len(truth.industry.strip()) < 10:
        risks.append(
            {"factor": "Vague industry definition", "impact": "high", "mitigation": "Clarify specific industry niche"}
        )
    if not truth.not_this:
        risks.append(
            {
                "factor": "Missing NOT THIS definitions",
                "impact": "high",
                "mitigation": "Define what the project explicitly is NOT",
            }
        )
    primary_words = set(truth.target_users.primary.lower().split())
    if not primary_words or primary_words & {"everyone", "all", "anyone"}:
        risks.append(
            {
                "factor": "Too broad target user definition",
                "impact": "medium",
                "mitigation": "Narrow down to specific user segments",
            }
        )
    if not truth.domain_terms:
        risks.append(
            {
                "factor": "No domain glossary",
                "impact": "medium",
                "mitigation": "Add the key domain terms and their definitions",
            }
        )
    if len(relevant) > 10:
        risks.append(
            {
                "factor": "History of violations in this domain",
                "impact": "medium",
                "mitigation": "Implement stricter validation rules",
            }
        )
    return risks


def project_recommendations(
    common: list[dict[str, Any]], risks: list[dict[str, str]]
) -> list[dict[str, str]]:
    recommendations = []
    if common:
        recommendations.append(
            {
                "priority": "high",
                "action": "Review and address common violation patterns",
                "details": f"Focus on: {common[0]['type']}",
            }
        )
    for risk in risks:
        if risk["impact"] == "high":
            recommendations.append({"priority": "critical", "action": risk["mitigation"], "reason": risk["factor"]})
    recommendations.append(
        {
            "priority": "medium",
            "action": "Implement pre-commit context validation",
            "details": "Catch violations before they enter the codebase",
        }
    )
    recommendations.append(
        {
            "priority": "medium",
            "action": "Regular team context alignment sessions",
            "details": "Weekly review of Project Truth document",
        }
    )
    return recommendations


def prevention_opportunity(patterns: list[dict[str, Any]]) -> dict[str, Any] | None:
    kinds = {p["type"] for p in patterns}
    if "terminology-drift" in kinds:
        return {
            "description": "Implement automated terminology validation",
            "implementation": {"type": "pre-commit-hook", "check": "domain-terminology"},
        }
    if "not-this-violation" in kinds:
        return {
            "description": "Add NOT THIS validation to backlog creation",
            "implementation": {"type": "backlog-validation", "check": "not-this-terms"},
        }
    return None


def trend(recent: list[ViolationPattern]) -> dict[str, Any] | None:
    """Dominant violation type among recently seen patterns, when frequent."""
    if len(recent) < 3:
        return None
    counts: dict[str, int] = {}
    for pattern in recent:
        counts[pattern.type] = counts.get(pattern.type, 0) + pattern.occurrences
    kind, frequency = max(counts.items(), key=lambda entry: entry[1])
    if frequency <= 5:
        return None
    return {
        "description": f"Increasing {kind} violations",
        "frequency": frequency,
        "severity": "high" if frequency > 10 else "medium",
    }
