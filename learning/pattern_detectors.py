"""Detectors that turn one violation into zero or more violation patterns.

Each detector is independent and returns a pattern dict or None. A pattern
carries its ``type``, a ``confidence`` and the fields that make up its
signature (see ``SIGNATURE_FIELDS``).
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import Any

from models.learning import Violation
from models.truth import ProjectTruth
from verification.vocabulary import (
    CREEP_PHRASES,
    DOMAIN_MISMATCHES,
    USER_FOCUS,
    contains_term,
    lookup,
    matching_terms,
    not_this_hits,
)

SIGNATURE_FIELDS: dict[str, tuple[str, ...]] = {
    "domain-mismatch": ("industry", "violating_terms"),
    "user-misalignment": ("target_users", "actual_focus"),
    "feature-creep": ("original_scope", "creep_indicators"),
    "not-this-violation": ("violated",),
    "terminology-drift": ("expected_terms",),
}

Detector = Callable[[str, Violation, ProjectTruth], dict[str, Any] | None]


def detect_domain_mismatch(text: str, violation: Violation, truth: ProjectTruth) -> dict[str, Any] | None:
    score = violation.details.get("domain_alignment", 0)
    if score <= 80:
        return None
    return {
        "type": "domain-mismatch",
        "industry": truth.industry,
        "violating_terms": sorted(matching_terms(text, lookup(DOMAIN_MISMATCHES, truth.industry))),
        "confidence": score,
    }


def actual_user_focus(text: str) -> str:
    for focus, keywords in USER_FOCUS.items():
        if matching_terms(text, keywords):
            return focus
    return "unknown"


def detect_user_misalignment(text: str, violation: Violation, truth: ProjectTruth) -> dict[str, Any] | None:
    score = violation.details.get("user_alignment", 0)
    if score <= 70:
        return None
    return {
        "type": "user-misalignment",
        "target_users": truth.target_users.model_dump(),
        "actual_focus": actual_user_focus(text),
        "confidence": score,
    }


def detect_feature_creep(text: str, violation: Violation, truth: ProjectTruth) -> dict[str, Any] | None:
    if violation.confidence <= 80:
        return None
    indicators = sorted(matching_terms(text, CREEP_PHRASES))
    if not indicators and "outside project domain" not in violation.reason:
        return None
    return {
        "type": "feature-creep",
        "original_scope": truth.what_were_building,
        "creep_indicators": indicators,
        "confidence": violation.confidence,
    }


def detect_not_this(text: str, violation: Violation, truth: ProjectTruth) -> dict[str, Any] | None:
    violated = not_this_hits(text, truth.not_this)
    if not violated:
        return None
    return {"type": "not-this-violation", "violated": sorted(violated), "confidence": 95}


def terminology_coverage(text: str, truth: ProjectTruth) -> dict[str, Any]:
    expected = sorted(t.term.lower() for t in truth.domain_terms if t.term.strip())
    used = [term for term in expected if contains_term(text, term)]
    drift = 100 - len(used) * 100 / len(expected) if expected else 0
    return {
        "expected": expected,
        "actual": sorted({w for w in text.split() if len(w) > 3}),
        "drift_score": round(drift, 2),
    }


def detect_terminology_drift(text: str, violation: Violation, truth: ProjectTruth) -> dict[str, Any] | None:
    coverage = terminology_coverage(text, truth)
    if coverage["drift_score"] <= 50:
        return None
    return {
        "type": "terminology-drift",
        "expected_terms": coverage["expected"],
        "actual_terms": coverage["actual"],
        "drift_score": coverage["drift_score"],
        "confidence": coverage["drift_score"],
    }


DETECTORS: tuple[Detector, ...] = (
    detect_domain_mismatch,
    detect_user_misalignment,
    detect_feature_creep,
    detect_not_this,
    detect_terminology_drift,
)


def pattern_id(pattern: dict[str, Any]) -> str:
    """Stable key from the pattern type and its signature fields."""
    kind = pattern["type"]
    fields = SIGNATURE_FIELDS.get(kind, tuple(sorted(k for k in pattern if k != "confidence")))
    signature = json.dumps({f: pattern.get(f) for f in fields}, sort_keys=True, default=str)
    return f"{kind}-{hashlib.sha256(signature.encode('utf-8')).hexdigest()[:12]}"
