"""Heuristic confidence scoring for context alignment.

A score estimates (0-100) how likely an item violates the project truth.
It is the weighted sum of four independent dimension scores:

- domain alignment (40%): out-of-domain vocabulary and NOT THIS matches
- user alignment (30%): whether the item serves the target users
- competitor feature (20%): overlap with competitor-exclusive concepts
- historical pattern (10%): resemblance to learned violation patterns

Explicit out-of-domain vocabulary or a NOT THIS match is a hard block:
the final score is floored at the domain score, which is at least 95.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from models.learning import ViolationPattern
from models.truth import ProjectTruth
from models.verification import ConfidenceScore, ScoreBreakdown, VerificationItem
from verification.vocabulary import (
    COMMON_FEATURES,
    DOMAIN_INDICATORS,
    DOMAIN_MISMATCHES,
    USER_BENEFITS,
    contains_term,
    lookup,
    matching_terms,
    not_this_hits,
    significant_words,
)

# Without a hard block the shipped tables top out at 79, so "review" needs custom weights or scorers.
WEIGHTS: dict[str, float] = {
    "domain_alignment": 0.40,
    "user_alignment": 0.30,
    "competitor_feature": 0.20,
    "historical_pattern": 0.10,
}

HARD_BLOCK_BASE = 90

REASONS: dict[str, dict[str, str]] = {
    "domain_alignment": {
        "high": "Item contains terms explicitly outside project domain",
        "medium": "Item lacks domain-specific terminology",
        "low": "Item aligns well with project domain",
    },
    "user_alignment": {
        "high": "Item does not benefit target users",
        "medium": "Unclear how item benefits target users",
        "low": "Item clearly benefits target users",
    },
    "competitor_feature": {
        "high": "Item overlaps with competitor-exclusive concepts",
        "medium": "Feature alignment with market unclear",
        "low": "Common feature in the market",
    },
    "historical_pattern": {
        "high": "Similar items caused context drift before",
        "medium": "Pattern resembles past violations",
        "low": "No concerning historical patterns",
    },
}


@dataclass(frozen=True)
class DimensionScore:
    """One dimension's score plus the terms that triggered a hard block."""

    value: int
    hard_block_terms: tuple[str, ...] = field(default_factory=tuple)


DimensionScorer = Callable[[str, ProjectTruth], DimensionScore]


def item_text(item: VerificationItem | dict[str, Any] | str) -> str:
    """Flatten an item into lower-cased text."""
    if isinstance(item, str):
        return item.lower()
    if isinstance(item, dict):
        item = VerificationItem.model_validate(item)
    return item.text().lower()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_domain(text: str, truth: ProjectTruth) -> DimensionScore:
    mismatches = matching_terms(text, lookup(DOMAIN_MISMATCHES, truth.industry))
    forbidden = not_this_hits(text, truth.not_this)
    hits = tuple(mismatches) + tuple(forbidden)
    if hits:
        return DimensionScore(min(100, HARD_BLOCK_BASE + 5 * len(hits)), hits)

    indicators = matching_terms(text, lookup(DOMAIN_INDICATORS, truth.industry))
    if indicators:
        return DimensionScore(max(0, 20 - 5 * len(indicators)))

    if truth.domain_terms and not any(contains_term(text, t.term) for t in truth.domain_terms):
        return DimensionScore(70)
    return DimensionScore(40)


def _benefits_user(text: str, user: str) -> bool:
    return bool(matching_terms(text, lookup(USER_BENEFITS, user)))


def score_users(text: str, truth: ProjectTruth) -> DimensionScore:
    primary = truth.target_users.primary.strip().lower()
    secondary = truth.target_users.secondary.strip().lower()
    if not primary and not secondary:
        return DimensionScore(50)
    if primary and (contains_term(text, primary) or _benefits_user(text, primary)):
        return DimensionScore(10)
    if secondary and (contains_term(text, secondary) or _benefits_user(text, secondary)):
        return DimensionScore(30)
    return DimensionScore(80)


def _own_vocabulary(truth: ProjectTruth) -> set[str]:
    words = set(significant_words(truth.what_were_building))
    words.update(significant_words(truth.industry))
    for term in truth.domain_terms:
        words.update(significant_words(term.term))
        words.update(significant_words(term.definition))
    return words


def score_competitors(text: str, truth: ProjectTruth) -> DimensionScore:
    if any(c.name and contains_term(text, c.name) for c in truth.competitors):
        return DimensionScore(85)
    own = _own_vocabulary(truth)
    exclusive = {
        word
        for competitor in truth.competitors
        for word in significant_words(competitor.description)
        if word not in own
    }
    overlap = [word for word in sorted(exclusive) if contains_term(text, word)]
    if overlap:
        return DimensionScore(min(90, 60 + 10 * len(overlap)))
    if matching_terms(text, COMMON_FEATURES):
        return DimensionScore(20)
    return DimensionScore(50)


def pattern_terms(pattern: ViolationPattern) -> list[str]:
    """Terms a stored pattern was triggered by."""
    data = pattern.pattern
    terms: list[str] = []
    for key in ("violating_terms", "violated", "creep_indicators"):
        terms.extend(str(t) for t in data.get(key, []) or [])
    return terms


def score_history(text: str, patterns: Sequence[ViolationPattern]) -> DimensionScore:
    similar = [p for p in patterns if any(contains_term(text, t) for t in pattern_terms(p))]
    if similar:
        return DimensionScore(min(90, 60 + 10 * len(similar)))
    return DimensionScore(30)


class ConfidenceScorer:
    """Pure, deterministic scorer; dimension scorers are swappable."""

    def __init__(
        self,
        domain_scorer: DimensionScorer = score_domain,
        user_scorer: DimensionScorer = score_users,
        competitor_scorer: DimensionScorer = score_competitors,
        weights: dict[str, float] | None = None,
    ) -> None:
        self.domain_scorer = domain_scorer
        self.user_scorer = user_scorer
        self.competitor_scorer = competitor_scorer
        self.weights = dict(weights or WEIGHTS)

    def score(
        self,
        item: VerificationItem | dict[str, Any] | str,
        truth: ProjectTruth,
        category: str = "general",
        history: Iterable[ViolationPattern] = (),
    ) -> ConfidenceScore:
        """Score ``item`` against ``truth``; ``history`` is a pattern snapshot."""
        _ = category
        text = item_text(item).strip()
        if not text:
            return ConfidenceScore(
                score=0,
                details=ScoreBreakdown(),
                primary_factor="domain_alignment",
                reason="Item has no content to verify",
            )

        domain = self.domain_scorer(text, truth)
        users = self.user_scorer(text, truth)
        competitors = self.competitor_scorer(text, truth)
        historical = score_history(text, tuple(history))
        details = ScoreBreakdown(
            domain_alignment=domain.value,
            user_alignment=users.value,
            competitor_feature=competitors.value,
            historical_pattern=historical.value,
        )
        raw = details.model_dump()
        weighted = round_half_up(sum(raw[k] * self.weights[k] for k in self.weights))
        hard_terms = list(domain.hard_block_terms)
        if hard_terms:
            weighted = max(weighted, domain.value)

        primary = self.primary_factor(raw)
        return ConfidenceScore(
            score=min(100, weighted),
            details=details,
            primary_factor=primary,
            reason=self.reason_for(primary, raw[primary]),
            hard_block_terms=hard_terms,
        )

    def primary_factor(self, scores: dict[str, int]) -> str:
        """Dimension with the largest weighted contribution; ties keep declaration order."""
        best, best_value = "domain_alignment", -1.0
        for factor, weight in self.weights.items():
            value = scores[factor] * weight
            if value > best_value:
                best, best_value = factor, value
        return best

    @staticmethod
    def reason_for(factor: str, score: int) -> str:
        level = "high" if score >= 80 else "medium" if score >= 50 else "low"
        return REASONS[factor][level]
