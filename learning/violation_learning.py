"""Learns recurring violation patterns from review/blocked verifications."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import select

from core.clock import SystemClock
from core.errors import SentinelError
from learning import insights as insight_rules
from learning.pattern_detectors import DETECTORS, pattern_id
from models.learning import ProjectInsights, Violation, ViolationPattern
from models.truth import ProjectTruth
from storage.file_store import FileStore
from storage.schemas import ViolationPatternRecord
from storage.sql_store import SQLStore
from verification.confidence_scorer import item_text

logger = logging.getLogger("cs.learning")

LEARNINGS_DIR = "community-learnings/analysis/context-violations"
PATTERNS_SUMMARY_PATH = "community-learnings/analysis/violation-patterns.json"
TREND_WINDOW = timedelta(days=30)


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _to_model(record: ViolationPatternRecord) -> ViolationPattern:
    return ViolationPattern(
        id=record.pattern_id,
        type=record.type,
        occurrences=record.occurrences,
        confidence=record.confidence,
        first_seen=_aware(record.first_seen),
        last_seen=_aware(record.last_seen),
        pattern=dict(record.pattern_json or {}),
        examples=list(record.examples_json or []),
    )


class ViolationLearningSystem:
    """Keyed pattern store plus per-violation learning records."""

    def __init__(
        self,
        sql_store: SQLStore,
        store: FileStore,
        clock: Any | None = None,
        max_examples: int = 10,
    ) -> None:
        self.sql_store = sql_store
        self.store = store
        self.clock = clock or SystemClock()
        self.max_examples = max_examples
        self.sql_store.create_all()

    def handle_event(self, payload: dict[str, Any]) -> None:
        """Event bus subscriber for ``violation_detected``."""
        self.learn_from_violation(payload)

    def extract_patterns(self, violation: Violation) -> list[dict[str, Any]]:
        """Run every detector; one failing detector does not stop the others."""
        truth = ProjectTruth.model_validate(violation.truth)
        text = item_text(violation.item)
        patterns = []
        for detector in DETECTORS:
            try:
                pattern = detector(text, violation, truth)
            except Exception as exc:
                logger.warning("Detector %s failed: %s", detector.__name__, exc)
                continue
            if pattern is not None:
                patterns.append(pattern)
        return patterns

    def learn_from_violation(self, violation: Violation | dict[str, Any]) -> dict[str, Any]:
        if isinstance(violation, dict):
            violation = Violation.model_validate(violation)
        now = self.clock.now()
        learning_id = f"violation-{now.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:6]}"

        patterns = self.extract_patterns(violation)
        self.update_patterns(patterns, violation)
        insights = self.generate_insights(patterns)
        prevention = self.generate_prevention_recommendations(patterns, insights)

        learning = {
            "id": learning_id,
            "timestamp": now.isoformat(),
            "violation": violation.model_dump(mode="json", exclude={"truth"}),
            "context": {"project_truth": violation.truth, "violation_type": violation.category},
            "patterns": patterns,
            "insights": insights,
        }
        self.save_learning(learning)
        logger.info("Learned %d pattern(s) from %s", len(patterns), learning_id)
        return {
            "learning_id": learning_id,
            "patterns": len(patterns),
            "insights": len(insights),
            "prevention": prevention,
        }

    def update_patterns(self, patterns: list[dict[str, Any]], violation: Violation) -> list[ViolationPattern]:
        """Merge each pattern into the store; every key is updated in its own transaction."""
        merged = []
        for pattern in patterns:
            key = pattern_id(pattern)
            now = self.clock.now()
            example = {
                "timestamp": now.isoformat(),
                "item_title": str(violation.item.get("title", "")),
                "category": violation.category,
                "confidence": pattern.get("confidence", 0),
            }
            with self.sql_store.transaction() as session:
                record = session.scalar(
                    select(ViolationPatternRecord).where(ViolationPatternRecord.pattern_id == key)
                )
                if record is None:
                    record = ViolationPatternRecord(
                        pattern_id=key,
                        type=pattern["type"],
                        occurrences=1,
                        confidence=float(pattern.get("confidence", 0)),
                        first_seen=now,
                        last_seen=now,
                        pattern_json=pattern,
                        examples_json=[example],
                    )
                    session.add(record)
                else:
                    record.occurrences += 1
                    record.confidence = (record.confidence + float(pattern.get("confidence", 0))) / 2
                    record.last_seen = now
                    record.examples_json = [*(record.examples_json or []), example][-self.max_examples :]
                session.flush()
                merged.append(_to_model(record))
        if merged:
            self._export_summary()
        return merged

    def _export_summary(self) -> None:
        patterns = self.list_patterns()
        try:
            self.store.write_json(
                PATTERNS_SUMMARY_PATH,
                {
                    "last_updated": self.clock.now().isoformat(),
                    "total_patterns": len(patterns),
                    "patterns": [p.model_dump(mode="json") for p in patterns],
                },
            )
        except SentinelError as exc:
            logger.warning("Pattern summary export failed: %s", exc)

    def save_learning(self, learning: dict[str, Any]) -> None:
        try:
            self.store.write_json(f"{LEARNINGS_DIR}/{learning['id']}.json", learning)
        except SentinelError as exc:
            logger.warning("Learning record %s not saved: %s", learning["id"], exc)

    def generate_insights(self, patterns: list[dict[str, Any]]) -> list[dict[str, Any]]:
        insights: list[dict[str, Any]] = []
        cause = insight_rules.root_cause(patterns)
        if cause:
            insights.append({"type": "root-cause", "description": cause, "actionable": True})

        cutoff = self.clock.now() - TREND_WINDOW
        recent = [p for p in self.list_patterns() if p.last_seen >= cutoff]
        trend = insight_rules.trend(recent)
        if trend:
            insights.append({"type": "trend", **trend})

        opportunity = insight_rules.prevention_opportunity(patterns)
        if opportunity:
            insights.append({"type": "prevention", **opportunity})

        if any(p["type"] == "feature-creep" for p in patterns):
            insights.append(
                {
                    "type": "process-improvement",
                    "description": "Feature creep detected - strengthen scope management",
                    "recommendation": "Implement stricter change control process",
                }
            )
        return insights

    def generate_prevention_recommendations(
        self, patterns: list[dict[str, Any]], insights: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        recommendations = [rec for rec in map(insight_rules.prevention_for, patterns) if rec]
        for insight in insights:
            if insight["type"] == "prevention" and insight.get("implementation"):
                recommendations.append(
                    {
                        "type": "insight-based",
                        "description": insight["description"],
                        "implementation": insight["implementation"],
                    }
                )
        return recommendations

    def list_patterns(self) -> list[ViolationPattern]:
        """All patterns, most frequent first."""
        with self.sql_store.session() as session:
            records = session.scalars(
                select(ViolationPatternRecord).order_by(
                    ViolationPatternRecord.occurrences.desc(), ViolationPatternRecord.pattern_id
                )
            ).all()
            return [_to_model(r) for r in records]

    def get_pattern(self, key: str) -> ViolationPattern | None:
        with self.sql_store.session() as session:
            record = session.scalar(
                select(ViolationPatternRecord).where(ViolationPatternRecord.pattern_id == key)
            )
            return _to_model(record) if record else None

    def historical_snapshot(self) -> tuple[ViolationPattern, ...]:
        """Immutable view of the store for scoring."""
        return tuple(self.list_patterns())

    def get_project_insights(self, truth: ProjectTruth) -> ProjectInsights:
        relevant = [p for p in self.list_patterns() if insight_rules.is_relevant(p, truth)]
        relevant.sort(key=lambda p: p.occurrences, reverse=True)
        common = [
            {"type": p.type, "occurrences": p.occurrences, "description": insight_rules.describe(p)}
            for p in relevant[:5]
        ]
        strategies: list[dict[str, Any]] = []
        seen: set[str] = set()
        for pattern in relevant:
            strategy = insight_rules.prevention_strategy(pattern.type)
            if strategy and pattern.type not in seen:
                seen.add(pattern.type)
                strategies.append(strategy)
        risks = insight_rules.risk_factors(truth, relevant)
        return ProjectInsights(
            common_violations=common,
            prevention_strategies=strategies,
            risk_factors=risks,
            recommendations=insight_rules.project_recommendations(common, risks),
        )
