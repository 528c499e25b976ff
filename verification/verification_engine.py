"""Verifies work items against the project truth."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from core.errors import SentinelError
from core.event_bus import EventBus
from governance.audit_logger import AuditLogger
from models.learning import ViolationPattern
from models.truth import ProjectTruth
from models.verification import (
    BacklogVerification,
    SprintVerification,
    VerificationItem,
    VerificationResult,
)
from storage.file_store import FileStore
from truth.truth_store import TruthStore
from verification.confidence_scorer import ConfidenceScorer

logger = logging.getLogger("cs.verification")

VIOLATION_EVENT = "violation_detected"
BACKLOG_PATH = "project-documents/orchestration/product-backlog/backlog-state.json"
SPRINTS_DIR = "project-documents/orchestration/sprints"

DEFAULT_THRESHOLDS = {"blocked": 95, "review": 80, "warning": 60}


def parse_sprint_tasks(content: str) -> list[VerificationItem]:
    """Each ``### `` heading starts a task; following lines form its description."""
    tasks: list[VerificationItem] = []
    title: str | None = None
    body: list[str] = []
    for line in content.splitlines():
        if re.match(r"^###\s+", line):
            if title is not None:
                tasks.append(_sprint_task(title, body))
            title, body = re.sub(r"^###\s+", "", line).strip(), []
        elif title is not None and line.strip():
            body.append(line)
    if title is not None:
        tasks.append(_sprint_task(title, body))
    return tasks


def _sprint_task(title: str, body: list[str]) -> VerificationItem:
    return VerificationItem(title=title, description="\n".join(body), category="sprint-task")


class VerificationEngine:
    """Scores items, maps scores to statuses and forwards violations for learning."""

    def __init__(
        self,
        truth_store: TruthStore,
        store: FileStore,
        scorer: ConfidenceScorer | None = None,
        event_bus: EventBus | None = None,
        history_source: Any | None = None,
        audit_logger: AuditLogger | None = None,
        thresholds: dict[str, int] | None = None,
    ) -> None:
        self.truth_store = truth_store
        self.store = store
        self.scorer = scorer or ConfidenceScorer()
        self.event_bus = event_bus or EventBus()
        self.history_source = history_source
        self.audit_logger = audit_logger
        self.thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}

    def status_for(self, confidence: int) -> str:
        """Fixed ladder from confidence to status."""
        if confidence >= self.thresholds["blocked"]:
            return "blocked"
        if confidence >= self.thresholds["review"]:
            return "review"
        if confidence >= self.thresholds["warning"]:
            return "warning"
        return "allowed"

    def history_snapshot(self) -> list[ViolationPattern]:
        if self.history_source is None:
            return []
        try:
            return list(self.history_source.historical_snapshot())
        except SentinelError as exc:
            logger.warning("Pattern history unavailable: %s", exc)
            return []

    def verify_item(
        self, item: VerificationItem | dict[str, Any] | str, category: str = "general"
    ) -> VerificationResult:
        """Verify one item; without a truth document the result is a zero-confidence warning."""
        truth = self.truth_store.truth
        if truth is None:
            return VerificationResult(
                status="warning",
                confidence=0,
                message="No project truth document found",
                recommendation="Create project truth document first",
                truth_missing=True,
            )

        if isinstance(item, dict):
            item = VerificationItem.model_validate(item)
        score = self.scorer.score(item, truth, category, history=self.history_snapshot())
        status = self.status_for(score.score)
        if status == "blocked":
            message = f"Context violation detected: {score.reason}"
            recommendation = "This item does not align with project goals"
        elif status == "review":
            message = f"Possible context drift: {score.reason}"
            recommendation = "Review with Project Manager for alignment"
        elif status == "warning":
            message = f"Minor concern: {score.reason}"
            recommendation = "Consider clarifying alignment with project goals"
        else:
            message = "Item aligns with project context"
            recommendation = ""

        result = VerificationResult(
            status=status,
            confidence=score.score,
            message=message,
            recommendation=recommendation,
            details=score.details,
        )
        if status in ("blocked", "review"):
            self._publish_violation(item, score.score, score.reason, result, truth, category)
        return result

    def _publish_violation(
        self,
        item: VerificationItem | str,
        confidence: int,
        reason: str,
        result: VerificationResult,
        truth: ProjectTruth,
        category: str,
    ) -> None:
        item_payload = (
            {"title": item} if isinstance(item, str) else item.model_dump(mode="json")
        )
        payload = {
            "item": item_payload,
            "confidence": confidence,
            "reason": reason,
            "details": result.details.model_dump() if result.details else {},
            "truth": truth.model_dump(mode="json"),
            "category": category,
        }
        delivered = self.event_bus.emit(VIOLATION_EVENT, payload)
        logger.info("Violation (%s, %d) forwarded to %d subscriber(s)", result.status, confidence, delivered)
        if self.audit_logger is not None:
            self.audit_logger.log(
                event="verification",
                subject=item_payload.get("title", ""),
                inputs=item_payload,
                outcome=result.status,
                reason=reason,
            )

    def verify_items(
        self, items: Iterable[VerificationItem | dict[str, Any]], category: str
    ) -> list[dict[str, Any]]:
        """Verify each item independently; a failing item is recorded, not raised."""
        results: list[dict[str, Any]] = []
        for raw in items:
            entry: dict[str, Any] = {}
            try:
                item = raw if isinstance(raw, VerificationItem) else VerificationItem.model_validate(
                    {**_normalize_keys(raw), "category": category}
                )
                entry = {"id": item.id, "title": item.title}
                entry.update(self.verify_item(item, category).model_dump(mode="json"))
            except Exception as exc:
                logger.warning("Verification of %r failed: %s", raw, exc)
                title = raw.get("title", "") if isinstance(raw, dict) else ""
                entry = {"id": None, "title": title, "status": "error", "error": str(exc)}
            results.append(entry)
        return results

    def verify_backlog(self) -> BacklogVerification:
        if not self.store.exists(BACKLOG_PATH):
            return BacklogVerification(success=False, message="No backlog found")
        try:
            backlog = self.store.read_json(BACKLOG_PATH)
        except SentinelError as exc:
            logger.warning("Backlog unreadable: %s", exc)
            return BacklogVerification(success=False, message=f"Backlog unreadable: {exc}")
        items = backlog.get("items", []) if isinstance(backlog, dict) else []

        report = BacklogVerification(success=True)
        report.items = self.verify_items(items, "backlog")
        report.total = len(report.items)
        for entry in report.items:
            status = entry.get("status")
            if status == "allowed":
                report.aligned += 1
            elif status == "warning":
                report.warnings += 1
            elif status == "review":
                report.reviews += 1
            elif status == "blocked":
                report.violations += 1
            else:
                report.errors += 1
        report.partial = report.errors > 0
        report.purity_score = purity_score(report.aligned, report.total)
        report.message = f"{report.total} backlog items verified"
        return report

    def verify_sprint_tasks(self, sprint_name: str) -> SprintVerification:
        tasks_path = f"{SPRINTS_DIR}/{sprint_name}/planning/selected-backlog-items.md"
        try:
            if not self.store.exists(tasks_path):
                return SprintVerification(success=False, message="Sprint tasks not found", sprint_name=sprint_name)
            content = self.store.read_text(tasks_path)
        except SentinelError as exc:
            logger.warning("Sprint tasks for %s unreadable: %s", sprint_name, exc)
            return SprintVerification(
                success=False, message=f"Sprint tasks unreadable: {exc}", sprint_name=sprint_name
            )
        tasks = parse_sprint_tasks(content)
        result = SprintVerification(success=True, sprint_name=sprint_name)
        result.tasks = self.verify_items(tasks, "sprint-task")
        result.can_proceed = not any(t.get("status") == "blocked" for t in result.tasks)
        result.partial = any(t.get("status") == "error" for t in result.tasks)
        result.message = f"{len(result.tasks)} sprint tasks verified"
        return result

    def get_learning_insights(self) -> dict[str, Any]:
        truth = self.truth_store.truth
        if truth is None:
            return {"success": False, "message": "No project truth document found"}
        if self.history_source is None:
            return {"success": False, "message": "Learning system not configured"}
        insights = self.history_source.get_project_insights(truth)
        return {"success": True, "insights": insights}

    def apply_learned_prevention(self) -> dict[str, Any]:
        result = self.get_learning_insights()
        if result["success"] and result["insights"].prevention_strategies:
            return {
                "success": True,
                "strategies": result["insights"].prevention_strategies,
                "recommendations": result["insights"].recommendations,
            }
        return {"success": False, "message": "No prevention strategies available yet"}


def purity_score(aligned: int, total: int) -> int:
    """Percentage of aligned items; an empty batch is fully pure."""
    if total == 0:
        return 100
    return int(aligned * 100 / total + 0.5)


def _normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    """Accept camelCase backlog fields."""
    data = dict(raw)
    if "acceptanceCriteria" in data and "acceptance_criteria" not in data:
        data["acceptance_criteria"] = data.pop("acceptanceCriteria")
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    allowed = {"id", "title", "description", "acceptance_criteria", "details"}
    return {k: v for k, v in data.items() if k in allowed}
