"""Periodic context drift detection.

A cycle samples five artifact categories, scores each sample against the
project truth and reduces the results to an overall drift percentage and a
severity. Checks are independent: a failing check is recorded with its
error and left out of the overall drift.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from core.clock import SystemClock
from core.errors import SentinelError
from core.scheduler import ThreadingScheduler
from drift.trend import analyze_trend
from models.drift import DriftCheck, DriftReport, DriftTrend
from models.truth import ProjectTruth
from storage.file_store import FileStore
from truth.truth_store import TRUTH_DIR
from verification.confidence_scorer import round_half_up
from verification.verification_engine import BACKLOG_PATH, SPRINTS_DIR, VerificationEngine

logger = logging.getLogger("cs.drift")

DOCUMENTS_DIR = "project-documents"
DECISIONS_PATH = "project-state/decisions/decisions-log.json"
REPORTS_DIR = "project-documents/orchestration/drift-reports"
ESCALATIONS_PATH = "project-documents/orchestration/stakeholder-escalations.md"
ESCALATIONS_HEADER = "# Stakeholder Escalations\n\n"
# Artifacts written by drift monitoring itself are not sampled.
GENERATED_PREFIXES = (
    f"{TRUTH_DIR}/",
    "project-documents/orchestration/drift-resolution/",
    "project-documents/orchestration/emergency-meetings/",
    "project-documents/orchestration/discussions/",
    ESCALATIONS_PATH,
    "project-documents/orchestration/drift-log.md",
    "project-documents/orchestration/DEVELOPMENT-BLOCKED.md",
)

DEFAULT_SETTINGS: dict[str, Any] = {
    "interval_minutes": 60,
    "min_interval_minutes": 5,
    "history_limit": 100,
    "recent_days": 7,
    "backlog_sample": 10,
    "document_sample": 5,
    "decision_sample": 5,
    "document_preview_chars": 500,
    "thresholds": {"critical": 80, "major": 60, "moderate": 40, "minor": 20},
    "commits": {"enabled": False, "sample": 20},
}

SEVERITY_RECOMMENDATIONS: dict[str, list[str]] = {
    "critical": [
        "URGENT: Schedule immediate review with Project Manager and stakeholders",
        "Consider updating Project Truth document if scope has legitimately changed",
        "Pause new feature development until alignment is restored",
    ],
    "major": [
        "Schedule review session within 24 hours",
        "Audit recent decisions and backlog items",
        "Create action plan to realign with project context",
    ],
    "moderate": [
        "Review flagged items in next sprint planning",
        "Update team on project context and goals",
        "Reinforce context awareness in daily activities",
    ],
    "minor": [
        "Monitor drift trend over next few checks",
        "Continue current practices with minor adjustments",
    ],
}

CHECK_RECOMMENDATIONS: dict[str, str] = {
    "backlog": "Review and clean up backlog items ({drift}% drift)",
    "recent-documents": "Ensure documentation aligns with project goals ({drift}% drift)",
    "sprint-goals": "Realign sprint goals with project context ({drift}% drift)",
    "decisions": "Review recent decisions for alignment ({drift}% drift)",
}

CheckFn = Callable[[ProjectTruth], dict[str, Any]]


def severity_for(drift: float, thresholds: dict[str, int]) -> str:
    """Severity ladder; each lower bound is inclusive."""
    for severity in ("critical", "major", "moderate", "minor"):
        if drift >= thresholds[severity]:
            return severity
    return "none"


def recommendations_for(report: DriftReport) -> list[str]:
    recommendations = list(SEVERITY_RECOMMENDATIONS.get(report.severity, []))
    for check in report.checks:
        template = CHECK_RECOMMENDATIONS.get(check.name)
        if template and check.ok and check.drift > 60:
            recommendations.append(template.format(drift=_fmt(check.drift)))
    return recommendations


def mean_drift(confidences: list[int]) -> float:
    """Mean confidence of a sample; an empty sample has no drift."""
    if not confidences:
        return 0.0
    return min(100.0, sum(confidences) / len(confidences))


def _fmt(value: float) -> str:
    return f"{value:g}"


def _parse_time(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(str(raw))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class DriftDetector:
    """Monitoring state machine: idle, or monitoring with an armed scheduler."""

    def __init__(
        self,
        engine: VerificationEngine,
        store: FileStore,
        coordinator: Any | None = None,
        scheduler: Any | None = None,
        clock: Any | None = None,
        settings: dict[str, Any] | None = None,
        checks: list[tuple[str, CheckFn]] | None = None,
        git_runner: Callable[[list[str]], str] | None = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.coordinator = coordinator
        self.scheduler = scheduler or ThreadingScheduler()
        self.clock = clock or SystemClock()
        self.settings = {**DEFAULT_SETTINGS, **(settings or {})}
        self.thresholds = {**DEFAULT_SETTINGS["thresholds"], **self.settings.get("thresholds", {})}
        self.checks = checks or [
            ("backlog", self.check_backlog),
            ("recent-documents", self.check_documents),
            ("commit-messages", self.check_commits),
            ("sprint-goals", self.check_sprint_goals),
            ("decisions", self.check_decisions),
        ]
        self.git_runner = git_runner or self._run_git
        self.history: deque[DriftReport] = deque(maxlen=int(self.settings["history_limit"]))
        self.monitoring = False
        self.last_check: datetime | None = None
        self._cycle_lock = threading.Lock()

    # Monitoring lifecycle

    def start_monitoring(self, interval_minutes: float | None = None) -> dict[str, Any]:
        """Arm the scheduler and run one cycle immediately."""
        if self.engine.truth_store.truth is None:
            return {"success": False, "message": "No project truth document found. Cannot monitor drift."}
        minutes = float(self.settings["interval_minutes"] if interval_minutes is None else interval_minutes)
        if minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        minutes = max(minutes, float(self.settings["min_interval_minutes"]))

        self.monitoring = True
        self.scheduler.schedule(minutes * 60, self._scheduled_cycle)
        logger.info("Context drift monitoring started (every %s minutes)", _fmt(minutes))
        report = self.check_drift_now()
        return {"success": True, "interval_minutes": minutes, "report": report}

    def stop_monitoring(self) -> None:
        self.scheduler.cancel()
        if self.monitoring:
            logger.info("Context drift monitoring stopped")
        self.monitoring = False

    def _scheduled_cycle(self) -> None:
        if self.monitoring:
            self.check_drift_now()

    # Cycle

    def check_drift_now(self) -> DriftReport | None:
        """Run one cycle; returns None when another cycle is already running."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Drift cycle already running; skipped")
            return None
        try:
            return self._perform_cycle()
        finally:
            self._cycle_lock.release()

    def _perform_cycle(self) -> DriftReport:
        report = DriftReport(timestamp=self.clock.now())
        truth = self.engine.truth_store.reload()
        for name, check in self.checks:
            if truth is None:
                report.checks.append(DriftCheck(name=name, error="No project truth document found"))
                continue
            try:
                result = check(truth)
                report.checks.append(
                    DriftCheck(
                        name=name,
                        drift=float(result.get("drift", 0.0)),
                        details=str(result.get("details", "")),
                        items=list(result.get("items", [])),
                    )
                )
            except Exception as exc:
                logger.warning("Drift check %s failed: %s", name, exc)
                report.checks.append(DriftCheck(name=name, error=str(exc)))

        valid = [c.drift for c in report.checks if c.ok]
        report.overall_drift = round_half_up(sum(valid) / len(valid)) if valid else 0
        report.partial = len(valid) < len(report.checks)
        report.severity = severity_for(report.overall_drift, self.thresholds)
        report.recommendations = recommendations_for(report)

        self.history.append(report)
        report.trend = self.analyze_trend()
        self.last_check = report.timestamp
        self.handle_report(report)
        return report

    def handle_report(self, report: DriftReport) -> None:
        """Persist, escalate and hand off; failures here never abort the cycle."""
        logger.info("Drift check complete: %s%% (%s)", report.overall_drift, report.severity)
        report_path = self._persist(report)

        if report.severity in ("critical", "major"):
            self.escalate(report, report_path)
        if report.severity in ("critical", "major", "moderate") and self.coordinator is not None:
            try:
                self.coordinator.initiate(report)
            except Exception as exc:
                logger.warning("Drift resolution could not be initiated: %s", exc)

        trend = report.trend
        if len(self.history) >= 5 and trend is not None and trend.increasing and trend.rate > 5:
            logger.warning("Drift increasing at %s%% per check", _fmt(trend.rate))

    def _persist(self, report: DriftReport) -> str:
        path = f"{REPORTS_DIR}/drift-report-{report.timestamp.strftime('%Y-%m-%dT%H%M%S')}.json"
        try:
            self.store.write_json(path, report.model_dump(mode="json"))
        except SentinelError as exc:
            logger.warning("Drift report not persisted: %s", exc)
        return path

    def escalate(self, report: DriftReport, report_path: str) -> None:
        lines = [
            f"## Context Drift Alert - {report.timestamp.isoformat()}",
            "",
            f"- **Severity**: {report.severity.upper()}",
            f"- **Overall Drift**: {report.overall_drift}%",
            f"- **Checks Performed**: {len(report.checks)}",
            "",
            "### Drift by Area",
            *(f"- {c.name}: {_fmt(c.drift)}% drift" for c in report.checks if c.ok),
            "",
            "### Recommendations",
            *(f"- {rec}" for rec in report.recommendations),
            "",
            "### Full Report",
            f"See: {report_path}",
            "",
            "",
        ]
        try:
            self.store.append_text(ESCALATIONS_PATH, "\n".join(lines), header=ESCALATIONS_HEADER)
            logger.info("Drift alert escalated to stakeholders")
        except SentinelError as exc:
            logger.warning("Drift escalation failed: %s", exc)

    def analyze_trend(self) -> DriftTrend:
        return analyze_trend([r.overall_drift for r in self.history])

    def get_drift_status(self) -> dict[str, Any]:
        latest = self.history[-1] if self.history else None
        return {
            "monitoring": self.monitoring,
            "last_check": self.last_check,
            "current_drift": latest.overall_drift if latest else 0,
            "severity": latest.severity if latest else "none",
            "trend": self.analyze_trend(),
            "history_length": len(self.history),
        }

    # Category checks

    def _cutoff(self) -> datetime:
        return self.clock.now() - timedelta(days=int(self.settings["recent_days"]))

    def _score(self, text: str, truth: ProjectTruth, category: str) -> Any:
        return self.engine.scorer.score(text, truth, category, history=self.engine.history_snapshot())

    def check_backlog(self, truth: ProjectTruth) -> dict[str, Any]:
        if not self.store.exists(BACKLOG_PATH):
            return {"drift": 0, "details": "No backlog found"}
        backlog = self.store.read_json(BACKLOG_PATH)
        cutoff = self._cutoff()
        recent = []
        for item in backlog.get("items", []):
            created = _parse_time(item.get("createdAt") or item.get("created_at") or item.get("created"))
            if created is not None and created >= cutoff:
                recent.append(item)
        recent = recent[: int(self.settings["backlog_sample"])]
        if not recent:
            return {"drift": 0, "details": "No recent backlog items"}

        items = []
        for item in recent:
            result = self.engine.verify_item(
                {
                    "title": item.get("title", ""),
                    "description": item.get("description", ""),
                    "acceptance_criteria": item.get("acceptanceCriteria") or item.get("acceptance_criteria") or "",
                },
                "backlog",
            )
            items.append(
                {
                    "id": item.get("id"),
                    "title": item.get("title", ""),
                    "confidence": result.confidence,
                    "status": result.status,
                }
            )
        return {
            "drift": mean_drift([i["confidence"] for i in items]),
            "details": f"{len(items)} recent items analyzed",
            "items": items,
        }

    def check_documents(self, truth: ProjectTruth) -> dict[str, Any]:
        cutoff = self._cutoff()
        candidates = []
        for path in self.store.list(DOCUMENTS_DIR, suffix=".md", recursive=True):
            if path.startswith(GENERATED_PREFIXES):
                continue
            modified = self.store.modified_at(path)
            if modified > cutoff:
                candidates.append((modified, path))
        candidates.sort(key=lambda entry: entry[0], reverse=True)
        sampled = [path for _, path in candidates[: int(self.settings["document_sample"])]]
        if not sampled:
            return {"drift": 0, "details": "No recent documents"}

        preview_chars = int(self.settings["document_preview_chars"])
        items = []
        for path in sampled:
            score = self._score(self.store.read_text(path)[:preview_chars], truth, "document")
            items.append({"file": path, "confidence": score.score, "reason": score.reason})
        return {
            "drift": mean_drift([i["confidence"] for i in items]),
            "details": f"{len(items)} recent documents analyzed",
            "items": items,
        }

    def _run_git(self, args: list[str]) -> str:
        proc = subprocess.run(
            args,
            cwd=self.store.root,
            capture_output=True,
            text=True,
            timeout=30,
        )
        if proc.returncode != 0:
            raise SentinelError(f"git failed: {(proc.stderr or proc.stdout).strip()[:200]}")
        return proc.stdout

    def check_commits(self, truth: ProjectTruth) -> dict[str, Any]:
        """Read-only ``git log`` scan, disabled unless configured."""
        commits = self.settings.get("commits", {})
        if not commits.get("enabled"):
            return {"drift": 0, "details": "Git integration disabled", "items": []}
        output = self.git_runner(
            [
                "git",
                "log",
                f"--max-count={int(commits.get('sample', 20))}",
                f"--since={int(self.settings['recent_days'])} days ago",
                "--pretty=format:%h%x09%s",
            ]
        )
        items = []
        for line in output.splitlines():
            sha, _, subject = line.partition("\t")
            if not subject.strip():
                continue
            score = self._score(subject, truth, "commit")
            items.append({"commit": sha, "message": subject, "confidence": score.score})
        if not items:
            return {"drift": 0, "details": "No recent commits", "items": []}
        return {
            "drift": mean_drift([i["confidence"] for i in items]),
            "details": f"{len(items)} recent commits analyzed",
            "items": items,
        }

    def check_sprint_goals(self, truth: ProjectTruth) -> dict[str, Any]:
        sprints = [name for name in self.store.list_dirs(SPRINTS_DIR) if name.startswith("sprint-")]
        if not sprints:
            return {"drift": 0, "details": "No active sprint found"}
        active = sprints[-1]
        goals_path = f"{SPRINTS_DIR}/{active}/planning/sprint-goals.md"
        if not self.store.exists(goals_path):
            return {"drift": 0, "details": "No sprint goals found"}

        score = self._score(self.store.read_text(goals_path), truth, "sprint-goals")
        return {
            "drift": mean_drift([score.score]),
            "details": f"Sprint {active} goals analyzed",
            "items": [{"sprint": active, "confidence": score.score, "reason": score.reason}],
        }

    def check_decisions(self, truth: ProjectTruth) -> dict[str, Any]:
        if not self.store.exists(DECISIONS_PATH):
            return {"drift": 0, "details": "No decisions log found"}
        log = self.store.read_json(DECISIONS_PATH)
        cutoff = self._cutoff()
        recent = [
            d for d in log.get("decisions", []) if (made := _parse_time(d.get("timestamp"))) and made >= cutoff
        ][: int(self.settings["decision_sample"])]
        if not recent:
            return {"drift": 0, "details": "No recent decisions"}

        items = []
        for decision in recent:
            text = f"{decision.get('decision', '')} - {decision.get('rationale', '')}"
            score = self._score(text, truth, "decision")
            items.append(
                {
                    "decision": decision.get("decision", ""),
                    "confidence": score.score,
                    "timestamp": decision.get("timestamp"),
                }
            )
        return {
            "drift": mean_drift([i["confidence"] for i in items]),
            "details": f"{len(items)} recent decisions analyzed",
            "items": items,
        }
