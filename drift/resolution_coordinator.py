"""Severity-driven drift resolution workflows."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from core.clock import SystemClock
from core.errors import ResolutionNotFoundError, SentinelError
from governance.audit_logger import AuditLogger
from models.drift import DriftReport
from models.resolution import Resolution, ResolutionAction, ResolutionOutcome
from storage.file_store import FileStore

logger = logging.getLogger("cs.resolution")

ORCHESTRATION_DIR = "project-documents/orchestration"
RESOLUTION_DIR = f"{ORCHESTRATION_DIR}/drift-resolution"
ARCHIVE_DIR = f"{RESOLUTION_DIR}/archive"
ACTIVE_DIR = f"{RESOLUTION_DIR}/active"
MEETINGS_DIR = f"{ORCHESTRATION_DIR}/emergency-meetings"
NOTIFICATIONS_DIR = f"{ORCHESTRATION_DIR}/notifications"
COORDINATION_DIR = f"{ORCHESTRATION_DIR}/agent-coordination"
DISCUSSIONS_DIR = f"{ORCHESTRATION_DIR}/discussions"
BLOCKED_NOTICE_PATH = f"{ORCHESTRATION_DIR}/DEVELOPMENT-BLOCKED.md"
ESCALATIONS_PATH = f"{ORCHESTRATION_DIR}/stakeholder-escalations.md"
DRIFT_LOG_PATH = f"{ORCHESTRATION_DIR}/drift-log.md"
WORKFLOW_STATE_PATH = "project-state/workflow-state.json"
LEARNINGS_DIR = "community-learnings/analysis/drift-resolutions"

STRATEGIES = {"critical": "emergency", "major": "intervention", "moderate": "collaborative"}
ALL_STAKEHOLDERS = ["project-manager", "scrum-master", "product-owner", "tech-lead"]
KEY_STAKEHOLDERS = ["project-manager", "scrum-master", "tech-lead"]
ANALYSIS_ROLES = ["project-manager", "scrum-master"]

DUE_OFFSETS = {
    "critical": timedelta(hours=24),
    "high": timedelta(days=2),
    "medium": timedelta(days=5),
}
DEFAULT_DUE_OFFSET = timedelta(days=7)

AREA_RECOMMENDATIONS: dict[str, dict[str, str]] = {
    "backlog": {
        "area": "backlog",
        "priority": "high",
        "action": "Review and realign all backlog items",
        "owner": "project-manager",
    },
    "recent-documents": {
        "area": "documentation",
        "priority": "medium",
        "action": "Audit recent documentation for alignment",
        "owner": "documentation",
    },
    "sprint-goals": {
        "area": "sprint-planning",
        "priority": "high",
        "action": "Revise sprint goals to match project context",
        "owner": "scrum-master",
    },
    "decisions": {
        "area": "decision-making",
        "priority": "high",
        "action": "Review recent decisions against Project Truth",
        "owner": "project-manager",
    },
}

ANALYSIS_QUESTIONS = [
    "What recent decisions may have contributed to this drift?",
    "Which backlog items are most misaligned?",
    "What changes are needed to realign with project goals?",
    "How can we prevent this drift in the future?",
]

EMERGENCY_PLAN = {
    "immediate": [
        "Stop all new feature development",
        "Review all in-progress work",
        "Audit recent decisions and changes",
        "Prepare Project Truth update proposals",
    ],
    "within_24_hours": [
        "Complete drift root cause analysis",
        "Interview key stakeholders",
        "Review all backlog items",
        "Create realignment strategy",
    ],
    "within_48_hours": [
        "Update Project Truth document",
        "Realign backlog with new truth",
        "Create new sprint plan",
        "Resume development with clear direction",
    ],
}

NOTIFICATION_MESSAGES = {
    "emergency": (
        "CRITICAL CONTEXT DRIFT DETECTED!\n"
        "Project has drifted {drift}% from stated goals.\n"
        "All development is BLOCKED until resolution.\n"
        "Emergency meeting required IMMEDIATELY."
    ),
    "intervention": (
        "Major context drift requires intervention.\n"
        "Drift level: {drift}%\n"
        "Non-critical work paused. Review meeting scheduled.\n"
        "Action required within 24 hours."
    ),
    "collaborative": (
        "Moderate drift detected - collaborative review needed.\n"
        "Drift level: {drift}%\n"
        "Please review analysis and provide input."
    ),
    "informational": (
        "Minor drift detected.\n"
        "Drift level: {drift}%\n"
        "Monitoring increased. No immediate action required."
    ),
}

ActionFn = Callable[[Resolution], dict[str, Any]]


def strategy_for(severity: str) -> str:
    return STRATEGIES.get(severity, "informational")


def _drift_label(value: float | None) -> str:
    return "error" if value is None else f"{value:g}%"


class DriftResolutionCoordinator:
    """Runs one workflow per resolution; each action is attempted independently."""

    def __init__(
        self,
        store: FileStore,
        clock: Any | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.audit_logger = audit_logger
        self._active: dict[str, Resolution] = {}
        self._lock = threading.Lock()

    def initiate(self, report: DriftReport) -> Resolution:
        now = self.clock.now()
        resolution = Resolution(
            id=f"drift-{now.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:6]}",
            strategy=strategy_for(report.severity),
            drift_report=report,
            start_time=now,
        )
        with self._lock:
            self._active[resolution.id] = resolution
        logger.info("Initiating drift resolution %s (%s strategy)", resolution.id, resolution.strategy)

        if resolution.strategy == "emergency":
            self._handle_emergency(resolution)
        elif resolution.strategy == "intervention":
            self._handle_intervention(resolution)
        elif resolution.strategy == "collaborative":
            self._handle_collaborative(resolution)
        else:
            self._handle_informational(resolution)
        self._save_active(resolution)
        return resolution

    def _save_active(self, resolution: Resolution) -> None:
        """Active resolutions survive the process that started them."""
        try:
            self.store.write_json(f"{ACTIVE_DIR}/{resolution.id}.json", resolution.model_dump(mode="json"))
        except SentinelError as exc:
            logger.warning("Active resolution %s not persisted: %s", resolution.id, exc)

    def _load_active(self, resolution_id: str) -> Resolution | None:
        path = f"{ACTIVE_DIR}/{resolution_id}.json"
        if not self.store.exists(path):
            return None
        return Resolution.model_validate(self.store.read_json(path))

    def _run(self, resolution: Resolution, action_type: str, action: ActionFn) -> dict[str, Any] | None:
        """Record the action's outcome; a failure is logged and does not stop the workflow."""
        try:
            details = action(resolution)
        except Exception as exc:
            logger.warning("Resolution %s action %s failed: %s", resolution.id, action_type, exc)
            resolution.actions.append(
                ResolutionAction(type=action_type, timestamp=self.clock.now(), ok=False, error=str(exc))
            )
            self._audit(resolution, action_type, "failed", str(exc))
            return None
        resolution.actions.append(
            ResolutionAction(type=action_type, timestamp=self.clock.now(), details=details or {})
        )
        self._audit(resolution, action_type, "ok")
        return details

    def _audit(self, resolution: Resolution, action_type: str, outcome: str, reason: str = "") -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.log(
            event="resolution",
            subject=resolution.id,
            inputs={"action": action_type, "strategy": resolution.strategy},
            outcome=outcome,
            reason=reason,
        )

    # Strategy workflows

    def _handle_emergency(self, resolution: Resolution) -> None:
        self._run(resolution, "emergency-meeting", self.create_emergency_meeting)
        self._run(resolution, "development-blocked", self.block_development)
        resolution.participants.extend(ALL_STAKEHOLDERS)
        self._run(resolution, "stakeholders-notified", lambda r: self.notify(r, "emergency"))
        self._run(resolution, "action-plan-created", self.create_emergency_plan)
        resolution.status = "emergency-response-active"
        self._run(resolution, "resolution-document-created", self.write_resolution_document)

    def _handle_intervention(self, resolution: Resolution) -> None:
        self._run(resolution, "review-meeting-scheduled", self.schedule_review_meeting)
        self._run(resolution, "non-critical-paused", self.pause_non_critical_work)
        self._run(resolution, "tasks-assigned", self.assign_tasks)
        resolution.participants.extend(KEY_STAKEHOLDERS)
        self._run(resolution, "key-stakeholders-notified", lambda r: self.notify(r, "intervention"))
        resolution.status = "intervention-in-progress"
        self._run(resolution, "resolution-document-created", self.write_resolution_document)

    def _handle_collaborative(self, resolution: Resolution) -> None:
        self._run(resolution, "discussion-started", self.create_discussion_thread)
        self._run(resolution, "agent-analysis-requested", self.request_analysis)
        recommendations = self._run(resolution, "recommendations-generated", self.generate_recommendations)
        items = (recommendations or {}).get("recommendations", [])
        self._run(resolution, "tasks-created", lambda r: self.create_follow_up_tasks(r, items))
        resolution.participants.extend(ANALYSIS_ROLES)
        resolution.status = "collaborative-review"

    def _handle_informational(self, resolution: Resolution) -> None:
        self._run(resolution, "drift-logged", self.log_drift_occurrence)
        self._run(resolution, "awareness-note-created", self.create_awareness_note)
        resolution.status = "monitoring"

    # Actions

    def create_emergency_meeting(self, resolution: Resolution) -> dict[str, Any]:
        report = resolution.drift_report
        path = f"{MEETINGS_DIR}/emergency-{resolution.id}.md"
        content = "\n".join(
            [
                "# EMERGENCY: Context Drift Meeting Request",
                "",
                "## Critical Situation",
                f"**Drift Level**: {report.overall_drift}%",
                "**Severity**: CRITICAL",
                f"**Date**: {self.clock.now().isoformat()}",
                "",
                "## Required Attendees",
                "- Product Owner",
                "- Project Manager",
                "- Scrum Master",
                "- Technical Lead",
                "- Key Stakeholders",
                "",
                "## Agenda",
                "1. Review drift analysis report",
                "2. Identify root causes",
                "3. Decide on immediate actions",
                "4. Update Project Truth document",
                "5. Create recovery plan",
                "",
                "## Pre-Meeting Review",
                f"- Drift Report: {resolution.id}",
                "- Areas of Concern:",
                *(f"  - {c.name}: {_drift_label(c.drift)}" for c in report.checks),
                "",
                "## Immediate Actions Required",
                "- All new feature development is BLOCKED",
                "- Review all in-progress work for alignment",
                "- Prepare to pivot or realign as needed",
                "",
                "**This is a blocking issue that requires immediate resolution.**",
                "",
            ]
        )
        self.store.write_text(path, content)
        return {"path": path, "scheduled": "ASAP"}

    def _set_block(self, resolution: Resolution, reason: str) -> None:
        state = self.store.read_json(WORKFLOW_STATE_PATH) if self.store.exists(WORKFLOW_STATE_PATH) else {}
        state.update(
            development_blocked=True,
            block_reason=reason,
            blocked_at=self.clock.now().isoformat(),
            resolution_id=resolution.id,
        )
        self.store.write_json(WORKFLOW_STATE_PATH, state)

    def block_development(self, resolution: Resolution) -> dict[str, Any]:
        reason = "Critical context drift requires resolution"
        self._set_block(resolution, reason)
        notice = "\n".join(
            [
                "# DEVELOPMENT BLOCKED",
                "",
                "**Reason**: Critical context drift detected",
                f"**Drift Level**: {resolution.drift_report.overall_drift}%",
                f"**Blocked Since**: {self.clock.now().isoformat()}",
                f"**Resolution ID**: {resolution.id}",
                "",
                "## What This Means",
                "- No new features can be started",
                "- Current work must be reviewed for alignment",
                "- All commits must reference resolution ID",
                "",
                "## Next Steps",
                "1. Attend emergency meeting",
                "2. Review drift analysis",
                "3. Participate in resolution activities",
                "4. Wait for all-clear before resuming",
                "",
            ]
        )
        self.store.write_text(BLOCKED_NOTICE_PATH, notice)
        return {"reason": reason, "notice": BLOCKED_NOTICE_PATH}

    def pause_non_critical_work(self, resolution: Resolution) -> dict[str, Any]:
        reason = "Major context drift: non-critical work paused"
        self._set_block(resolution, reason)
        return {"reason": reason, "scope": "non-critical"}

    def clear_block(self, resolution: Resolution) -> dict[str, Any]:
        """Lift the block only when this resolution holds it."""
        state = self.store.read_json(WORKFLOW_STATE_PATH) if self.store.exists(WORKFLOW_STATE_PATH) else {}
        if state.get("resolution_id") not in (None, resolution.id):
            return {"notice_removed": False, "held_by": state["resolution_id"]}
        if state:
            state["development_blocked"] = False
            state.pop("block_reason", None)
            state.pop("blocked_at", None)
            state["unblocked_at"] = self.clock.now().isoformat()
            self.store.write_json(WORKFLOW_STATE_PATH, state)
        removed = self.store.delete(BLOCKED_NOTICE_PATH)
        return {"notice_removed": removed}

    def notify(self, resolution: Resolution, level: str) -> dict[str, Any]:
        report = resolution.drift_report
        timestamp = self.clock.now().isoformat()
        message = NOTIFICATION_MESSAGES.get(level, NOTIFICATION_MESSAGES["informational"]).format(
            drift=report.overall_drift
        )
        path = f"{NOTIFICATIONS_DIR}/drift-{level}-{resolution.id}.json"
        self.store.write_json(
            path,
            {
                "level": level,
                "resolution_id": resolution.id,
                "drift": report.overall_drift,
                "severity": report.severity,
                "timestamp": timestamp,
                "recipients": list(resolution.participants),
                "message": message,
            },
        )
        self.store.append_text(
            ESCALATIONS_PATH,
            f"\n## {level.upper()}: Context Drift - {timestamp}\n{message}\n\nResolution ID: {resolution.id}\n\n",
            header="# Stakeholder Escalations\n\n",
        )
        return {"path": path, "recipients": list(resolution.participants)}

    def create_emergency_plan(self, resolution: Resolution) -> dict[str, Any]:
        path = f"{RESOLUTION_DIR}/emergency-plan-{resolution.id}.json"
        self.store.write_json(path, EMERGENCY_PLAN)
        return {"path": path, "plan": EMERGENCY_PLAN}

    def schedule_review_meeting(self, resolution: Resolution) -> dict[str, Any]:
        report = resolution.drift_report
        scheduled = self.clock.now() + timedelta(hours=24)
        path = f"{MEETINGS_DIR}/review-{resolution.id}.md"
        content = "\n".join(
            [
                "# Context Drift Review Meeting",
                "",
                f"**Drift Level**: {report.overall_drift}%",
                f"**Severity**: {report.severity.upper()}",
                f"**Scheduled By**: {scheduled.isoformat()}",
                "",
                "## Attendees",
                *(f"- {p}" for p in KEY_STAKEHOLDERS),
                "",
                "## Areas of Concern",
                *(f"- {c.name}: {_drift_label(c.drift)}" for c in report.checks),
                "",
            ]
        )
        self.store.write_text(path, content)
        return {"path": path, "scheduled": scheduled.isoformat()}

    def due_date(self, priority: str) -> datetime:
        return self.clock.now() + DUE_OFFSETS.get(priority, DEFAULT_DUE_OFFSET)

    def _tasks(self, resolution: Resolution, recommendations: list[dict[str, Any]]) -> list[dict[str, Any]]:
        created = self.clock.now().isoformat()
        return [
            {
                "id": f"{resolution.id}-task-{index}",
                "title": rec["action"],
                "area": rec["area"],
                "priority": rec["priority"],
                "assignee": rec["owner"],
                "status": "pending",
                "due_date": self.due_date(rec["priority"]).isoformat(),
                "created": created,
            }
            for index, rec in enumerate(recommendations, start=1)
        ]

    def assign_tasks(self, resolution: Resolution) -> dict[str, Any]:
        tasks = self._tasks(resolution, self.recommendations_for(resolution.drift_report))
        path = f"{RESOLUTION_DIR}/tasks-{resolution.id}.json"
        self.store.write_json(path, tasks)
        return {"path": path, "tasks": tasks}

    def create_discussion_thread(self, resolution: Resolution) -> dict[str, Any]:
        report = resolution.drift_report
        path = f"{DISCUSSIONS_DIR}/drift-{resolution.id}.md"
        content = "\n".join(
            [
                "# Context Drift Discussion",
                "",
                f"**Resolution ID**: {resolution.id}",
                f"**Drift Level**: {report.overall_drift}%",
                "",
                "## Drift by Area",
                *(f"- {c.name}: {_drift_label(c.drift)}" for c in report.checks),
                "",
                "## Open Questions",
                *(f"- {q}" for q in ANALYSIS_QUESTIONS),
                "",
            ]
        )
        self.store.write_text(path, content)
        return {"thread": path}

    def request_analysis(self, resolution: Resolution) -> dict[str, Any]:
        request = {
            "id": resolution.id,
            "timestamp": self.clock.now().isoformat(),
            "drift_report": resolution.drift_report.model_dump(mode="json"),
            "requested_roles": ANALYSIS_ROLES,
            "questions": ANALYSIS_QUESTIONS,
        }
        path = f"{COORDINATION_DIR}/analysis-request-{resolution.id}.json"
        self.store.write_json(path, request)
        return {"path": path, "roles": ANALYSIS_ROLES}

    @staticmethod
    def recommendations_for(report: DriftReport) -> list[dict[str, str]]:
        """Per-area actions for checks above 40% drift."""
        recommendations = [
            dict(AREA_RECOMMENDATIONS[check.name])
            for check in report.checks
            if check.ok and check.drift > 40 and check.name in AREA_RECOMMENDATIONS
        ]
        if report.overall_drift > 60:
            recommendations.append(
                {
                    "area": "project-truth",
                    "priority": "critical",
                    "action": "Update Project Truth document with stakeholder input",
                    "owner": "product-owner",
                }
            )
        return recommendations

    def generate_recommendations(self, resolution: Resolution) -> dict[str, Any]:
        recommendations = self.recommendations_for(resolution.drift_report)
        path = f"{RESOLUTION_DIR}/recommendations-{resolution.id}.json"
        self.store.write_json(path, recommendations)
        return {"path": path, "count": len(recommendations), "recommendations": recommendations}

    def create_follow_up_tasks(
        self, resolution: Resolution, recommendations: list[dict[str, Any]]
    ) -> dict[str, Any]:
        tasks = self._tasks(resolution, recommendations)
        path = f"{RESOLUTION_DIR}/tasks-{resolution.id}.json"
        self.store.write_json(path, tasks)
        return {"path": path, "count": len(tasks)}

    def log_drift_occurrence(self, resolution: Resolution) -> dict[str, Any]:
        report = resolution.drift_report
        line = (
            f"- {report.timestamp.isoformat()} | {report.severity} | {report.overall_drift}% | {resolution.id}\n"
        )
        self.store.append_text(DRIFT_LOG_PATH, line, header="# Drift Log\n\n")
        return {"path": DRIFT_LOG_PATH}

    def create_awareness_note(self, resolution: Resolution) -> dict[str, Any]:
        path = f"{NOTIFICATIONS_DIR}/drift-informational-{resolution.id}.json"
        self.store.write_json(
            path,
            {
                "level": "informational",
                "resolution_id": resolution.id,
                "drift": resolution.drift_report.overall_drift,
                "timestamp": self.clock.now().isoformat(),
                "message": NOTIFICATION_MESSAGES["informational"].format(
                    drift=resolution.drift_report.overall_drift
                ),
            },
        )
        return {"path": path}

    def _document_path(self, resolution: Resolution) -> str:
        return f"{RESOLUTION_DIR}/resolution-{resolution.id}.md"

    def write_resolution_document(self, resolution: Resolution) -> dict[str, Any]:
        report = resolution.drift_report
        path = self._document_path(resolution)
        content = "\n".join(
            [
                "# Drift Resolution Document",
                "",
                f"**ID**: {resolution.id}",
                f"**Type**: {resolution.strategy.upper()}",
                f"**Status**: {resolution.status}",
                f"**Started**: {resolution.start_time.isoformat()}",
                "",
                "## Drift Analysis",
                f"- Overall Drift: {report.overall_drift}%",
                f"- Severity: {report.severity}",
                "",
                "### Drift by Area",
                *(f"- {c.name}: {_drift_label(c.drift)}" for c in report.checks),
                "",
                "## Resolution Strategy",
                f"**Strategy**: {resolution.strategy}",
                "",
                "## Actions Taken",
                *(f"- [{a.timestamp.isoformat()}] {a.type}" for a in resolution.actions),
                "",
                "## Participants",
                *(f"- {p}" for p in resolution.participants),
                "",
                "---",
                f"Last Updated: {self.clock.now().isoformat()}",
                "",
            ]
        )
        self.store.write_text(path, content)
        return {"path": path}

    # Completion

    def complete_resolution(
        self, resolution_id: str, outcome: ResolutionOutcome | dict[str, Any] | None = None
    ) -> Resolution:
        with self._lock:
            resolution = self._active.pop(resolution_id, None)
        if resolution is None:
            resolution = self._load_active(resolution_id)
        if resolution is None:
            raise ResolutionNotFoundError(resolution_id)
        if isinstance(outcome, dict):
            outcome = ResolutionOutcome.model_validate(outcome)

        resolution.status = "completed"
        resolution.end_time = self.clock.now()
        resolution.duration_seconds = (resolution.end_time - resolution.start_time).total_seconds()
        resolution.outcome = outcome or ResolutionOutcome()
        resolution.learning_patterns = self.identify_patterns(resolution)

        if resolution.strategy in ("emergency", "intervention"):
            self._run(resolution, "development-unblocked", self.clear_block)
        self._run(resolution, "resolution-document-updated", self.append_completion)
        if resolution.outcome.lessons_learned:
            self._run(resolution, "learning-recorded", self.record_learning)

        resolution.status = "archived"
        if self._run(resolution, "archived", self.archive) is None:
            # The active record stays the only copy until archiving succeeds.
            resolution.status = "completed"
            with self._lock:
                self._active[resolution.id] = resolution
            self._save_active(resolution)
            logger.warning("Drift resolution %s completed but not archived", resolution.id)
            return resolution
        self.store.delete(f"{ACTIVE_DIR}/{resolution.id}.json")
        logger.info("Drift resolution %s completed", resolution.id)
        return resolution

    def append_completion(self, resolution: Resolution) -> dict[str, Any]:
        outcome = resolution.outcome or ResolutionOutcome()
        minutes = round((resolution.duration_seconds or 0) / 60)
        section = "\n".join(
            [
                "",
                "## Resolution Complete",
                "",
                f"**End Time**: {resolution.end_time.isoformat() if resolution.end_time else ''}",
                f"**Duration**: {minutes} minutes",
                f"**Outcome**: {outcome.status}",
                "",
                "### Lessons Learned",
                *(f"- {lesson}" for lesson in outcome.lessons_learned),
                "",
                "### Prevention Measures Implemented",
                *(f"- {measure}" for measure in outcome.prevention_measures),
                "",
                "### Final Actions",
                *(f"- [{a.timestamp.isoformat()}] {a.type}" for a in resolution.actions[-5:]),
                "",
            ]
        )
        path = self._document_path(resolution)
        self.store.append_text(path, section, header=f"# Drift Resolution Document\n\n**ID**: {resolution.id}\n")
        return {"path": path}

    def archive(self, resolution: Resolution) -> dict[str, Any]:
        path = f"{ARCHIVE_DIR}/{resolution.id}-completed.json"
        self.store.write_json(path, resolution.model_dump(mode="json"))
        return {"path": path}

    @staticmethod
    def identify_patterns(resolution: Resolution) -> list[str]:
        report = resolution.drift_report
        patterns = []
        backlog, decisions = report.check("backlog"), report.check("decisions")
        if backlog is not None and backlog.ok and backlog.drift > 60:
            patterns.append("backlog-misalignment")
        if decisions is not None and decisions.ok and decisions.drift > 60:
            patterns.append("decision-drift")
        if report.overall_drift > 80:
            patterns.append("severe-drift")
        if resolution.duration_seconds is not None and resolution.duration_seconds < 24 * 3600:
            patterns.append("quick-resolution")
        return patterns

    def record_learning(self, resolution: Resolution) -> dict[str, Any]:
        outcome = resolution.outcome or ResolutionOutcome()
        learning = {
            "id": f"learning-{resolution.id}",
            "timestamp": self.clock.now().isoformat(),
            "context": "drift-resolution",
            "drift_level": resolution.drift_report.overall_drift,
            "severity": resolution.drift_report.severity,
            "resolution": {
                "strategy": resolution.strategy,
                "duration_seconds": resolution.duration_seconds,
                "outcome": outcome.status,
            },
            "lessons_learned": outcome.lessons_learned,
            "prevention_measures": outcome.prevention_measures,
            "pattern": resolution.learning_patterns,
        }
        path = f"{LEARNINGS_DIR}/{learning['id']}.json"
        self.store.write_json(path, learning)
        return {"path": path}

    # Accessors

    def get_resolution(self, resolution_id: str) -> Resolution | None:
        """Active resolution, or the archived record of a completed one."""
        with self._lock:
            active = self._active.get(resolution_id)
        if active is not None:
            return active
        path = f"{ARCHIVE_DIR}/{resolution_id}-completed.json"
        try:
            stored = self._load_active(resolution_id)
            if stored is not None:
                return stored
            if self.store.exists(path):
                return Resolution.model_validate(self.store.read_json(path))
        except SentinelError as exc:
            logger.warning("Archived resolution %s unreadable: %s", resolution_id, exc)
        return None

    def list_active(self) -> list[Resolution]:
        with self._lock:
            active = dict(self._active)
        for path in self.store.list(ACTIVE_DIR, suffix=".json"):
            resolution_id = path.rsplit("/", 1)[-1].removesuffix(".json")
            if resolution_id in active:
                continue
            try:
                stored = self._load_active(resolution_id)
            except SentinelError as exc:
                logger.warning("Active resolution %s unreadable: %s", resolution_id, exc)
                continue
            if stored is not None:
                active[resolution_id] = stored
        return sorted(active.values(), key=lambda r: r.start_time)
