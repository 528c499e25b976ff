"""Drift resolution workflow tests."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from core.clock import FrozenClock
from core.errors import ResolutionNotFoundError, StorageError
from drift.resolution_coordinator import (
    ACTIVE_DIR,
    ALL_STAKEHOLDERS,
    ARCHIVE_DIR,
    BLOCKED_NOTICE_PATH,
    LEARNINGS_DIR,
    WORKFLOW_STATE_PATH,
    DriftResolutionCoordinator,
    strategy_for,
)
from governance.audit_logger import AuditLogger
from models.drift import DriftCheck, DriftReport
from storage.file_store import FileStore


def make_report(overall: int, severity: str, clock: FrozenClock, backlog: float = 70) -> DriftReport:
    return DriftReport(
        timestamp=clock.now(),
        checks=[
            DriftCheck(name="backlog", drift=backlog),
            DriftCheck(name="recent-documents", drift=30),
            DriftCheck(name="sprint-goals", drift=55),
            DriftCheck(name="decisions", error="decisions log unreadable"),
        ],
        overall_drift=overall,
        severity=severity,
    )


@pytest.fixture
def coordinator(store: FileStore, clock: FrozenClock) -> DriftResolutionCoordinator:
    return DriftResolutionCoordinator(store, clock=clock)


def test_strategy_follows_severity() -> None:
    assert strategy_for("critical") == "emergency"
    assert strategy_for("major") == "intervention"
    assert strategy_for("moderate") == "collaborative"
    assert strategy_for("minor") == "informational"
    assert strategy_for("none") == "informational"


def test_emergency_blocks_development(
    coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock
) -> None:
    resolution = coordinator.initiate(make_report(90, "critical", clock))

    assert resolution.strategy == "emergency"
    assert resolution.status == "emergency-response-active"
    assert resolution.action_types()[0] == "emergency-meeting"
    assert all(action.ok for action in resolution.actions)
    assert resolution.participants == ALL_STAKEHOLDERS
    state = store.read_json(WORKFLOW_STATE_PATH)
    assert state["development_blocked"] is True
    assert state["resolution_id"] == resolution.id
    assert store.exists(BLOCKED_NOTICE_PATH)
    assert store.exists(f"{ACTIVE_DIR}/{resolution.id}.json")


def test_intervention_assigns_tasks_with_due_dates(
    coordinator: DriftResolutionCoordinator, clock: FrozenClock
) -> None:
    resolution = coordinator.initiate(make_report(65, "major", clock))

    assert resolution.status == "intervention-in-progress"
    tasks_action = next(a for a in resolution.actions if a.type == "tasks-assigned")
    tasks = tasks_action.details["tasks"]
    assert [t["area"] for t in tasks] == ["backlog", "sprint-planning", "project-truth"]
    critical = next(t for t in tasks if t["priority"] == "critical")
    assert critical["due_date"] == (clock.now() + timedelta(hours=24)).isoformat()
    high = next(t for t in tasks if t["priority"] == "high")
    assert high["due_date"] == (clock.now() + timedelta(days=2)).isoformat()


def test_collaborative_review(coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock) -> None:
    resolution = coordinator.initiate(make_report(45, "moderate", clock))

    assert resolution.status == "collaborative-review"
    assert resolution.action_types() == [
        "discussion-started",
        "agent-analysis-requested",
        "recommendations-generated",
        "tasks-created",
    ]
    assert not store.exists(WORKFLOW_STATE_PATH)


def test_informational_only_logs(coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock) -> None:
    resolution = coordinator.initiate(make_report(25, "minor", clock))

    assert resolution.status == "monitoring"
    assert resolution.action_types() == ["drift-logged", "awareness-note-created"]
    assert resolution.id in store.read_text("project-documents/orchestration/drift-log.md")


def test_failed_action_does_not_stop_workflow(
    coordinator: DriftResolutionCoordinator, clock: FrozenClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(resolution: object) -> dict:
        raise OSError("disk full")

    monkeypatch.setattr(coordinator, "block_development", broken)

    resolution = coordinator.initiate(make_report(90, "critical", clock))

    blocked = next(a for a in resolution.actions if a.type == "development-blocked")
    assert blocked.ok is False
    assert blocked.error == "disk full"
    assert resolution.action_types()[-1] == "resolution-document-created"
    assert resolution.status == "emergency-response-active"


def test_actions_are_audited(store: FileStore, clock: FrozenClock, tmp_path: Path) -> None:
    audit = AuditLogger(tmp_path / "audit.jsonl", clock=clock)
    coordinator = DriftResolutionCoordinator(store, clock=clock, audit_logger=audit)

    resolution = coordinator.initiate(make_report(25, "minor", clock))

    records = audit.read()
    assert [r["subject"] for r in records] == [resolution.id, resolution.id]
    assert {r["outcome"] for r in records} == {"ok"}


def test_completing_unknown_resolution_raises(coordinator: DriftResolutionCoordinator) -> None:
    with pytest.raises(ResolutionNotFoundError):
        coordinator.complete_resolution("drift-missing")


def test_completion_unblocks_and_archives(
    coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock
) -> None:
    resolution = coordinator.initiate(make_report(90, "critical", clock))
    clock.advance(hours=3)

    done = coordinator.complete_resolution(
        resolution.id,
        {"status": "resolved", "lessons_learned": ["Review backlog weekly"], "prevention_measures": ["Gate"]},
    )

    assert done.status == "archived"
    assert done.duration_seconds == 3 * 3600
    assert done.learning_patterns == ["backlog-misalignment", "severe-drift", "quick-resolution"]
    assert store.read_json(WORKFLOW_STATE_PATH)["development_blocked"] is False
    assert not store.exists(BLOCKED_NOTICE_PATH)
    assert store.exists(f"{ARCHIVE_DIR}/{resolution.id}-completed.json")
    assert not store.exists(f"{ACTIVE_DIR}/{resolution.id}.json")
    learning = store.read_json(f"{LEARNINGS_DIR}/learning-{resolution.id}.json")
    assert learning["lessons_learned"] == ["Review backlog weekly"]
    assert coordinator.list_active() == []
    assert coordinator.get_resolution(resolution.id).status == "archived"
    with pytest.raises(ResolutionNotFoundError):
        coordinator.complete_resolution(resolution.id)


def test_completion_without_lessons_records_no_learning(
    coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock
) -> None:
    resolution = coordinator.initiate(make_report(45, "moderate", clock, backlog=30))
    clock.advance(days=2)

    done = coordinator.complete_resolution(resolution.id)

    assert done.learning_patterns == []
    assert "learning-recorded" not in done.action_types()
    assert store.list(LEARNINGS_DIR) == []


def test_active_resolutions_survive_restart(store: FileStore, clock: FrozenClock) -> None:
    first = DriftResolutionCoordinator(store, clock=clock)
    resolution = first.initiate(make_report(65, "major", clock))

    second = DriftResolutionCoordinator(store, clock=clock)

    assert [r.id for r in second.list_active()] == [resolution.id]
    done = second.complete_resolution(resolution.id)
    assert done.status == "archived"
    assert store.read_json(WORKFLOW_STATE_PATH)["development_blocked"] is False


def test_failed_archive_keeps_active_record(
    coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    resolution = coordinator.initiate(make_report(65, "major", clock))

    def full_disk(resolution: object) -> dict:
        raise StorageError("disk full")

    monkeypatch.setattr(coordinator, "archive", full_disk)

    done = coordinator.complete_resolution(resolution.id)

    assert done.status == "completed"
    archived = next(a for a in done.actions if a.type == "archived")
    assert archived.ok is False
    assert store.exists(f"{ACTIVE_DIR}/{resolution.id}.json")
    assert not store.exists(f"{ARCHIVE_DIR}/{resolution.id}-completed.json")
    reloaded = DriftResolutionCoordinator(store, clock=clock)
    assert reloaded.get_resolution(resolution.id).status == "completed"
    assert [r.id for r in reloaded.list_active()] == [resolution.id]


def test_completion_leaves_block_held_by_another_resolution(
    coordinator: DriftResolutionCoordinator, store: FileStore, clock: FrozenClock
) -> None:
    first = coordinator.initiate(make_report(90, "critical", clock))
    clock.advance(minutes=5)
    second = coordinator.initiate(make_report(95, "critical", clock))

    coordinator.complete_resolution(first.id)

    state = store.read_json(WORKFLOW_STATE_PATH)
    assert state["development_blocked"] is True
    assert state["resolution_id"] == second.id
    assert store.exists(BLOCKED_NOTICE_PATH)

    coordinator.complete_resolution(second.id)

    assert store.read_json(WORKFLOW_STATE_PATH)["development_blocked"] is False
    assert not store.exists(BLOCKED_NOTICE_PATH)
