"""Drift detector tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

from core.clock import FrozenClock
from core.scheduler import ManualScheduler
from drift.drift_detector import (
    DECISIONS_PATH,
    ESCALATIONS_PATH,
    REPORTS_DIR,
    DriftDetector,
    severity_for,
)
from drift.trend import analyze_trend
from storage.file_store import FileStore
from truth.truth_store import TruthStore
from verification.verification_engine import BACKLOG_PATH, SPRINTS_DIR, VerificationEngine

ALIGNED = "Generate invoice PDF for freelancer clients"
CHECK_NAMES = ("backlog", "recent-documents", "commit-messages", "sprint-goals", "decisions")


def fixed(drift: float) -> Callable[[Any], dict[str, Any]]:
    return lambda truth: {"drift": drift, "details": "fixed"}


def failing(truth: Any) -> dict[str, Any]:
    raise RuntimeError("artifact unreadable")


def injected(*fns: Callable[[Any], dict[str, Any]]) -> list[tuple[str, Callable[[Any], dict[str, Any]]]]:
    return list(zip(CHECK_NAMES, fns))


@pytest.fixture
def engine(truth_store: TruthStore, store: FileStore) -> VerificationEngine:
    return VerificationEngine(truth_store, store)


@pytest.fixture
def make_detector(engine: VerificationEngine, store: FileStore, clock: FrozenClock) -> Callable[..., DriftDetector]:
    def build(**kwargs: Any) -> DriftDetector:
        kwargs.setdefault("scheduler", ManualScheduler())
        return DriftDetector(engine, store, clock=clock, **kwargs)

    return build


def test_overall_drift_is_mean_of_checks(make_detector: Callable[..., DriftDetector]) -> None:
    detector = make_detector(checks=injected(*(fixed(10) for _ in CHECK_NAMES)))

    report = detector.check_drift_now()

    assert report.overall_drift == 10
    assert report.severity == "none"
    assert report.partial is False
    assert [c.name for c in report.checks] == list(CHECK_NAMES)


def test_failing_check_is_excluded_from_overall(make_detector: Callable[..., DriftDetector]) -> None:
    detector = make_detector(checks=injected(fixed(10), failing, fixed(20), fixed(30), fixed(40)))

    report = detector.check_drift_now()

    assert report.overall_drift == 25
    assert report.partial is True
    broken = report.check("recent-documents")
    assert broken.error == "artifact unreadable"
    assert broken.drift is None


def test_all_checks_failing_gives_zero(make_detector: Callable[..., DriftDetector]) -> None:
    detector = make_detector(checks=injected(*(failing for _ in CHECK_NAMES)))

    report = detector.check_drift_now()

    assert report.overall_drift == 0
    assert report.severity == "none"
    assert report.partial is True


def test_overall_drift_rounds_half_up(make_detector: Callable[..., DriftDetector]) -> None:
    detector = make_detector(checks=injected(fixed(10), fixed(11)))

    assert detector.check_drift_now().overall_drift == 11


@pytest.mark.parametrize(
    ("drift", "severity"),
    [(80, "critical"), (79, "major"), (60, "major"), (59, "moderate"), (40, "moderate"), (20, "minor"), (19, "none")],
)
def test_severity_lower_bounds_are_inclusive(drift: int, severity: str) -> None:
    assert severity_for(drift, {"critical": 80, "major": 60, "moderate": 40, "minor": 20}) == severity


def test_history_is_bounded(make_detector: Callable[..., DriftDetector], clock: FrozenClock) -> None:
    detector = make_detector(checks=injected(fixed(10)), settings={"history_limit": 3})

    for _ in range(5):
        detector.check_drift_now()
        clock.advance(minutes=1)

    assert len(detector.history) == 3
    assert detector.get_drift_status()["history_length"] == 3


def test_overlapping_cycle_is_skipped(make_detector: Callable[..., DriftDetector]) -> None:
    detector = make_detector(checks=injected(fixed(10)))

    with detector._cycle_lock:
        assert detector.check_drift_now() is None
    assert len(detector.history) == 0


def test_monitoring_lifecycle(make_detector: Callable[..., DriftDetector]) -> None:
    scheduler = ManualScheduler()
    detector = make_detector(scheduler=scheduler, checks=injected(fixed(10)))

    started = detector.start_monitoring(30)

    assert started["success"] is True
    assert scheduler.interval_seconds == 1800
    assert len(detector.history) == 1
    assert scheduler.fire() is True
    assert len(detector.history) == 2

    detector.stop_monitoring()

    assert not scheduler.armed
    assert scheduler.fire() is False
    assert detector.get_drift_status()["monitoring"] is False


def test_interval_is_clamped_to_minimum(make_detector: Callable[..., DriftDetector]) -> None:
    scheduler = ManualScheduler()
    detector = make_detector(scheduler=scheduler, checks=injected(fixed(10)))

    started = detector.start_monitoring(1)

    assert started["interval_minutes"] == 5
    assert scheduler.interval_seconds == 300


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_interval_is_rejected(make_detector: Callable[..., DriftDetector], interval: float) -> None:
    detector = make_detector(checks=injected(fixed(10)))

    with pytest.raises(ValueError):
        detector.start_monitoring(interval)
    assert detector.monitoring is False


def test_monitoring_requires_truth(store: FileStore, clock: FrozenClock) -> None:
    scheduler = ManualScheduler()
    engine = VerificationEngine(TruthStore(store, clock=clock), store)
    detector = DriftDetector(engine, store, scheduler=scheduler, clock=clock)

    result = detector.start_monitoring(30)

    assert result["success"] is False
    assert not scheduler.armed
    assert len(detector.history) == 0


def test_critical_drift_hands_off_to_coordinator(
    make_detector: Callable[..., DriftDetector], store: FileStore
) -> None:
    coordinator = MagicMock()
    detector = make_detector(coordinator=coordinator, checks=injected(*(fixed(85) for _ in CHECK_NAMES)))

    report = detector.check_drift_now()

    assert report.severity == "critical"
    coordinator.initiate.assert_called_once_with(report)
    assert len(store.list(REPORTS_DIR, suffix=".json")) == 1
    escalation = store.read_text(ESCALATIONS_PATH)
    assert "**Severity**: CRITICAL" in escalation
    assert report.recommendations[0].startswith("URGENT")


def test_minor_drift_is_not_handed_off(make_detector: Callable[..., DriftDetector], store: FileStore) -> None:
    coordinator = MagicMock()
    detector = make_detector(coordinator=coordinator, checks=injected(fixed(25)))

    detector.check_drift_now()

    coordinator.initiate.assert_not_called()
    assert not store.exists(ESCALATIONS_PATH)


def test_coordinator_failure_does_not_abort_cycle(make_detector: Callable[..., DriftDetector]) -> None:
    coordinator = MagicMock()
    coordinator.initiate.side_effect = RuntimeError("coordinator down")
    detector = make_detector(coordinator=coordinator, checks=injected(fixed(50)))

    report = detector.check_drift_now()

    assert report.severity == "moderate"
    assert detector.history[-1] is report


def test_trend_detects_rising_drift(make_detector: Callable[..., DriftDetector]) -> None:
    values = iter([10, 20, 30, 40, 50])
    detector = make_detector(checks=[("backlog", lambda truth: {"drift": next(values)})])

    for _ in range(5):
        report = detector.check_drift_now()

    assert report.trend.increasing is True
    assert report.trend.rate == 10.0


def test_trend_needs_two_points() -> None:
    assert analyze_trend([40]).increasing is False
    flat = analyze_trend([30, 30, 30])
    assert flat.increasing is False
    assert flat.rate == 0.0


def test_backlog_check_samples_recent_items(
    make_detector: Callable[..., DriftDetector], store: FileStore, clock: FrozenClock, truth_store: TruthStore
) -> None:
    old = (clock.now() - timedelta(days=30)).isoformat()
    store.write_json(
        BACKLOG_PATH,
        {
            "items": [
                {"id": "1", "title": ALIGNED, "createdAt": clock.now().isoformat()},
                {"id": "2", "title": "Casino odds calculator", "createdAt": old},
                {"id": "3", "title": "Undated item"},
            ]
        },
    )
    detector = make_detector()

    result = detector.check_backlog(truth_store.truth)

    assert result["drift"] == 22.0
    assert [i["id"] for i in result["items"]] == ["1"]


def test_document_check_skips_generated_artifacts(
    make_detector: Callable[..., DriftDetector], store: FileStore, truth_store: TruthStore
) -> None:
    store.write_text("project-documents/notes/plan.md", ALIGNED)
    store.write_text("project-documents/orchestration/drift-resolution/resolution-x.md", "Casino odds calculator")

    result = make_detector().check_documents(truth_store.truth)

    assert [i["file"] for i in result["items"]] == ["project-documents/notes/plan.md"]
    assert result["drift"] == 22.0


def test_sprint_goals_use_latest_sprint(
    make_detector: Callable[..., DriftDetector], store: FileStore, truth_store: TruthStore
) -> None:
    store.write_text(f"{SPRINTS_DIR}/sprint-1/planning/sprint-goals.md", "Casino odds calculator")
    store.write_text(f"{SPRINTS_DIR}/sprint-2/planning/sprint-goals.md", ALIGNED)

    result = make_detector().check_sprint_goals(truth_store.truth)

    assert result["items"][0]["sprint"] == "sprint-2"
    assert result["drift"] == 22.0


def test_decision_check_without_log(make_detector: Callable[..., DriftDetector], truth_store: TruthStore) -> None:
    assert make_detector().check_decisions(truth_store.truth) == {"drift": 0, "details": "No decisions log found"}


def test_decision_check_samples_recent_decisions(
    make_detector: Callable[..., DriftDetector], store: FileStore, clock: FrozenClock, truth_store: TruthStore
) -> None:
    store.write_json(
        DECISIONS_PATH,
        {
            "decisions": [
                {"decision": "Add casino odds feed", "rationale": "betting upsell", "timestamp": clock.now().isoformat()},
                {"decision": "Old call", "timestamp": (clock.now() - timedelta(days=60)).isoformat()},
            ]
        },
    )

    result = make_detector().check_decisions(truth_store.truth)

    assert [i["decision"] for i in result["items"]] == ["Add casino odds feed"]
    assert result["drift"] >= 95


def test_commit_check_disabled_by_default(make_detector: Callable[..., DriftDetector], truth_store: TruthStore) -> None:
    runner = MagicMock()

    result = make_detector(git_runner=runner).check_commits(truth_store.truth)

    assert result["drift"] == 0
    runner.assert_not_called()


def test_commit_check_scores_commit_subjects(
    make_detector: Callable[..., DriftDetector], truth_store: TruthStore
) -> None:
    runner = MagicMock(return_value=f"abc1234\t{ALIGNED}\ndef5678\t{ALIGNED}\n\n")
    detector = make_detector(git_runner=runner, settings={"commits": {"enabled": True, "sample": 5}})

    result = detector.check_commits(truth_store.truth)

    args = runner.call_args.args[0]
    assert args[:2] == ["git", "log"]
    assert "--max-count=5" in args
    assert [i["commit"] for i in result["items"]] == ["abc1234", "def5678"]
    assert result["drift"] == 22.0
