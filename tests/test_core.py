"""Event bus, scheduler, config and audit tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from core.clock import FrozenClock
from core.event_bus import EventBus
from core.orchestrator import Orchestrator
from core.policy_runtime import load_effective_config, merge_dicts
from core.scheduler import ManualScheduler, ThreadingScheduler
from governance.audit_logger import AuditLogger
from verification.verification_engine import VIOLATION_EVENT


def test_event_bus_isolates_failing_handlers() -> None:
    bus = EventBus()
    received: list[dict] = []

    def broken(payload: dict) -> None:
        raise RuntimeError("subscriber down")

    bus.subscribe("evt", broken)
    bus.subscribe("evt", received.append)

    delivered = bus.emit("evt", {"n": 1})

    assert delivered == 1
    assert received == [{"n": 1}]
    assert bus.emit("other", {}) == 0


def test_manual_scheduler_runs_only_when_fired() -> None:
    scheduler = ManualScheduler()
    runs: list[int] = []

    assert scheduler.fire() is False
    scheduler.schedule(60, lambda: runs.append(1))
    assert scheduler.armed
    assert scheduler.fire() is True
    scheduler.cancel()

    assert scheduler.fire() is False
    assert runs == [1]
    assert scheduler.interval_seconds is None


def test_threading_scheduler_repeats_until_cancelled() -> None:
    scheduler = ThreadingScheduler()
    ran = threading.Event()
    count = 0

    def job() -> None:
        nonlocal count
        count += 1
        if count >= 2:
            ran.set()

    scheduler.schedule(0.01, job)
    assert ran.wait(timeout=5)
    scheduler.cancel()
    pause = threading.Event()
    pause.wait(0.05)
    settled = count
    pause.wait(0.05)

    assert not scheduler.armed
    assert count == settled


def test_threading_scheduler_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        ThreadingScheduler().schedule(0, lambda: None)


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"drift": {"interval_minutes": 60, "recent_days": 7}}, {"drift": {"recent_days": 3}})

    assert merged == {"drift": {"interval_minutes": 60, "recent_days": 3}}


def test_project_config_overrides_packaged_defaults(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "sentinel.yaml").write_text("drift:\n  interval_minutes: 15\n", encoding="utf-8")

    config = load_effective_config(tmp_path, overrides={"logging": {"level": "DEBUG"}})

    assert config["drift"]["interval_minutes"] == 15
    assert config["drift"]["min_interval_minutes"] == 5
    assert config["verification"]["thresholds"]["blocked"] == 95
    assert config["logging"]["level"] == "DEBUG"


def test_audit_logger_hashes_inputs(tmp_path: Path) -> None:
    clock = FrozenClock()
    audit = AuditLogger(tmp_path / "logs" / "audit.jsonl", clock=clock)

    audit.log(event="verification", subject="Casino odds", inputs={"title": "Casino odds"}, outcome="blocked")
    audit.log(event="verification", subject="Casino odds", inputs={"title": "Casino odds"}, outcome="blocked")

    first, second = audit.read()
    assert first["inputs_hash"] == second["inputs_hash"]
    assert "Casino odds" not in first["inputs_hash"]
    assert first["timestamp"] == clock.now().isoformat()


def test_orchestrator_wires_learning_to_verification(tmp_path: Path) -> None:
    bundle = Orchestrator(root=tmp_path, clock=FrozenClock(), scheduler=ManualScheduler()).build()

    assert bundle.engine.history_source is bundle.learning
    assert bundle.detector.coordinator is bundle.coordinator
    assert bundle.event_bus.emit(VIOLATION_EVENT, {"item": {}}) == 0
    assert (tmp_path / ".sentinel" / "sentinel.db").exists()
