"""Top-level application orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.clock import SystemClock
from core.event_bus import EventBus
from core.policy_runtime import ensure_runtime_dirs, load_effective_config
from core.scheduler import ThreadingScheduler
from drift.drift_detector import DriftDetector
from drift.resolution_coordinator import DriftResolutionCoordinator
from governance.audit_logger import AuditLogger
from learning.violation_learning import ViolationLearningSystem
from storage.file_store import FileStore
from storage.sql_store import SQLStore
from truth.truth_store import TruthStore
from truth.version_manager import TruthVersionManager
from verification.verification_engine import VIOLATION_EVENT, VerificationEngine


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    store: FileStore
    truth_store: TruthStore
    versions: TruthVersionManager
    engine: VerificationEngine
    learning: ViolationLearningSystem
    coordinator: DriftResolutionCoordinator
    detector: DriftDetector
    event_bus: EventBus
    audit_logger: AuditLogger


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(
        self,
        root: Path | None = None,
        overrides: dict[str, Any] | None = None,
        clock: Any | None = None,
        scheduler: Any | None = None,
    ) -> None:
        self.root = (root or Path.cwd()).resolve()
        self.overrides = overrides
        self.clock = clock or SystemClock()
        self.scheduler = scheduler

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root, self.overrides)
        paths = ensure_runtime_dirs(self.root, config)
        self._configure_logging(config)

        store = FileStore(paths["project_dir"])
        sql_store = SQLStore(paths["db_path"])
        sql_store.create_all()
        audit_logger = AuditLogger(paths["audit_log_path"], clock=self.clock)
        event_bus = EventBus()

        truth_store = TruthStore(store, clock=self.clock)
        versions = TruthVersionManager(sql_store, truth_store, store, clock=self.clock)
        learning = ViolationLearningSystem(
            sql_store,
            store,
            clock=self.clock,
            max_examples=int(config.get("learning", {}).get("max_examples", 10)),
        )
        # Learning is best effort: the bus logs and skips a failing subscriber.
        event_bus.subscribe(VIOLATION_EVENT, learning.handle_event)

        engine = VerificationEngine(
            truth_store,
            store,
            event_bus=event_bus,
            history_source=learning,
            audit_logger=audit_logger,
            thresholds=config.get("verification", {}).get("thresholds"),
        )
        coordinator = DriftResolutionCoordinator(store, clock=self.clock, audit_logger=audit_logger)
        detector = DriftDetector(
            engine,
            store,
            coordinator=coordinator,
            scheduler=self.scheduler or ThreadingScheduler(),
            clock=self.clock,
            settings=config.get("drift", {}),
        )

        return RuntimeBundle(
            config=config,
            store=store,
            truth_store=truth_store,
            versions=versions,
            engine=engine,
            learning=learning,
            coordinator=coordinator,
            detector=detector,
            event_bus=event_bus,
            audit_logger=audit_logger,
        )

    @staticmethod
    def _configure_logging(config: dict[str, Any]) -> None:
        level = str(config.get("logging", {}).get("level", "INFO")).upper()
        logging.getLogger("cs").setLevel(getattr(logging, level, logging.INFO))
