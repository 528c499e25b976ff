"""Loads and persists the canonical project truth document."""

from __future__ import annotations

import logging
from typing import Any

from core.clock import SystemClock
from models.truth import ProjectTruth
from storage.file_store import FileStore
from truth.markdown import parse_truth, render_truth

logger = logging.getLogger("cs.truth")

TRUTH_DIR = "project-documents/project-truth"
TRUTH_PATH = f"{TRUTH_DIR}/project-truth.md"


class TruthStore:
    """Owns the truth document; a missing document means "no truth", not an error."""

    def __init__(self, store: FileStore, clock: Any | None = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self._truth: ProjectTruth | None = None
        self._loaded = False

    @property
    def truth(self) -> ProjectTruth | None:
        if not self._loaded:
            self.load()
        return self._truth

    def load(self) -> ProjectTruth | None:
        """Parse the document from the store, or return None when absent."""
        self._loaded = True
        if not self.store.exists(TRUTH_PATH):
            self._truth = None
            return None
        self._truth = parse_truth(self.store.read_text(TRUTH_PATH))
        return self._truth

    reload = load

    def render(self, truth: ProjectTruth, history_note: str = "") -> str:
        return render_truth(truth, generated_at=self.clock.now(), history_note=history_note)

    def create(self, data: ProjectTruth | dict[str, Any]) -> ProjectTruth:
        """Render ``data`` and persist it as the canonical document."""
        truth = data if isinstance(data, ProjectTruth) else ProjectTruth.model_validate(data)
        self.store.write_text(TRUTH_PATH, self.render(truth))
        logger.info("Project truth written for %s", truth.project_name)
        return self.load() or truth

    def write(self, truth: ProjectTruth, history_note: str) -> None:
        """Rewrite the document without reloading callers' references."""
        self.store.write_text(TRUTH_PATH, self.render(truth, history_note=history_note))
        self.load()
