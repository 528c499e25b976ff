"""Structured JSONL audit logger for verification and resolution decisions."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from core.clock import SystemClock


class AuditLogger:
    """Writes audit records as JSON lines."""

    def __init__(self, log_path: Path, clock: Any | None = None) -> None:
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.clock = clock or SystemClock()
        self.logger = logging.getLogger("cs.audit")

    @staticmethod
    def _hash_inputs(inputs: dict[str, Any]) -> str:
        payload = json.dumps(inputs, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def log(
        self,
        event: str,
        subject: str,
        inputs: dict[str, Any],
        outcome: str,
        reason: str = "",
    ) -> None:
        """Append one JSONL audit event; write failures are logged, not raised."""
        record = {
            "timestamp": self.clock.now().isoformat(),
            "event": event,
            "subject": subject,
            "inputs_hash": self._hash_inputs(inputs),
            "outcome": outcome,
            "reason": reason,
        }
        line = json.dumps(record, ensure_ascii=True)
        try:
            with self.log_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            self.logger.warning("Audit write failed: %s", exc)
            return
        self.logger.debug(line)

    def read(self) -> list[dict[str, Any]]:
        if not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
