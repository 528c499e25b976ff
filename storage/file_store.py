"""Path-keyed durable store for markdown and JSON artifacts."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.errors import MalformedArtifactError, StorageError


class FileStore:
    """Reads and writes artifacts addressed by logical POSIX paths under a root."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, logical_path: str) -> Path:
        """Map a logical path to a file under root, refusing escapes."""
        target = (self.root / logical_path).resolve()
        try:
            target.relative_to(self.root)
        except ValueError as exc:
            raise StorageError(f"Path escapes store root: {logical_path}") from exc
        return target

    def exists(self, logical_path: str) -> bool:
        return self.resolve(logical_path).exists()

    def read_text(self, logical_path: str) -> str:
        path = self.resolve(logical_path)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to read {logical_path}: {exc}") from exc

    def write_text(self, logical_path: str, content: str) -> Path:
        """Atomically replace the file contents."""
        path = self.resolve(logical_path)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise StorageError(f"Failed to write {logical_path}: {exc}") from exc
        return path

    def append_text(self, logical_path: str, content: str, header: str = "") -> Path:
        """Append content, seeding a new file with ``header``."""
        path = self.resolve(logical_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists()
            with path.open("a", encoding="utf-8") as fh:
                if is_new and header:
                    fh.write(header)
                fh.write(content)
        except OSError as exc:
            raise StorageError(f"Failed to append {logical_path}: {exc}") from exc
        return path

    def read_json(self, logical_path: str) -> Any:
        raw = self.read_text(logical_path)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedArtifactError(logical_path, str(exc)) from exc

    def write_json(self, logical_path: str, data: Any) -> Path:
        return self.write_text(logical_path, json.dumps(data, indent=2, default=str) + "\n")

    def delete(self, logical_path: str) -> bool:
        path = self.resolve(logical_path)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise StorageError(f"Failed to delete {logical_path}: {exc}") from exc
        return True

    def list(self, prefix: str = "", suffix: str = "", recursive: bool = False) -> list[str]:
        """List logical file paths under ``prefix``, sorted, hidden entries skipped."""
        base = self.resolve(prefix) if prefix else self.root
        if not base.is_dir():
            return []
        candidates = base.rglob("*") if recursive else base.iterdir()
        found = []
        for path in candidates:
            rel = path.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            if path.is_file() and path.name.endswith(suffix):
                found.append(rel.as_posix())
        return sorted(found)

    def list_dirs(self, prefix: str) -> list[str]:
        base = self.resolve(prefix)
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir() and not p.name.startswith("."))

    def modified_at(self, logical_path: str) -> datetime:
        path = self.resolve(logical_path)
        try:
            return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
        except OSError as exc:
            raise StorageError(f"Failed to stat {logical_path}: {exc}") from exc
