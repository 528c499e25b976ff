"""Append-only version history of the project truth.

Each version stores a canonical JSON snapshot of the truth content and its
sha256 hash. A single pointer row names the current version and is only
advanced by compare-and-swap, so a writer holding a stale view of the truth
fails with ``ConcurrentModificationError`` instead of silently overwriting.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update

from core.clock import SystemClock
from core.errors import ConcurrentModificationError, SentinelError
from models.truth import ProjectTruth
from models.versioning import TruthVersion, VersionChanges
from storage.file_store import FileStore
from storage.schemas import TruthVersionRecord, VersionPointerRecord
from storage.sql_store import SQLStore
from truth.truth_store import TRUTH_DIR, TruthStore

logger = logging.getLogger("cs.versions")

CHANGELOG_PATH = f"{TRUTH_DIR}/CHANGELOG.md"
CHANGELOG_HEADER = "# Project Truth Changelog\n\nAll changes to the project truth document are tracked here.\n\n"
POINTER_NAME = "current"
ROLLBACK_AUTHOR = "system-rollback"

COMPARED_FIELDS = (
    "project_name",
    "what_were_building",
    "industry",
    "target_users",
    "not_this",
    "competitors",
    "domain_terms",
)
CRITICAL_FIELDS = ("what_were_building", "industry")
HIGH_FIELDS = ("target_users",)


def canonical_json(truth: ProjectTruth) -> str:
    return json.dumps(truth.content(), sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def content_hash(truth: ProjectTruth) -> str:
    return hashlib.sha256(canonical_json(truth).encode("utf-8")).hexdigest()


def _set_change(field: str, old: list[str], new: list[str], impact: str) -> dict[str, Any] | None:
    added = [x for x in new if x not in old]
    removed = [x for x in old if x not in new]
    if not added and not removed:
        return None
    return {"field": field, "added": added, "removed": removed, "impact": impact}


def detect_changes(old: ProjectTruth | None, new: ProjectTruth) -> VersionChanges:
    """Field diff between two truths, classified by the most severe impact."""
    if old is None:
        return VersionChanges(type="initial", summary="Initial project truth creation")

    details: list[dict[str, Any]] = []
    for field, impact in (
        ("what_were_building", "critical"),
        ("industry", "critical"),
        ("project_name", "low"),
    ):
        before, after = getattr(old, field), getattr(new, field)
        if before != after:
            details.append({"field": field, "old": before, "new": after, "impact": impact})
    if old.target_users != new.target_users:
        details.append(
            {
                "field": "target_users",
                "old": old.target_users.model_dump(),
                "new": new.target_users.model_dump(),
                "impact": "high",
            }
        )
    for change in (
        _set_change("not_this", old.not_this, new.not_this, "medium"),
        _set_change(
            "competitors", [c.name for c in old.competitors], [c.name for c in new.competitors], "low"
        ),
        _set_change(
            "domain_terms", [t.term for t in old.domain_terms], [t.term for t in new.domain_terms], "low"
        ),
    ):
        if change:
            details.append(change)

    if not details:
        return VersionChanges(type="none", summary="No significant changes detected")
    critical = sum(1 for d in details if d["impact"] == "critical")
    high = sum(1 for d in details if d["impact"] == "high")
    if critical:
        return VersionChanges(
            type="major", summary=f"Major changes: {critical} critical field(s) modified", details=details
        )
    if high:
        return VersionChanges(
            type="minor", summary=f"Minor changes: {high} important field(s) modified", details=details
        )
    return VersionChanges(type="patch", summary=f"Patch changes: {len(details)} field(s) updated", details=details)


def next_semver(previous: str | None, change_type: str) -> str:
    """Bump the tier the change was classified as."""
    if previous is None:
        return "1.0.0"
    major, minor, patch = (int(part) for part in previous.split("."))
    if change_type == "major":
        return f"{major + 1}.0.0"
    if change_type == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def get_version_recommendation(changes: list[dict[str, Any]]) -> dict[str, str]:
    fields = {c.get("field") for c in changes}
    if fields & set(CRITICAL_FIELDS):
        return {
            "type": "major",
            "reason": "Critical fields changed - this represents a significant shift in project direction",
        }
    if fields & set(HIGH_FIELDS):
        return {"type": "minor", "reason": "Important fields changed - this represents notable adjustments"}
    return {"type": "patch", "reason": "Minor updates and clarifications"}


def _changelog_line(change: dict[str, Any]) -> str:
    if "added" in change:
        parts = []
        if change["added"]:
            parts.append(f"Added {', '.join(change['added'])}")
        if change["removed"]:
            parts.append(f"Removed {', '.join(change['removed'])}")
        return f"- **{change['field']}**: {'; '.join(parts)}"
    return f'- **{change["field"]}**: Changed from "{change["old"]}" to "{change["new"]}"'


def _to_model(record: TruthVersionRecord) -> TruthVersion:
    timestamp = record.timestamp if record.timestamp.tzinfo else record.timestamp.replace(tzinfo=UTC)
    return TruthVersion(
        id=record.version_id,
        version=record.semver,
        timestamp=timestamp,
        author=record.author,
        change_reason=record.change_reason,
        changes=VersionChanges.model_validate(record.changes_json),
        content_hash=record.content_hash,
        truth=ProjectTruth.model_validate(json.loads(record.snapshot)),
    )


class TruthVersionManager:
    """Creates, reads, compares and rolls back truth versions."""

    def __init__(
        self,
        sql_store: SQLStore,
        truth_store: TruthStore,
        store: FileStore,
        clock: Any | None = None,
    ) -> None:
        self.sql_store = sql_store
        self.truth_store = truth_store
        self.store = store
        self.clock = clock or SystemClock()
        self.sql_store.create_all()

    @property
    def current_version(self) -> TruthVersion | None:
        with self.sql_store.session() as session:
            pointer = session.get(VersionPointerRecord, POINTER_NAME)
            if pointer is None:
                return None
            record = session.scalar(
                select(TruthVersionRecord).where(TruthVersionRecord.version_id == pointer.version_id)
            )
            return _to_model(record) if record else None

    def create_version(
        self,
        truth: ProjectTruth,
        reason: str,
        author: str = "system",
        expected_hash: str | None = None,
    ) -> TruthVersion:
        """Append a snapshot of ``truth`` and advance the current pointer.

        ``expected_hash`` is the content hash the caller last saw; a mismatch
        with the current pointer raises ``ConcurrentModificationError``.
        """
        snapshot = canonical_json(truth)
        digest = content_hash(truth)
        now = self.clock.now()

        with self.sql_store.transaction() as session:
            pointer = session.get(VersionPointerRecord, POINTER_NAME)
            current_hash = pointer.content_hash if pointer else None
            if expected_hash is not None and expected_hash != current_hash:
                raise ConcurrentModificationError("project-truth", expected_hash, current_hash)

            previous = None
            if pointer is not None:
                previous = session.scalar(
                    select(TruthVersionRecord).where(TruthVersionRecord.version_id == pointer.version_id)
                )
            old_truth = ProjectTruth.model_validate(json.loads(previous.snapshot)) if previous else None
            changes = detect_changes(old_truth, truth)

            count = session.scalar(select(func.count()).select_from(TruthVersionRecord)) or 0
            record = TruthVersionRecord(
                version_id=f"v{count + 1}",
                semver=next_semver(previous.semver if previous else None, changes.type),
                timestamp=now,
                author=author,
                change_reason=reason,
                changes_json=changes.model_dump(mode="json"),
                content_hash=digest,
                snapshot=snapshot,
            )
            session.add(record)
            session.flush()

            if pointer is None:
                session.add(
                    VersionPointerRecord(
                        name=POINTER_NAME, version_id=record.version_id, content_hash=digest, updated_at=now
                    )
                )
            else:
                swapped = session.execute(
                    update(VersionPointerRecord)
                    .where(
                        VersionPointerRecord.name == POINTER_NAME,
                        VersionPointerRecord.version_id == pointer.version_id,
                    )
                    .values(version_id=record.version_id, content_hash=digest, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if swapped.rowcount != 1:
                    raise ConcurrentModificationError("project-truth", current_hash, None)
            version = _to_model(record)

        logger.info("Truth version %s (%s) created by %s", version.id, version.version, author)
        self._append_changelog(version)
        return version

    def update_truth(
        self,
        truth: ProjectTruth,
        reason: str,
        author: str = "system",
        expected_hash: str | None = None,
    ) -> TruthVersion:
        """Version ``truth`` and make it the canonical document."""
        version = self.create_version(truth, reason, author=author, expected_hash=expected_hash)
        document = version.truth.model_copy(update={"version": version.version})
        self.truth_store.write(document, history_note=f"- {version.id} ({version.version}): {reason}")
        return version

    def _append_changelog(self, version: TruthVersion) -> None:
        lines = [
            f"## {version.version} - {version.timestamp.strftime('%a %b %d %Y')}",
            "",
            f"**Author**: {version.author}",
            f"**Reason**: {version.change_reason}",
            "",
            "### Changes",
            *(_changelog_line(c) for c in version.changes.details),
            "",
            "---",
            "",
        ]
        entry = "\n".join(lines) + "\n"
        try:
            existing = self.store.read_text(CHANGELOG_PATH) if self.store.exists(CHANGELOG_PATH) else ""
            body = existing[len(CHANGELOG_HEADER) :] if existing.startswith(CHANGELOG_HEADER) else existing
            self.store.write_text(CHANGELOG_PATH, CHANGELOG_HEADER + entry + body)
        except SentinelError as exc:
            logger.warning("Changelog update for %s failed: %s", version.id, exc)

    def get_version(self, version_id: str) -> TruthVersion | None:
        with self.sql_store.session() as session:
            record = session.scalar(
                select(TruthVersionRecord).where(TruthVersionRecord.version_id == version_id)
            )
            return _to_model(record) if record else None

    def get_history(self) -> list[dict[str, Any]]:
        """Version summaries in creation order."""
        with self.sql_store.session() as session:
            records = session.scalars(select(TruthVersionRecord).order_by(TruthVersionRecord.seq)).all()
            versions = [_to_model(r) for r in records]
        return [
            {
                "id": v.id,
                "version": v.version,
                "timestamp": v.timestamp.isoformat(),
                "author": v.author,
                "change_reason": v.change_reason,
                "change_type": v.changes.type,
                "change_summary": v.changes.summary,
            }
            for v in versions
        ]

    def rollback_to_version(self, version_id: str, reason: str) -> dict[str, Any]:
        target = self.get_version(version_id)
        if target is None:
            return {"success": False, "error": "Version not found"}
        version = self.update_truth(
            target.truth, f"Rollback to {version_id}: {reason}", author=ROLLBACK_AUTHOR
        )
        return {"success": True, "version": version}

    def compare_versions(self, version_id1: str, version_id2: str) -> dict[str, Any]:
        v1, v2 = self.get_version(version_id1), self.get_version(version_id2)
        if v1 is None or v2 is None:
            return {"success": False, "error": "One or both versions not found"}
        first, second = v1.truth.content(), v2.truth.content()
        differences = [
            {"field": field, "version1": first[field], "version2": second[field]}
            for field in COMPARED_FIELDS
            if first[field] != second[field]
        ]
        return {
            "success": True,
            "comparison": {
                "version1": {"id": v1.id, "version": v1.version, "timestamp": v1.timestamp.isoformat()},
                "version2": {"id": v2.id, "version": v2.version, "timestamp": v2.timestamp.isoformat()},
                "differences": differences,
            },
        }

    def generate_diff_report(self, version_id1: str, version_id2: str) -> dict[str, Any]:
        """Write a markdown comparison beside the truth document."""
        result = self.compare_versions(version_id1, version_id2)
        if not result["success"]:
            return result
        comparison = result["comparison"]
        parts = ["# Project Truth Version Comparison", ""]
        for label in ("version1", "version2"):
            meta = comparison[label]
            stamp = datetime.fromisoformat(meta["timestamp"]).strftime("%a %b %d %Y")
            parts += [
                f"**{label.replace('version', 'Version ')}**: {meta['id']} ({meta['version']})",
                f"**Date**: {stamp}",
                "",
            ]
        parts += ["## Differences", ""]
        if not comparison["differences"]:
            parts.append("No differences found between versions.")
        for diff in comparison["differences"]:
            parts += [f"### {diff['field']}", ""]
            for label in ("version1", "version2"):
                rendered = json.dumps(diff[label], indent=2, ensure_ascii=False)
                parts += [f"**{label.replace('version', 'Version ')}**:", "```", rendered, "```", ""]

        report_path = f"{TRUTH_DIR}/diff-{version_id1}-{version_id2}.md"
        self.store.write_text(report_path, "\n".join(parts) + "\n")
        return {"success": True, "report_path": report_path, "differences": len(comparison["differences"])}
