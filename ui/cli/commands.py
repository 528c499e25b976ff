"""Typer command handlers."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import typer
import yaml

from core.errors import ConcurrentModificationError, ResolutionNotFoundError
from core.orchestrator import Orchestrator, RuntimeBundle
from models.truth import ProjectTruth


def _runtime(root: Path | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build()
    return bundle


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def _load_truth_file(path: Path) -> ProjectTruth:
    """Read truth fields from a YAML or JSON file."""
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a mapping")
    return ProjectTruth.model_validate(data)


def truth_create(source: Path, root: Path | None = None) -> None:
    """Create the truth document and record its initial version."""
    bundle = _runtime(root)
    if bundle.truth_store.truth is not None:
        typer.echo("Project truth already exists; use 'truth update' to change it.")
        raise typer.Exit(code=1)
    truth = bundle.truth_store.create(_load_truth_file(source).model_copy(update={"version": "1.0.0"}))
    version = bundle.versions.create_version(truth, "Initial project truth creation")
    typer.echo(f"Created project truth for {truth.project_name} ({version.id}, {version.version})")


def truth_update(source: Path, reason: str, expected_hash: str | None, root: Path | None = None) -> None:
    """Version a new truth and rewrite the canonical document."""
    bundle = _runtime(root)
    try:
        version = bundle.versions.update_truth(
            _load_truth_file(source), reason, author="cli", expected_hash=expected_hash
        )
    except ConcurrentModificationError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo(f"{version.id} ({version.version}): {version.changes.summary}")
    typer.echo(f"content hash: {version.content_hash}")


def truth_show(root: Path | None = None) -> None:
    bundle = _runtime(root)
    truth = bundle.truth_store.truth
    if truth is None:
        typer.echo("No project truth document found.")
        raise typer.Exit(code=1)
    _echo_json(truth.model_dump(mode="json"))


def verify_item(text: str, category: str, root: Path | None = None) -> None:
    """Verify free text as a single item."""
    bundle = _runtime(root)
    result = bundle.engine.verify_item(text, category)
    typer.echo(f"[{result.status.upper()}] confidence={result.confidence}: {result.message}")
    if result.recommendation:
        typer.echo(f"recommendation: {result.recommendation}")


def verify_backlog(root: Path | None = None) -> None:
    bundle = _runtime(root)
    report = bundle.engine.verify_backlog()
    if not report.success:
        typer.echo(report.message)
        raise typer.Exit(code=1)
    typer.echo(
        f"{report.total} items | aligned={report.aligned} warnings={report.warnings} "
        f"reviews={report.reviews} violations={report.violations} errors={report.errors}"
    )
    typer.echo(f"purity score: {report.purity_score}%{' (partial)' if report.partial else ''}")
    for entry in report.items:
        if entry.get("status") != "allowed":
            typer.echo(f"- [{entry.get('status')}] {entry.get('title')}: {entry.get('message', entry.get('error', ''))}")


def verify_sprint(sprint_name: str, root: Path | None = None) -> None:
    bundle = _runtime(root)
    result = bundle.engine.verify_sprint_tasks(sprint_name)
    if not result.success:
        typer.echo(result.message)
        raise typer.Exit(code=1)
    for task in result.tasks:
        typer.echo(f"- [{task.get('status')}] {task.get('title')}")
    typer.echo("Sprint can proceed." if result.can_proceed else "Sprint is blocked by context violations.")


def drift_check(root: Path | None = None) -> None:
    """Run one drift cycle and print the report."""
    bundle = _runtime(root)
    report = bundle.detector.check_drift_now()
    if report is None:
        typer.echo("A drift check is already running.")
        return
    typer.echo(f"Overall drift: {report.overall_drift}% ({report.severity}){' partial' if report.partial else ''}")
    for check in report.checks:
        if check.ok:
            typer.echo(f"- {check.name}: {check.drift:g}% ({check.details})")
        else:
            typer.echo(f"- {check.name}: error: {check.error}")
    for recommendation in report.recommendations:
        typer.echo(f"* {recommendation}")


def drift_monitor(interval_minutes: float | None, root: Path | None = None) -> None:
    """Monitor until interrupted."""
    bundle = _runtime(root)
    result = bundle.detector.start_monitoring(interval_minutes)
    if not result["success"]:
        typer.echo(result["message"])
        raise typer.Exit(code=1)
    typer.echo(f"Monitoring every {result['interval_minutes']:g} minutes. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        bundle.detector.stop_monitoring()
        typer.echo("Monitoring stopped.")


def drift_status(root: Path | None = None) -> None:
    bundle = _runtime(root)
    _echo_json(bundle.detector.get_drift_status())


def resolution_list(root: Path | None = None) -> None:
    bundle = _runtime(root)
    for resolution in bundle.coordinator.list_active():
        typer.echo(
            f"{resolution.id} {resolution.strategy} {resolution.status} "
            f"drift={resolution.drift_report.overall_drift}%"
        )


def resolution_show(resolution_id: str, root: Path | None = None) -> None:
    bundle = _runtime(root)
    resolution = bundle.coordinator.get_resolution(resolution_id)
    if resolution is None:
        typer.echo(f"Resolution {resolution_id} not found")
        raise typer.Exit(code=1)
    _echo_json(resolution.model_dump(mode="json"))


def resolution_complete(
    resolution_id: str,
    status: str,
    lessons: list[str],
    measures: list[str],
    root: Path | None = None,
) -> None:
    bundle = _runtime(root)
    outcome = {"status": status, "lessons_learned": lessons, "prevention_measures": measures}
    try:
        resolution = bundle.coordinator.complete_resolution(resolution_id, outcome)
    except ResolutionNotFoundError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo(f"{resolution.id} archived after {round((resolution.duration_seconds or 0) / 60)} minutes")
    if resolution.learning_patterns:
        typer.echo(f"patterns: {', '.join(resolution.learning_patterns)}")


def versions_history(root: Path | None = None) -> None:
    bundle = _runtime(root)
    for entry in bundle.versions.get_history():
        typer.echo(
            f"{entry['id']} {entry['version']} {entry['timestamp']} "
            f"{entry['author']}: {entry['change_summary']}"
        )


def versions_show(version_id: str, root: Path | None = None) -> None:
    bundle = _runtime(root)
    version = bundle.versions.get_version(version_id)
    if version is None:
        typer.echo("Version not found")
        raise typer.Exit(code=1)
    _echo_json(version.model_dump(mode="json"))


def versions_compare(version_id1: str, version_id2: str, report: bool, root: Path | None = None) -> None:
    bundle = _runtime(root)
    if report:
        result = bundle.versions.generate_diff_report(version_id1, version_id2)
    else:
        result = bundle.versions.compare_versions(version_id1, version_id2)
    _echo_json(result)
    if not result["success"]:
        raise typer.Exit(code=1)


def versions_rollback(version_id: str, reason: str, root: Path | None = None) -> None:
    bundle = _runtime(root)
    result = bundle.versions.rollback_to_version(version_id, reason)
    if not result["success"]:
        typer.echo(result["error"])
        raise typer.Exit(code=1)
    version = result["version"]
    typer.echo(f"Rolled back to {version_id} as {version.id} ({version.version})")


def learning_patterns(limit: int, root: Path | None = None) -> None:
    bundle = _runtime(root)
    for pattern in bundle.learning.list_patterns()[:limit]:
        typer.echo(f"{pattern.id} occurrences={pattern.occurrences} confidence={pattern.confidence:.1f}")


def learning_insights(root: Path | None = None) -> None:
    bundle = _runtime(root)
    result = bundle.engine.get_learning_insights()
    if not result["success"]:
        typer.echo(result["message"])
        raise typer.Exit(code=1)
    _echo_json(result["insights"].model_dump(mode="json"))


def config_show(root: Path | None = None) -> None:
    """Show effective runtime config."""
    bundle = _runtime(root)
    _echo_json(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert models and datetimes to JSON-compatible values."""
    if hasattr(payload, "model_dump"):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, list | tuple):
        return [_json_safe(v) for v in payload]
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
