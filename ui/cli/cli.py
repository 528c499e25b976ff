"""CLI entrypoint for context-sentinel."""

from __future__ import annotations

from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Context verification and drift detection")
truth_app = typer.Typer(help="Project truth commands")
verify_app = typer.Typer(help="Verification commands")
drift_app = typer.Typer(help="Drift detection commands")
resolution_app = typer.Typer(help="Drift resolution commands")
versions_app = typer.Typer(help="Truth version commands")
learning_app = typer.Typer(help="Violation learning commands")
config_app = typer.Typer(help="Configuration commands")

RootOption = typer.Option(None, "--root", help="Project root (defaults to the current directory)")


@truth_app.command("create")
def truth_create_cmd(
    source: Path = typer.Argument(..., exists=True, help="YAML or JSON file with truth fields"),
    root: Path | None = RootOption,
) -> None:
    """Create the project truth document."""
    commands.truth_create(source=source, root=root)


@truth_app.command("update")
def truth_update_cmd(
    source: Path = typer.Argument(..., exists=True, help="YAML or JSON file with truth fields"),
    reason: str = typer.Option(..., "--reason", help="Why the truth changed"),
    expected_hash: str | None = typer.Option(None, "--expected-hash", help="Content hash last seen"),
    root: Path | None = RootOption,
) -> None:
    """Version and apply a new project truth."""
    commands.truth_update(source=source, reason=reason, expected_hash=expected_hash, root=root)


@truth_app.command("show")
def truth_show_cmd(root: Path | None = RootOption) -> None:
    """Show the current project truth."""
    commands.truth_show(root=root)


@verify_app.command("item")
def verify_item_cmd(
    text: str = typer.Argument(..., help="Item text to verify"),
    category: str = typer.Option("general", help="Item category"),
    root: Path | None = RootOption,
) -> None:
    """Verify one item against the project truth."""
    commands.verify_item(text=text, category=category, root=root)


@verify_app.command("backlog")
def verify_backlog_cmd(root: Path | None = RootOption) -> None:
    """Verify every backlog item."""
    commands.verify_backlog(root=root)


@verify_app.command("sprint")
def verify_sprint_cmd(sprint_name: str, root: Path | None = RootOption) -> None:
    """Verify the tasks selected for a sprint."""
    commands.verify_sprint(sprint_name=sprint_name, root=root)


@drift_app.command("check")
def drift_check_cmd(root: Path | None = RootOption) -> None:
    """Run one drift check now."""
    commands.drift_check(root=root)


@drift_app.command("monitor")
def drift_monitor_cmd(
    interval: float | None = typer.Option(None, "--interval", help="Minutes between checks"),
    root: Path | None = RootOption,
) -> None:
    """Monitor drift until interrupted."""
    commands.drift_monitor(interval_minutes=interval, root=root)


@drift_app.command("status")
def drift_status_cmd(root: Path | None = RootOption) -> None:
    """Show drift monitoring status."""
    commands.drift_status(root=root)


@resolution_app.command("list")
def resolution_list_cmd(root: Path | None = RootOption) -> None:
    """List active resolutions."""
    commands.resolution_list(root=root)


@resolution_app.command("show")
def resolution_show_cmd(resolution_id: str, root: Path | None = RootOption) -> None:
    """Show one resolution."""
    commands.resolution_show(resolution_id=resolution_id, root=root)


@resolution_app.command("complete")
def resolution_complete_cmd(
    resolution_id: str,
    status: str = typer.Option("resolved", help="Outcome status"),
    lesson: list[str] = typer.Option([], "--lesson", help="Lesson learned (repeatable)"),
    measure: list[str] = typer.Option([], "--measure", help="Prevention measure (repeatable)"),
    root: Path | None = RootOption,
) -> None:
    """Complete and archive a resolution."""
    commands.resolution_complete(
        resolution_id=resolution_id, status=status, lessons=lesson, measures=measure, root=root
    )


@versions_app.command("history")
def versions_history_cmd(root: Path | None = RootOption) -> None:
    """List truth versions."""
    commands.versions_history(root=root)


@versions_app.command("show")
def versions_show_cmd(version_id: str, root: Path | None = RootOption) -> None:
    """Show one stored version."""
    commands.versions_show(version_id=version_id, root=root)


@versions_app.command("compare")
def versions_compare_cmd(
    version_id1: str,
    version_id2: str,
    report: bool = typer.Option(False, "--report", help="Write a markdown diff report"),
    root: Path | None = RootOption,
) -> None:
    """Compare two versions field by field."""
    commands.versions_compare(version_id1=version_id1, version_id2=version_id2, report=report, root=root)


@versions_app.command("rollback")
def versions_rollback_cmd(
    version_id: str,
    reason: str = typer.Option(..., "--reason", help="Why the rollback is needed"),
    root: Path | None = RootOption,
) -> None:
    """Restore an earlier version as a new version."""
    commands.versions_rollback(version_id=version_id, reason=reason, root=root)


@learning_app.command("patterns")
def learning_patterns_cmd(limit: int = typer.Option(20, min=1), root: Path | None = RootOption) -> None:
    """List learned violation patterns."""
    commands.learning_patterns(limit=limit, root=root)


@learning_app.command("insights")
def learning_insights_cmd(root: Path | None = RootOption) -> None:
    """Show insights relevant to the current truth."""
    commands.learning_insights(root=root)


@config_app.command("show")
def config_show_cmd(root: Path | None = RootOption) -> None:
    """Show effective configuration."""
    commands.config_show(root=root)


app.add_typer(truth_app, name="truth")
app.add_typer(verify_app, name="verify")
app.add_typer(drift_app, name="drift")
app.add_typer(resolution_app, name="resolution")
app.add_typer(versions_app, name="versions")
app.add_typer(learning_app, name="learning")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
