"""CLI smoke tests."""

from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from ui.cli.cli import app

runner = CliRunner()

TRUTH = {
    "project_name": "Ledgerly",
    "what_were_building": "Bookkeeping software for freelancers to track invoices and expenses",
    "industry": "bookkeeping",
    "target_users": {"primary": "freelancer", "secondary": "accountant"},
    "not_this": ["casino gaming platform"],
    "competitors": [{"name": "QuickBooks", "description": "Accounting suite"}],
    "domain_terms": [{"term": "invoice", "definition": "A bill sent to a client"}],
}


def write_truth_file(tmp_path: Path, **overrides: object) -> Path:
    source = tmp_path / "truth.yaml"
    source.write_text(yaml.safe_dump({**TRUTH, **overrides}), encoding="utf-8")
    return source


def invoke(*args: str) -> object:
    return runner.invoke(app, list(args))


def test_truth_lifecycle(tmp_path: Path) -> None:
    root = str(tmp_path / "project")
    source = write_truth_file(tmp_path)

    created = invoke("truth", "create", str(source), "--root", root)
    assert created.exit_code == 0, created.output
    assert "v1, 1.0.0" in created.output

    again = invoke("truth", "create", str(source), "--root", root)
    assert again.exit_code == 1

    updated = invoke(
        "truth", "update", str(write_truth_file(tmp_path, industry="legal services")), "--reason", "pivot", "--root", root
    )
    assert updated.exit_code == 0, updated.output
    assert updated.output.startswith("v2 (2.0.0)")

    history = invoke("versions", "history", "--root", root)
    assert history.output.count("\n") == 2

    rolled = invoke("versions", "rollback", "v1", "--reason", "undo", "--root", root)
    assert rolled.exit_code == 0, rolled.output
    assert "as v3" in rolled.output


def test_verify_and_drift_commands(tmp_path: Path) -> None:
    root = str(tmp_path / "project")
    assert invoke("truth", "create", str(write_truth_file(tmp_path)), "--root", root).exit_code == 0

    blocked = invoke("verify", "item", "Add casino odds calculator", "--root", root)
    assert blocked.exit_code == 0, blocked.output
    assert blocked.output.startswith("[BLOCKED]")

    patterns = invoke("learning", "patterns", "--root", root)
    assert "domain-mismatch" in patterns.output

    insights = invoke("learning", "insights", "--root", root)
    assert insights.exit_code == 0, insights.output
    assert "Domain Vocabulary Enforcement" in insights.output

    drift = invoke("drift", "check", "--root", root)
    assert drift.exit_code == 0, drift.output
    assert "Overall drift: 0% (none)" in drift.output

    missing = invoke("resolution", "complete", "drift-nope", "--root", root)
    assert missing.exit_code == 1
    assert "not found" in missing.output


def test_commands_without_truth(tmp_path: Path) -> None:
    root = str(tmp_path / "empty")

    assert invoke("truth", "show", "--root", root).exit_code == 1
    warned = invoke("verify", "item", "anything", "--root", root)
    assert warned.output.startswith("[WARNING] confidence=0")
    assert invoke("verify", "backlog", "--root", root).exit_code == 1
