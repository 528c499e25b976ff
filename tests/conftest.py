"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.clock import FrozenClock
from models.truth import Competitor, DomainTerm, ProjectTruth, TargetUsers
from storage.file_store import FileStore
from storage.sql_store import SQLStore
from truth.truth_store import TruthStore


def make_truth(**overrides: object) -> ProjectTruth:
    data = {
        "project_name": "Ledgerly",
        "what_were_building": "Bookkeeping software for freelancers to track invoices and expenses",
        "industry": "bookkeeping",
        "target_users": TargetUsers(primary="freelancer", secondary="accountant"),
        "not_this": ["casino gaming platform"],
        "competitors": [Competitor(name="QuickBooks", description="Accounting suite with payroll and inventory")],
        "domain_terms": [
            DomainTerm(term="invoice", definition="A bill sent to a client"),
            DomainTerm(term="expense", definition="Money spent on the business"),
        ],
    }
    data.update(overrides)
    return ProjectTruth(**data)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path / "project")


@pytest.fixture
def sql_store(tmp_path: Path) -> SQLStore:
    sql = SQLStore(tmp_path / "sentinel.db")
    sql.create_all()
    return sql


@pytest.fixture
def truth_store(store: FileStore, clock: FrozenClock) -> TruthStore:
    truth_store = TruthStore(store, clock=clock)
    truth_store.create(make_truth())
    return truth_store
