"""Violation learning tests."""

from __future__ import annotations

import threading
from typing import Any

from conftest import make_truth
from core.clock import FrozenClock
from core.event_bus import EventBus
from learning.pattern_detectors import pattern_id
from learning.violation_learning import LEARNINGS_DIR, PATTERNS_SUMMARY_PATH, ViolationLearningSystem
from storage.file_store import FileStore
from storage.sql_store import SQLStore
from truth.truth_store import TruthStore
from verification.verification_engine import VIOLATION_EVENT, VerificationEngine


def casino_violation(title: str = "Casino odds widget") -> dict[str, Any]:
    return {
        "item": {"title": title, "description": "Show betting odds"},
        "confidence": 100,
        "reason": "Item contains terms explicitly outside project domain",
        "details": {
            "domain_alignment": 100,
            "user_alignment": 80,
            "competitor_feature": 50,
            "historical_pattern": 30,
        },
        "truth": make_truth().model_dump(mode="json"),
        "category": "backlog",
    }


def build_learning(sql_store: SQLStore, store: FileStore, clock: FrozenClock) -> ViolationLearningSystem:
    return ViolationLearningSystem(sql_store, store, clock=clock)


def patterns_by_type(learning: ViolationLearningSystem) -> dict[str, Any]:
    return {p.type: p for p in learning.list_patterns()}


def test_all_detectors_fire_for_casino_violation(
    sql_store: SQLStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)

    result = learning.learn_from_violation(casino_violation())

    assert result["patterns"] == 5
    assert set(patterns_by_type(learning)) == {
        "domain-mismatch",
        "user-misalignment",
        "feature-creep",
        "not-this-violation",
        "terminology-drift",
    }
    domain = patterns_by_type(learning)["domain-mismatch"]
    assert domain.pattern["violating_terms"] == ["betting", "casino", "odds"]
    assert store.exists(f"{LEARNINGS_DIR}/{result['learning_id']}.json")
    assert store.exists(PATTERNS_SUMMARY_PATH)


def test_reobserving_increments_occurrences_by_two(
    sql_store: SQLStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)
    learning.learn_from_violation(casino_violation())
    before = patterns_by_type(learning)["domain-mismatch"]

    clock.advance(hours=1)
    learning.learn_from_violation(casino_violation())
    learning.learn_from_violation(casino_violation())
    after = patterns_by_type(learning)["domain-mismatch"]

    assert after.id == before.id
    assert after.occurrences == before.occurrences + 2
    assert after.first_seen == before.first_seen
    assert after.last_seen > before.last_seen


def test_examples_are_capped_at_ten(sql_store: SQLStore, store: FileStore, clock: FrozenClock) -> None:
    learning = build_learning(sql_store, store, clock)

    for index in range(12):
        learning.learn_from_violation(casino_violation(title=f"Casino odds widget {index}"))

    pattern = patterns_by_type(learning)["domain-mismatch"]
    assert pattern.occurrences == 12
    assert len(pattern.examples) == 10
    assert pattern.examples[0]["item_title"] == "Casino odds widget 2"
    assert pattern.examples[-1]["item_title"] == "Casino odds widget 11"


def test_running_average_confidence(sql_store: SQLStore, store: FileStore, clock: FrozenClock) -> None:
    learning = build_learning(sql_store, store, clock)
    first = casino_violation()
    second = casino_violation()
    second["details"]["user_alignment"] = 90

    learning.learn_from_violation(first)
    learning.learn_from_violation(second)

    pattern = patterns_by_type(learning)["user-misalignment"]
    assert pattern.occurrences == 2
    assert pattern.confidence == 85


def test_pattern_id_ignores_confidence() -> None:
    base = {"type": "not-this-violation", "violated": ["casino gaming platform"], "confidence": 95}

    assert pattern_id(base) == pattern_id({**base, "confidence": 40})
    assert pattern_id(base) != pattern_id({**base, "violated": ["crypto"]})


def test_prevention_recommendations(sql_store: SQLStore, store: FileStore, clock: FrozenClock) -> None:
    learning = build_learning(sql_store, store, clock)

    result = learning.learn_from_violation(casino_violation())

    kinds = {rec["type"] for rec in result["prevention"]}
    assert {"vocabulary-enforcement", "blacklist-enforcement", "scope-change-control"} <= kinds
    assert "insight-based" in kinds


def test_project_insights_rank_relevant_patterns(
    sql_store: SQLStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)
    learning.learn_from_violation(casino_violation())
    learning.learn_from_violation(casino_violation())

    insights = learning.get_project_insights(make_truth())

    # not-this patterns carry no industry or audience, so they are project-specific
    assert len(insights.common_violations) == 4
    assert insights.common_violations[0]["occurrences"] == 2
    assert {s["pattern_type"] for s in insights.prevention_strategies} >= {"domain-mismatch", "feature-creep"}
    assert insights.recommendations[0]["priority"] == "high"


def test_project_insights_flag_truth_gaps(sql_store: SQLStore, store: FileStore, clock: FrozenClock) -> None:
    learning = build_learning(sql_store, store, clock)
    truth = make_truth(industry="tech", not_this=[], target_users={"primary": "everyone", "secondary": ""})

    insights = learning.get_project_insights(truth)

    factors = {r["factor"] for r in insights.risk_factors}
    assert "Vague industry definition" in factors
    assert "Missing NOT THIS definitions" in factors
    assert "Too broad target user definition" in factors
    assert insights.common_violations == []


def test_blocked_verification_is_learned_through_event_bus(
    sql_store: SQLStore, truth_store: TruthStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)
    bus = EventBus()
    bus.subscribe(VIOLATION_EVENT, learning.handle_event)
    engine = VerificationEngine(truth_store, store, event_bus=bus, history_source=learning)

    result = engine.verify_item("Add casino odds calculator", "backlog")

    assert result.status == "blocked"
    assert result.confidence >= 95
    assert "domain-mismatch" in patterns_by_type(learning)
    assert engine.history_snapshot()


def test_engine_exposes_learned_prevention(
    sql_store: SQLStore, truth_store: TruthStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)
    engine = VerificationEngine(truth_store, store, history_source=learning)

    assert engine.apply_learned_prevention()["success"] is False

    learning.learn_from_violation(casino_violation())
    insights = engine.get_learning_insights()
    prevention = engine.apply_learned_prevention()

    assert insights["success"] is True
    assert prevention["success"] is True
    assert prevention["strategies"][0]["name"] == "Domain Vocabulary Enforcement"


def test_engine_without_learning_reports_unconfigured(truth_store: TruthStore, store: FileStore) -> None:
    engine = VerificationEngine(truth_store, store)

    assert engine.get_learning_insights() == {"success": False, "message": "Learning system not configured"}


def test_concurrent_violations_count_every_occurrence(
    sql_store: SQLStore, store: FileStore, clock: FrozenClock
) -> None:
    learning = build_learning(sql_store, store, clock)
    workers = 8
    start = threading.Barrier(workers)
    errors: list[BaseException] = []

    def learn() -> None:
        start.wait()
        try:
            learning.learn_from_violation(casino_violation())
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=learn) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    patterns = patterns_by_type(learning)
    assert patterns["domain-mismatch"].occurrences == workers
    assert patterns["terminology-drift"].occurrences == workers
    assert len(store.list(LEARNINGS_DIR)) == workers
