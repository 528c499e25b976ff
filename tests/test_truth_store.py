"""Truth document persistence tests."""

from __future__ import annotations

from conftest import make_truth
from core.clock import FrozenClock
from models.truth import Competitor, DomainTerm, TargetUsers
from storage.file_store import FileStore
from truth.markdown import parse_truth
from truth.truth_store import TRUTH_PATH, TruthStore


def test_missing_document_means_no_truth(store: FileStore) -> None:
    truth_store = TruthStore(store)

    assert truth_store.truth is None
    assert truth_store.load() is None


def test_markdown_round_trip(store: FileStore, clock: FrozenClock) -> None:
    truth_store = TruthStore(store, clock=clock)
    original = make_truth()

    loaded = truth_store.create(original)

    assert loaded.content() == original.content()
    assert loaded.last_verified == clock.now()
    text = store.read_text(TRUTH_PATH)
    assert text.startswith("# PROJECT TRUTH: Ledgerly")
    assert "- ❌ casino gaming platform" in text
    assert "- **invoice**: A bill sent to a client" in text


def test_absent_secondary_user_renders_as_na(store: FileStore, clock: FrozenClock) -> None:
    truth_store = TruthStore(store, clock=clock)

    truth_store.create(make_truth(target_users=TargetUsers(primary="freelancer")))

    assert "- Secondary: N/A" in store.read_text(TRUTH_PATH)
    assert truth_store.truth.target_users.secondary == ""


def test_write_replaces_history_note(truth_store: TruthStore, store: FileStore) -> None:
    truth_store.write(make_truth(industry="legal services", version="2.0.0"), history_note="- v2 (2.0.0): pivot")

    text = store.read_text(TRUTH_PATH)
    assert "- v2 (2.0.0): pivot" in text
    assert truth_store.truth.industry == "legal services"
    assert truth_store.truth.version == "2.0.0"


def test_parser_tolerates_hand_edited_document() -> None:
    content = "\n".join(
        [
            "# PROJECT TRUTH: Clinic",
            "Version: 3.1",
            "",
            "## WHAT WE'RE BUILDING",
            "Appointment booking for clinics",
            "",
            "## INDUSTRY/DOMAIN",
            "healthcare",
            "",
            "## NOT THIS",
            "* ❌ shopping cart",
            "-",
            "",
            "## DOMAIN TERMS",
            "- **patient**: person receiving care",
            "- stray line without definition",
        ]
    )

    truth = parse_truth(content)

    assert truth.project_name == "Clinic"
    assert truth.version == "3.1"
    assert truth.industry == "healthcare"
    assert truth.not_this == ["shopping cart"]
    assert [t.term for t in truth.domain_terms] == ["patient"]
    assert truth.competitors == []


def test_multi_line_sections_survive_round_trip(store: FileStore, clock: FrozenClock) -> None:
    truth_store = TruthStore(store, clock=clock)
    original = make_truth(
        what_were_building="Bookkeeping for freelancers.\nInvoices and expenses in one place.",
        industry="bookkeeping\nsmall business finance",
    )

    loaded = truth_store.create(original)

    assert loaded.what_were_building == original.what_were_building
    assert loaded.industry == original.industry


def test_dashes_and_colons_in_names_survive_round_trip(store: FileStore, clock: FrozenClock) -> None:
    truth_store = TruthStore(store, clock=clock)
    original = make_truth(
        competitors=[
            Competitor(name="Fresh - Books", description="Invoicing - for agencies"),
            Competitor(name="Wave"),
        ],
        domain_terms=[DomainTerm(term="1099: NEC", definition="Contractor income form")],
    )

    loaded = truth_store.create(original)

    assert loaded.competitors == original.competitors
    assert loaded.domain_terms == original.domain_terms
    assert loaded.content() == original.content()


def test_unbolded_competitor_lines_still_parse() -> None:
    truth = parse_truth("# PROJECT TRUTH: X\n\n## COMPETITORS\n- Xero - Cloud accounting\n- Sage\n")

    assert truth.competitors == [
        Competitor(name="Xero", description="Cloud accounting"),
        Competitor(name="Sage", description=""),
    ]
