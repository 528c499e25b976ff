"""Markdown rendering and parsing for the project truth document."""

from __future__ import annotations

import re
from datetime import datetime

from models.truth import Competitor, DomainTerm, ProjectTruth, TargetUsers

NOT_THIS_MARKER = "❌"
SECTION_BUILDING = "WHAT WE'RE BUILDING"
SECTION_INDUSTRY = "INDUSTRY/DOMAIN"
SECTION_USERS = "TARGET USERS"
SECTION_NOT_THIS = "NOT THIS"
SECTION_COMPETITORS = "COMPETITORS"
SECTION_TERMS = "DOMAIN TERMS"
# Names are bolded so that " - " or ":" inside a name survives a round trip.
BOLD_COMPETITOR = re.compile(r"^\*\*(.+?)\*\*(?:\s+-\s+(.*))?$")
BOLD_TERM = re.compile(r"^\*\*(.+?)\*\*:\s*(.*)$")
FOOTER = (
    "*This document is the single source of truth for project context. "
    "All features, stories, and tasks must align with this document.*"
)


def _content_lines(body: str) -> list[str]:
    return [line.strip() for line in body.splitlines() if line.strip() and not line.startswith("#")]


def _bullets(body: str) -> list[str]:
    return [re.sub(r"^[-*]\s*", "", line) for line in _content_lines(body) if line[:1] in "-*"]


def _split_sections(content: str) -> dict[str, str]:
    sections: dict[str, str] = {}
    for chunk in re.split(r"^##\s+", content, flags=re.MULTILINE)[1:]:
        header, _, body = chunk.partition("\n")
        sections[header.strip().upper()] = body
    return sections


def _parse_timestamp(raw: str) -> datetime | None:
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def _competitor_line(competitor: Competitor) -> str:
    if competitor.description:
        return f"- **{competitor.name}** - {competitor.description}"
    return f"- **{competitor.name}**"


def parse_truth(content: str) -> ProjectTruth:
    """Parse a truth document by its fixed section headers."""
    truth = ProjectTruth()
    title = re.search(r"^#\s+PROJECT TRUTH:\s*(.+)$", content, flags=re.MULTILINE)
    if title:
        truth.project_name = title.group(1).strip()
    verified = re.search(r"^Last Verified:\s*(.+)$", content, flags=re.MULTILINE)
    if verified:
        truth.last_verified = _parse_timestamp(verified.group(1))
    version = re.search(r"^Version:\s*(.+)$", content, flags=re.MULTILINE)
    if version:
        truth.version = version.group(1).strip()

    sections = _split_sections(content)
    if SECTION_BUILDING in sections:
        truth.what_were_building = "\n".join(_content_lines(sections[SECTION_BUILDING]))
    if SECTION_INDUSTRY in sections:
        truth.industry = "\n".join(_content_lines(sections[SECTION_INDUSTRY]))
    if SECTION_USERS in sections:
        users = TargetUsers()
        for line in _content_lines(sections[SECTION_USERS]):
            if "Primary:" in line:
                users.primary = line.split("Primary:", 1)[1].strip()
            elif "Secondary:" in line:
                secondary = line.split("Secondary:", 1)[1].strip()
                users.secondary = "" if secondary == "N/A" else secondary
        truth.target_users = users
    if SECTION_NOT_THIS in sections:
        truth.not_this = [
            bullet.replace(NOT_THIS_MARKER, "").strip()
            for bullet in _bullets(sections[SECTION_NOT_THIS])
            if bullet.replace(NOT_THIS_MARKER, "").strip()
        ]
    if SECTION_COMPETITORS in sections:
        competitors = []
        for bullet in _bullets(sections[SECTION_COMPETITORS]):
            marked = BOLD_COMPETITOR.match(bullet)
            if marked:
                name, description = marked.group(1), marked.group(2) or ""
            else:
                name, _, description = bullet.partition(" - ")
            competitors.append(Competitor(name=name.strip(), description=description.strip()))
        truth.competitors = competitors
    if SECTION_TERMS in sections:
        terms = []
        for bullet in _bullets(sections[SECTION_TERMS]):
            marked = BOLD_TERM.match(bullet)
            if marked:
                term, definition = marked.group(1), marked.group(2)
            else:
                term, sep, definition = bullet.partition(":")
                if not sep:
                    continue
            terms.append(DomainTerm(term=term.replace("**", "").strip(), definition=definition.strip()))
        truth.domain_terms = terms
    return truth


def render_truth(truth: ProjectTruth, generated_at: datetime, history_note: str = "") -> str:
    """Render the document in fixed field order."""
    stamp = generated_at.isoformat()
    verified = (truth.last_verified or generated_at).isoformat()
    lines = [
        f"# PROJECT TRUTH: {truth.project_name}",
        f"Generated: {stamp}",
        f"Last Verified: {verified}",
        f"Version: {truth.version}",
        "",
        f"## {SECTION_BUILDING}",
        truth.what_were_building,
        "",
        f"## {SECTION_INDUSTRY}",
        truth.industry,
        "",
        f"## {SECTION_USERS}",
        f"- Primary: {truth.target_users.primary}",
        f"- Secondary: {truth.target_users.secondary or 'N/A'}",
        "",
        f"## {SECTION_NOT_THIS}",
        "This project is NOT:",
        *[f"- {NOT_THIS_MARKER} {item}" for item in truth.not_this],
        "",
        f"## {SECTION_COMPETITORS}",
        *[_competitor_line(c) for c in truth.competitors],
        "",
        f"## {SECTION_TERMS}",
        *[f"- **{t.term}**: {t.definition}" for t in truth.domain_terms],
        "",
        "## VERSION HISTORY",
        history_note or f"- v{truth.version} ({stamp}): Initial creation",
        "",
        "---",
        FOOTER,
        "",
    ]
    return "\n".join(lines)
