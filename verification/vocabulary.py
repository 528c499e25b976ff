"""Keyword tables and text helpers used by the heuristic scorers."""

from __future__ import annotations

import re
from functools import lru_cache

# Terms that signal an item belongs to a different industry.
DOMAIN_MISMATCHES: dict[str, tuple[str, ...]] = {
    "casino affiliate": ("invoice", "tax", "bookkeeping", "accounting", "expense tracking"),
    "bookkeeping": ("casino", "gambling", "betting", "odds", "affiliate commission"),
    "e-commerce": ("patient", "medical", "diagnosis", "treatment", "healthcare"),
    "healthcare": ("product catalog", "shopping cart", "checkout", "inventory"),
}

# Terms that signal an item fits the industry.
DOMAIN_INDICATORS: dict[str, tuple[str, ...]] = {
    "casino affiliate": ("commission", "referral", "casino partner", "offer wall", "conversion tracking"),
    "bookkeeping": ("invoice", "expense", "tax", "receipt", "financial report"),
    "e-commerce": ("product", "cart", "checkout", "inventory", "shipping"),
    "healthcare": ("patient", "appointment", "medical record", "prescription", "diagnosis"),
}

USER_BENEFITS: dict[str, tuple[str, ...]] = {
    "casino affiliate": ("track commission", "monitor conversion", "partner dashboard"),
    "small business": ("manage expense", "track income", "generate invoice"),
    "developer": ("api access", "webhook", "integration"),
    "marketer": ("campaign", "analytics", "conversion"),
}

COMMON_FEATURES: tuple[str, ...] = (
    "authentication",
    "login",
    "user management",
    "dashboard",
    "reporting",
    "api",
    "notifications",
    "settings",
)

USER_FOCUS: dict[str, tuple[str, ...]] = {
    "business": ("company", "enterprise", "organization", "corporate"),
    "consumer": ("user", "customer", "individual", "personal"),
    "developer": ("api", "integration", "webhook", "sdk"),
    "admin": ("admin", "management", "configuration", "settings"),
}

CREEP_PHRASES: tuple[str, ...] = (
    "also include",
    "additionally",
    "expand to",
    "add support for",
    "integrate with",
    "extend to cover",
)

STOPWORDS = frozenset(
    {
        "this", "that", "with", "from", "into", "their", "there", "them", "they",
        "have", "will", "should", "would", "could", "about", "which", "when",
        "what", "where", "your", "ours", "other", "only", "also", "just", "like",
        "more", "most", "some", "such", "than", "then", "very", "tool", "tools",
        "feature", "features", "system", "platform", "project", "users", "user",
    }
)


@lru_cache(maxsize=2048)
def _term_regex(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w-]){re.escape(term.lower())}(?![\w-])")


def contains_term(text: str, term: str) -> bool:
    """Whole-word (or whole-phrase) match of ``term`` in lower-cased ``text``."""
    term = term.strip().lower()
    return bool(term) and _term_regex(term).search(text) is not None


def matching_terms(text: str, terms: tuple[str, ...] | list[str]) -> list[str]:
    return [term for term in terms if contains_term(text, term)]


def significant_words(phrase: str) -> list[str]:
    """Words of four or more letters that are not stopwords."""
    words = re.findall(r"[a-z][a-z'-]+", phrase.lower())
    return [w for w in words if len(w) >= 4 and w not in STOPWORDS]


def lookup(table: dict[str, tuple[str, ...]], key: str) -> tuple[str, ...]:
    """Find table entries whose key appears in ``key`` (case-insensitive)."""
    key_l = key.lower().strip()
    if not key_l:
        return ()
    if key_l in table:
        return table[key_l]
    merged: list[str] = []
    for name, terms in table.items():
        if name in key_l:
            merged.extend(terms)
    return tuple(merged)


def not_this_hits(text: str, not_this: list[str]) -> list[str]:
    """NOT THIS entries matched by full phrase or by any significant word."""
    hits = []
    for entry in not_this:
        if contains_term(text, entry) or any(contains_term(text, w) for w in significant_words(entry)):
            hits.append(entry)
    return hits
