from __future__ import annotations

import re

from app.core.config import settings
from app.services.ticket_errors import InvalidFilter
from app.services.ticket_filters import FilterState, SearchMode

OR_SPLIT_RE = re.compile(r"\s+OR\s+")
QUOTE_RE = re.compile(r"['\"]")
LIKE_ESCAPE = "\\"

SearchGroups = tuple[tuple[str, ...], ...]


def split_terms(text: str) -> tuple[str, ...]:
    return tuple(text.split())


def parse_advanced_query(query: str) -> SearchGroups:
    groups: list[tuple[str, ...]] = []
    for part in OR_SPLIT_RE.split(query.strip()):
        terms = []
        for token in part.split():
            if token == "AND":
                continue
            cleaned = QUOTE_RE.sub("", token)
            if cleaned:
                terms.append(cleaned)
        if terms:
            groups.append(tuple(terms))
    return tuple(groups)


def parse_search(search: str, mode: SearchMode = SearchMode.SIMPLE) -> SearchGroups:
    """Turn free text into OR-groups of AND-terms.

    Simple mode yields at most one group: every whitespace separated term must
    match. Advanced mode additionally splits on the ``OR`` keyword.
    """
    if not search or not search.strip():
        return ()
    if mode is SearchMode.ADVANCED:
        return parse_advanced_query(search)
    return (split_terms(search),)


def term_matches(term: str, title: str | None, description: str | None) -> bool:
    needle = term.lower()
    return needle in (title or "").lower() or needle in (description or "").lower()


def groups_match(groups: SearchGroups, title: str | None, description: str | None) -> bool:
    if not groups:
        return True
    return any(
        all(term_matches(term, title, description) for term in group)
        for group in groups
    )


def like_pattern(term: str) -> str:
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def check_filter_limits(filters: FilterState) -> None:
    """Size caps for filters arriving from clients."""
    if len(filters.tags) > settings.MAX_FILTER_TAGS:
        raise InvalidFilter(f"At most {settings.MAX_FILTER_TAGS} tags can be filtered at once")
    groups = parse_search(filters.search, filters.search_mode)
    if sum(len(group) for group in groups) > settings.MAX_SEARCH_TERMS:
        raise InvalidFilter(f"Search is limited to {settings.MAX_SEARCH_TERMS} terms")
