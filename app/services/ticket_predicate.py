from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import structlog

from app.services.ticket_filters import (
    Actor,
    FilterState,
    OneOf,
    Role,
    ensure_actor,
)
from app.services.ticket_search import SearchGroups, groups_match, parse_search

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TicketPredicate:
    """Conjunction of every constraint a ticket listing applies.

    ``None`` on a field means "no constraint". The visibility clause is not a
    field: it is always derived from ``actor``, so no filter input can drop it.
    ``ticket_ids`` carries the candidate set from tag resolution.
    """

    actor: Actor
    statuses: frozenset[str] | None = None
    priorities: frozenset[str] | None = None
    assigned_to: str | None = None
    ticket_ids: frozenset[str] | None = None
    search_groups: SearchGroups = ()

    def restrict_to(self, ticket_ids: frozenset[str]) -> TicketPredicate:
        if self.ticket_ids is not None:
            ticket_ids = self.ticket_ids & ticket_ids
        return replace(self, ticket_ids=frozenset(ticket_ids))

    def is_visible(self, ticket: Any) -> bool:
        if self.actor.role is Role.ADMIN:
            return True
        if self.actor.role is Role.AGENT:
            return ticket.created_by == self.actor.id or ticket.assigned_to == self.actor.id
        return ticket.created_by == self.actor.id

    def matches(self, ticket: Any) -> bool:
        if not self.is_visible(ticket):
            return False
        if self.ticket_ids is not None and ticket.id not in self.ticket_ids:
            return False
        if self.statuses is not None and ticket.status not in self.statuses:
            return False
        if self.priorities is not None and ticket.priority not in self.priorities:
            return False
        if self.assigned_to is not None and ticket.assigned_to != self.assigned_to:
            return False
        return groups_match(self.search_groups, ticket.title, ticket.description)


def visibility_predicate(actor: Actor | None) -> TicketPredicate:
    return TicketPredicate(actor=ensure_actor(actor))


def build_predicate(actor: Actor | None, filters: FilterState) -> TicketPredicate:
    """Every clause except tags, which need store lookups."""
    actor = ensure_actor(actor)

    assigned_to = filters.assigned_to
    if assigned_to is not None and actor.role is Role.CUSTOMER:
        logger.debug("assignee_filter_ignored", actor_id=actor.id, assigned_to=assigned_to)
        assigned_to = None

    return TicketPredicate(
        actor=actor,
        statuses=filters.status.values if isinstance(filters.status, OneOf) else None,
        priorities=filters.priority.values if isinstance(filters.priority, OneOf) else None,
        assigned_to=assigned_to,
        search_groups=parse_search(filters.search, filters.search_mode),
    )
