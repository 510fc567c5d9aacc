from __future__ import annotations

from dataclasses import dataclass

from app.services.ticket_filters import (
    DEFAULT_SORT,
    Actor,
    FilterState,
    OneOf,
    SortSpec,
    TicketPriority,
    TicketStatus,
    ensure_actor,
)
from app.services.ticket_query import count_tickets
from app.services.ticket_store import TicketStore


@dataclass(frozen=True)
class QuickFilter:
    key: str
    label: str
    filters: FilterState
    sort: SortSpec = DEFAULT_SORT


def quick_filters_for(actor: Actor) -> list[QuickFilter]:
    actor = ensure_actor(actor)
    return [
        QuickFilter(
            key="recently_updated",
            label="Recently Updated",
            filters=FilterState(),
            sort=SortSpec(column="updated_at", direction="desc"),
        ),
        QuickFilter(
            key="assigned_to_me",
            label="Assigned to Me",
            filters=FilterState(assigned_to=actor.id),
        ),
        QuickFilter(
            key="high_priority",
            label="High Priority",
            filters=FilterState(
                priority=OneOf(frozenset({TicketPriority.HIGH.value, TicketPriority.URGENT.value}))
            ),
        ),
        QuickFilter(
            key="my_open_tickets",
            label="My Open Tickets",
            filters=FilterState(
                status=OneOf(
                    frozenset({TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value})
                ),
                assigned_to=actor.id,
            ),
        ),
    ]


async def quick_filter_counts(
    store: TicketStore, actor: Actor
) -> list[tuple[QuickFilter, int]]:
    counts = []
    for quick_filter in quick_filters_for(actor):
        counts.append((quick_filter, await count_tickets(store, actor, quick_filter.filters)))
    return counts
