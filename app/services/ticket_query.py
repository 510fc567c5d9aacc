from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

import structlog

from app.services.ticket_filters import (
    DEFAULT_SORT,
    Actor,
    FilterState,
    PageSpec,
    SortSpec,
    TagSearchMode,
)
from app.services.ticket_predicate import TicketPredicate, build_predicate, visibility_predicate
from app.services.ticket_store import TicketRecord, TicketStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TicketPage:
    items: list[TicketRecord] = field(default_factory=list)
    total: int = 0
    page: PageSpec | None = None

    @property
    def page_count(self) -> int:
        if self.page is None:
            return 1 if self.total else 0
        if not self.page.size:
            return 0
        return math.ceil(self.total / self.page.size)


async def resolve_tag_candidates(
    store: TicketStore,
    tags: Iterable[str],
    mode: TagSearchMode,
) -> frozenset[str] | None:
    """Ticket ids allowed by the tag clause, or ``None`` when it is vacuous.

    ``and`` narrows one tag at a time and stops at the first empty set; an
    empty intersection can only stay empty.
    """
    tag_list = sorted(set(tags))
    if not tag_list:
        return None
    if mode is TagSearchMode.OR or len(tag_list) == 1:
        if len(tag_list) == 1:
            return frozenset(await store.query_tag_membership(tag_list[0]))
        return frozenset(await store.query_any_tag_membership(tag_list))

    candidates: set[str] | None = None
    for tag in tag_list:
        members = await store.query_tag_membership(tag)
        candidates = set(members) if candidates is None else candidates & members
        if not candidates:
            logger.info("tag_intersection_empty", tag=tag, tags=tag_list)
            return frozenset()
    return frozenset(candidates or ())


async def _resolve_predicate(
    store: TicketStore,
    actor: Actor | None,
    filters: FilterState,
) -> TicketPredicate | None:
    predicate = build_predicate(actor, filters)
    candidates = await resolve_tag_candidates(store, filters.tags, filters.tag_search_mode)
    if candidates is None:
        return predicate
    if not candidates:
        return None
    return predicate.restrict_to(candidates)


async def attach_tags(store: TicketStore, tickets: list[TicketRecord]) -> list[TicketRecord]:
    if not tickets:
        return []
    tags = await store.list_ticket_tags([ticket.id for ticket in tickets])
    return [
        replace(ticket, tags=tuple(sorted(tags.get(ticket.id, ())))) for ticket in tickets
    ]


async def resolve_tickets(
    store: TicketStore,
    actor: Actor | None,
    filters: FilterState,
    sort: SortSpec = DEFAULT_SORT,
    page: PageSpec | None = None,
) -> TicketPage:
    predicate = await _resolve_predicate(store, actor, filters)
    if predicate is None:
        logger.info("ticket_query_short_circuit", actor_id=actor.id, reason="no_tag_match")
        return TicketPage(items=[], total=0, page=page)

    if page is not None and page.size == 0:
        return TicketPage(items=[], total=await store.count_tickets(predicate), page=page)

    tickets, total = await store.query_tickets(predicate, sort, page)
    items = await attach_tags(store, tickets)
    logger.info(
        "ticket_query_resolved",
        actor_id=predicate.actor.id,
        role=predicate.actor.role.value,
        total=total,
        returned=len(items),
        sort=f"{sort.column}:{sort.direction}",
        page=page.index if page else None,
    )
    return TicketPage(items=items, total=total, page=page)


async def count_tickets(
    store: TicketStore,
    actor: Actor | None,
    filters: FilterState,
) -> int:
    predicate = await _resolve_predicate(store, actor, filters)
    if predicate is None:
        return 0
    return await store.count_tickets(predicate)


async def fetch_ticket(
    store: TicketStore,
    actor: Actor | None,
    ticket_id: str,
) -> TicketRecord | None:
    predicate = visibility_predicate(actor).restrict_to(frozenset({ticket_id}))
    tickets, _ = await store.query_tickets(predicate, DEFAULT_SORT, None)
    if not tickets:
        return None
    return (await attach_tags(store, tickets[:1]))[0]
