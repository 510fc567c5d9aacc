from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import String, and_, any_, case, func, literal, or_, select
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.models.ticket import Ticket, TicketTag
from app.services.ticket_errors import StoreUnavailable
from app.services.ticket_filters import (
    PRIORITY_VALUES,
    STATUS_VALUES,
    Actor,
    PageSpec,
    Role,
    SortSpec,
)
from app.services.ticket_predicate import TicketPredicate
from app.services.ticket_search import LIKE_ESCAPE, SearchGroups, like_pattern

logger = structlog.get_logger(__name__)

STATUS_RANK = {value: index for index, value in enumerate(STATUS_VALUES)}
PRIORITY_RANK = {value: index for index, value in enumerate(PRIORITY_VALUES)}


@dataclass(frozen=True)
class TicketRecord:
    id: str
    title: str
    description: str | None
    status: str
    priority: str
    created_by: str
    assigned_to: str | None
    created_at: datetime
    updated_at: datetime
    tags: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, ticket: Ticket) -> TicketRecord:
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            created_by=ticket.created_by,
            assigned_to=ticket.assigned_to,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class TicketStore(Protocol):
    async def query_tickets(
        self,
        predicate: TicketPredicate,
        sort: SortSpec,
        page: PageSpec | None,
    ) -> tuple[list[TicketRecord], int]: ...

    async def count_tickets(self, predicate: TicketPredicate) -> int: ...

    async def query_tag_membership(self, tag: str) -> set[str]: ...

    async def query_any_tag_membership(self, tags: Iterable[str]) -> set[str]: ...

    async def list_ticket_tags(self, ticket_ids: Iterable[str]) -> dict[str, set[str]]: ...


def id_array(ticket_ids: Iterable[str]):
    # Binds as a single array parameter.
    return literal(sorted(ticket_ids), ARRAY(String))


def visibility_condition(actor: Actor) -> ColumnElement[bool] | None:
    if actor.role is Role.ADMIN:
        return None
    if actor.role is Role.AGENT:
        return or_(Ticket.created_by == actor.id, Ticket.assigned_to == actor.id)
    return Ticket.created_by == actor.id


def _term_condition(term: str) -> ColumnElement[bool]:
    pattern = like_pattern(term)
    return or_(
        Ticket.title.ilike(pattern, escape=LIKE_ESCAPE),
        Ticket.description.ilike(pattern, escape=LIKE_ESCAPE),
    )


def search_condition(groups: SearchGroups) -> ColumnElement[bool] | None:
    if not groups:
        return None
    clauses = [and_(*[_term_condition(term) for term in group]) for group in groups]
    if len(clauses) == 1:
        return clauses[0]
    return or_(*clauses)


def predicate_conditions(predicate: TicketPredicate) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    visibility = visibility_condition(predicate.actor)
    if visibility is not None:
        conditions.append(visibility)
    if predicate.ticket_ids is not None:
        conditions.append(Ticket.id == any_(id_array(predicate.ticket_ids)))
    if predicate.statuses is not None:
        conditions.append(Ticket.status.in_(sorted(predicate.statuses)))
    if predicate.priorities is not None:
        conditions.append(Ticket.priority.in_(sorted(predicate.priorities)))
    if predicate.assigned_to is not None:
        conditions.append(Ticket.assigned_to == predicate.assigned_to)
    search = search_condition(predicate.search_groups)
    if search is not None:
        conditions.append(search)
    return conditions


def _sort_expression(column: str):
    if column == "status":
        return case(STATUS_RANK, value=Ticket.status, else_=len(STATUS_RANK))
    if column == "priority":
        return case(PRIORITY_RANK, value=Ticket.priority, else_=len(PRIORITY_RANK))
    return getattr(Ticket, column)


def order_by_clauses(sort: SortSpec) -> list:
    expression = _sort_expression(sort.column)
    primary = expression.desc() if sort.descending else expression.asc()
    if sort.column == "id":
        return [primary]
    return [primary, Ticket.id.asc()]


def sort_records(records: Iterable[TicketRecord], sort: SortSpec) -> list[TicketRecord]:
    def _key(record: TicketRecord):
        value = getattr(record, sort.column)
        if sort.column == "status":
            return STATUS_RANK.get(value, len(STATUS_RANK))
        if sort.column == "priority":
            return PRIORITY_RANK.get(value, len(PRIORITY_RANK))
        return value

    # Stable sorts: the id pass fixes the order of ties in the second pass.
    ordered = sorted(records, key=lambda record: record.id)
    return sorted(ordered, key=_key, reverse=sort.descending)


class SqlTicketStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def _reading(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("ticket_store_read_failed", operation=operation, error=str(exc))
            raise StoreUnavailable(f"Ticket store read failed: {operation}") from exc

    async def query_tickets(
        self,
        predicate: TicketPredicate,
        sort: SortSpec,
        page: PageSpec | None,
    ) -> tuple[list[TicketRecord], int]:
        query = select(Ticket).where(*predicate_conditions(predicate))
        async with self._reading("query_tickets"):
            total = await self.session.scalar(
                select(func.count()).select_from(query.subquery())
            )
            query = query.order_by(*order_by_clauses(sort))
            if page is not None:
                query = query.offset(page.offset).limit(page.size)
            result = await self.session.execute(query)
            tickets = [TicketRecord.from_model(item) for item in result.scalars().all()]
        return tickets, total or 0

    async def count_tickets(self, predicate: TicketPredicate) -> int:
        query = select(func.count()).select_from(Ticket).where(*predicate_conditions(predicate))
        async with self._reading("count_tickets"):
            total = await self.session.scalar(query)
        return total or 0

    async def query_tag_membership(self, tag: str) -> set[str]:
        query = select(TicketTag.ticket_id).where(TicketTag.tag == tag)
        async with self._reading("query_tag_membership"):
            result = await self.session.execute(query)
            return set(result.scalars().all())

    async def query_any_tag_membership(self, tags: Iterable[str]) -> set[str]:
        tag_list = sorted(set(tags))
        if not tag_list:
            return set()
        query = select(TicketTag.ticket_id).where(TicketTag.tag.in_(tag_list)).distinct()
        async with self._reading("query_any_tag_membership"):
            result = await self.session.execute(query)
            return set(result.scalars().all())

    async def list_ticket_tags(self, ticket_ids: Iterable[str]) -> dict[str, set[str]]:
        id_list = sorted(set(ticket_ids))
        if not id_list:
            return {}
        query = select(TicketTag.ticket_id, TicketTag.tag).where(
            TicketTag.ticket_id == any_(id_array(id_list))
        )
        tags: dict[str, set[str]] = {}
        async with self._reading("list_ticket_tags"):
            result = await self.session.execute(query)
            for ticket_id, tag in result.all():
                tags.setdefault(ticket_id, set()).add(tag)
        return tags


class InMemoryTicketStore:
    """Ticket store over already fetched rows.

    Evaluates the same predicate in process, which is what client side
    re-filtering of a loaded listing needs.
    """

    def __init__(self, tickets: Iterable[TicketRecord]) -> None:
        self.tickets = {ticket.id: ticket for ticket in tickets}
        self.tags: dict[str, set[str]] = {
            ticket.id: set(ticket.tags) for ticket in self.tickets.values()
        }

    async def query_tickets(
        self,
        predicate: TicketPredicate,
        sort: SortSpec,
        page: PageSpec | None,
    ) -> tuple[list[TicketRecord], int]:
        matched = [ticket for ticket in self.tickets.values() if predicate.matches(ticket)]
        ordered = sort_records(matched, sort)
        if page is not None:
            ordered = ordered[page.offset : page.offset + page.size]
        return ordered, len(matched)

    async def count_tickets(self, predicate: TicketPredicate) -> int:
        return sum(1 for ticket in self.tickets.values() if predicate.matches(ticket))

    async def query_tag_membership(self, tag: str) -> set[str]:
        return {ticket_id for ticket_id, tags in self.tags.items() if tag in tags}

    async def query_any_tag_membership(self, tags: Iterable[str]) -> set[str]:
        wanted = set(tags)
        return {ticket_id for ticket_id, tags in self.tags.items() if tags & wanted}

    async def list_ticket_tags(self, ticket_ids: Iterable[str]) -> dict[str, set[str]]:
        return {
            ticket_id: set(self.tags[ticket_id])
            for ticket_id in ticket_ids
            if self.tags.get(ticket_id)
        }
