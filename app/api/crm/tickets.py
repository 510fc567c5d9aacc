from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.crm.utils import list_response, parse_filter, parse_page
from app.api.deps import get_current_actor, get_request_ip, get_ticket_store, require_role
from app.core.config import settings
from app.core.database import get_session
from app.models.ticket import Ticket
from app.schemas.crm.ticket import (
    QuickFilterOut,
    SortOut,
    TicketBulkResult,
    TicketBulkUpdate,
    TicketCreate,
    TicketOut,
    TicketUpdate,
)
from app.services.audit import record_audit
from app.services.quick_filters import quick_filter_counts
from app.services.ticket_filters import Actor, filter_state_to_payload, parse_sort
from app.services.ticket_query import fetch_ticket, resolve_tickets
from app.services.ticket_store import SqlTicketStore, TicketRecord, TicketStore
from app.services.tickets import (
    bulk_update_tickets,
    create_ticket,
    is_assignable,
    update_ticket,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _ticket_out(ticket: Ticket, tags: Iterable[str]) -> TicketOut:
    record = replace(TicketRecord.from_model(ticket), tags=tuple(sorted(tags)))
    return TicketOut.model_validate(record)


@router.get("", response_model=dict)
async def list_tickets(
    page: int = 1,
    per_page: int = settings.DEFAULT_PAGE_SIZE,
    sort: str = "created_at",
    order: str = "desc",
    filter: str | None = None,
    store: TicketStore = Depends(get_ticket_store),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    filters = parse_filter(filter)
    result = await resolve_tickets(
        store,
        actor,
        filters,
        sort=parse_sort(sort, order),
        page=parse_page(page, per_page),
    )
    items = [TicketOut.model_validate(item) for item in result.items]
    return list_response(items, result.total, page=page, pages=result.page_count)


@router.get("/quick-filters", response_model=list[QuickFilterOut])
async def list_quick_filters(
    store: TicketStore = Depends(get_ticket_store),
    actor: Actor = Depends(get_current_actor),
) -> list[QuickFilterOut]:
    counts = await quick_filter_counts(store, actor)
    return [
        QuickFilterOut(
            key=quick_filter.key,
            label=quick_filter.label,
            count=count,
            sort=SortOut(
                column=quick_filter.sort.column, direction=quick_filter.sort.direction
            ),
            filters=filter_state_to_payload(quick_filter.filters),
        )
        for quick_filter, count in counts
    ]


@router.get("/{ticket_id}", response_model=TicketOut)
async def get_ticket(
    ticket_id: str,
    store: TicketStore = Depends(get_ticket_store),
    actor: Actor = Depends(get_current_actor),
) -> TicketOut:
    ticket = await fetch_ticket(store, actor, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return TicketOut.model_validate(ticket)


@router.post("", response_model=TicketOut)
async def create_ticket_route(
    payload: TicketCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> TicketOut:
    ticket, tags = await create_ticket(
        session,
        actor,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        tags=payload.tags,
    )
    created = _ticket_out(ticket, tags)

    await record_audit(
        session,
        actor_id=actor.id,
        entity="tickets",
        entity_id=ticket.id,
        action="create",
        before=None,
        after=created,
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return created


@router.patch("/{ticket_id}", response_model=TicketOut)
async def update_ticket_route(
    ticket_id: str,
    payload: TicketUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role("agent", "admin")),
) -> TicketOut:
    changes = payload.model_dump(exclude_unset=True)
    assignee = changes.get("assigned_to")
    if assignee is not None and not await is_assignable(session, assignee):
        raise HTTPException(status_code=400, detail="Assignee must be an agent or admin")

    store = SqlTicketStore(session)
    before = await fetch_ticket(store, actor, ticket_id)
    if not before:
        raise HTTPException(status_code=404, detail="Ticket not found")

    ticket = await update_ticket(session, actor, ticket_id, changes)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    updated = _ticket_out(ticket, before.tags)

    await record_audit(
        session,
        actor_id=actor.id,
        entity="tickets",
        entity_id=ticket.id,
        action="update",
        before=before,
        after=updated,
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return updated


@router.post("/bulk", response_model=TicketBulkResult)
async def bulk_update_route(
    payload: TicketBulkUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_role("agent", "admin")),
) -> TicketBulkResult:
    changes = payload.changes()
    assignee = changes.get("assigned_to")
    if assignee is not None and not await is_assignable(session, assignee):
        raise HTTPException(status_code=400, detail="Assignee must be an agent or admin")

    updated = await bulk_update_tickets(session, actor, payload.ticket_ids, changes)

    await record_audit(
        session,
        actor_id=actor.id,
        entity="tickets",
        entity_id=None,
        action="bulk_update",
        before={"ticket_ids": payload.ticket_ids},
        after={"ticket_ids": updated, **changes},
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return TicketBulkResult(updated=len(updated), ticket_ids=updated)
