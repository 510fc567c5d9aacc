from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.crm.utils import list_response, parse_page
from app.api.deps import get_current_actor, get_request_ip, get_ticket_store
from app.core.config import settings
from app.core.database import get_session
from app.schemas.crm.ticket import TicketOut
from app.schemas.crm.view import SavedViewCreate, SavedViewOut
from app.services.audit import record_audit
from app.services.saved_views import create_view, delete_view, get_view, list_views, view_filters
from app.services.ticket_filters import Actor, parse_filter_state, parse_sort
from app.services.ticket_query import resolve_tickets
from app.services.ticket_store import TicketStore

router = APIRouter(prefix="/views", tags=["views"])


@router.get("", response_model=list[SavedViewOut])
async def list_views_route(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> list[SavedViewOut]:
    views = await list_views(session, actor)
    return [SavedViewOut.model_validate(view) for view in views]


@router.post("", response_model=SavedViewOut)
async def create_view_route(
    payload: SavedViewCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> SavedViewOut:
    view = await create_view(
        session,
        actor,
        name=payload.name,
        filters=parse_filter_state(payload.filters),
        is_shared=payload.is_shared,
    )
    created = SavedViewOut.model_validate(view)

    await record_audit(
        session,
        actor_id=actor.id,
        entity="ticket_views",
        entity_id=view.id,
        action="create",
        before=None,
        after=created,
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return created


@router.delete("/{view_id}", response_model=dict)
async def delete_view_route(
    view_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> dict[str, Any]:
    view = await delete_view(session, actor, view_id)
    if not view:
        raise HTTPException(status_code=404, detail="View not found")

    await record_audit(
        session,
        actor_id=actor.id,
        entity="ticket_views",
        entity_id=view_id,
        action="delete",
        before=SavedViewOut.model_validate(view),
        after=None,
        ip=await get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return {"status": "deleted"}


@router.get("/{view_id}/tickets", response_model=dict)
async def list_view_tickets(
    view_id: str,
    page: int = 1,
    per_page: int = settings.DEFAULT_PAGE_SIZE,
    sort: str = "created_at",
    order: str = "desc",
    session: AsyncSession = Depends(get_session),
    store: TicketStore = Depends(get_ticket_store),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    view = await get_view(session, actor, view_id)
    if not view:
        raise HTTPException(status_code=404, detail="View not found")

    result = await resolve_tickets(
        store,
        actor,
        view_filters(view),
        sort=parse_sort(sort, order),
        page=parse_page(page, per_page),
    )
    items = [TicketOut.model_validate(item) for item in result.items]
    return list_response(items, result.total, page=page, pages=result.page_count)
