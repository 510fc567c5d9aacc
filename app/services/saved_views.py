from __future__ import annotations

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ticket_view import TicketView
from app.services.ticket_filters import (
    Actor,
    FilterState,
    ensure_actor,
    filter_state_to_payload,
    parse_filter_state,
)

logger = structlog.get_logger(__name__)

MAX_VIEW_NAME_CHARS = 100


def _readable_by(actor: Actor):
    return or_(TicketView.user_id == actor.id, TicketView.is_shared.is_(True))


async def list_views(session: AsyncSession, actor: Actor) -> list[TicketView]:
    actor = ensure_actor(actor)
    result = await session.execute(
        select(TicketView)
        .where(_readable_by(actor))
        .order_by(TicketView.created_at.desc(), TicketView.id.asc())
    )
    return list(result.scalars().all())


async def get_view(session: AsyncSession, actor: Actor, view_id: str) -> TicketView | None:
    actor = ensure_actor(actor)
    result = await session.execute(
        select(TicketView).where(TicketView.id == view_id).where(_readable_by(actor))
    )
    return result.scalars().first()


async def create_view(
    session: AsyncSession,
    actor: Actor,
    *,
    name: str,
    filters: FilterState,
    is_shared: bool = False,
) -> TicketView:
    actor = ensure_actor(actor)
    view = TicketView(
        name=name.strip()[:MAX_VIEW_NAME_CHARS],
        filters=filter_state_to_payload(filters),
        is_shared=is_shared,
        user_id=actor.id,
    )
    session.add(view)
    await session.commit()
    await session.refresh(view)
    logger.info("ticket_view_saved", view_id=view.id, actor_id=actor.id, shared=is_shared)
    return view


async def delete_view(session: AsyncSession, actor: Actor, view_id: str) -> TicketView | None:
    actor = ensure_actor(actor)
    result = await session.execute(
        select(TicketView).where(TicketView.id == view_id).where(TicketView.user_id == actor.id)
    )
    view = result.scalars().first()
    if view is None:
        return None
    await session.delete(view)
    await session.commit()
    logger.info("ticket_view_deleted", view_id=view_id, actor_id=actor.id)
    return view


def view_filters(view: TicketView) -> FilterState:
    return parse_filter_state(view.filters)
