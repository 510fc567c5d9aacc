from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ticket import Ticket, TicketTag
from app.models.user_profile import UserProfile
from app.services.ticket_filters import STAFF_ROLES, Actor, TicketStatus, ensure_actor
from app.services.ticket_store import visibility_condition
from app.utils.time import utc_now

logger = structlog.get_logger(__name__)

MAX_TAG_CHARS = 100
UPDATABLE_FIELDS = frozenset({"title", "description", "status", "priority", "assigned_to"})


def parse_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    tags: list[str] = []
    for item in items:
        cleaned = str(item).strip()[:MAX_TAG_CHARS]
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


def _visible(query, actor: Actor):
    condition = visibility_condition(actor)
    if condition is not None:
        query = query.where(condition)
    return query


async def get_visible_ticket(
    session: AsyncSession, actor: Actor, ticket_id: str
) -> Ticket | None:
    actor = ensure_actor(actor)
    result = await session.execute(_visible(select(Ticket).where(Ticket.id == ticket_id), actor))
    return result.scalars().first()


async def is_assignable(session: AsyncSession, user_id: str) -> bool:
    profile = await session.get(UserProfile, user_id)
    return profile is not None and profile.role in {role.value for role in STAFF_ROLES}


async def create_ticket(
    session: AsyncSession,
    actor: Actor,
    *,
    title: str,
    description: str | None,
    priority: str,
    tags: Iterable[str] = (),
) -> tuple[Ticket, list[str]]:
    actor = ensure_actor(actor)
    ticket = Ticket(
        title=title.strip(),
        description=description,
        priority=priority,
        status=TicketStatus.OPEN.value,
        created_by=actor.id,
    )
    session.add(ticket)
    await session.flush()

    tag_list = parse_tags(list(tags))
    for tag in tag_list:
        session.add(TicketTag(ticket_id=ticket.id, tag=tag))
    await session.commit()
    await session.refresh(ticket)
    logger.info("ticket_created", ticket_id=ticket.id, actor_id=actor.id, tags=len(tag_list))
    return ticket, tag_list


async def update_ticket(
    session: AsyncSession,
    actor: Actor,
    ticket_id: str,
    changes: dict[str, Any],
) -> Ticket | None:
    ticket = await get_visible_ticket(session, actor, ticket_id)
    if ticket is None:
        return None
    for key, value in changes.items():
        if key in UPDATABLE_FIELDS:
            setattr(ticket, key, value)
    ticket.updated_at = utc_now()
    await session.commit()
    await session.refresh(ticket)
    logger.info("ticket_updated", ticket_id=ticket.id, actor_id=actor.id, fields=sorted(changes))
    return ticket


async def bulk_update_tickets(
    session: AsyncSession,
    actor: Actor,
    ticket_ids: Iterable[str],
    changes: dict[str, Any],
) -> list[str]:
    actor = ensure_actor(actor)
    id_list = sorted(set(ticket_ids))
    values = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
    if not id_list or not values:
        return []
    query = _visible(
        update(Ticket).where(Ticket.id.in_(id_list)),
        actor,
    ).values(**values, updated_at=utc_now()).returning(Ticket.id)
    result = await session.execute(query.execution_options(synchronize_session=False))
    updated = sorted(result.scalars().all())
    await session.commit()
    logger.info(
        "tickets_bulk_updated",
        actor_id=actor.id,
        requested=len(id_list),
        updated=len(updated),
        fields=sorted(values),
    )
    return updated
