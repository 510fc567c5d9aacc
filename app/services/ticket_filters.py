from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.services.ticket_errors import InvalidFilter, Unauthorized


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Role(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    ADMIN = "admin"


class TagSearchMode(str, Enum):
    AND = "and"
    OR = "or"


class SearchMode(str, Enum):
    SIMPLE = "simple"
    ADVANCED = "advanced"


STATUS_VALUES: tuple[str, ...] = tuple(item.value for item in TicketStatus)
PRIORITY_VALUES: tuple[str, ...] = tuple(item.value for item in TicketPriority)
STAFF_ROLES = frozenset({Role.AGENT, Role.ADMIN})

SORT_COLUMNS = frozenset({"title", "status", "priority", "created_at", "updated_at", "id"})
SORT_DIRECTIONS = frozenset({"asc", "desc"})


@dataclass(frozen=True)
class All:
    def allows(self, value: str) -> bool:
        return True

    def to_payload(self) -> str:
        return "all"


@dataclass(frozen=True)
class OneOf:
    values: frozenset[str]

    def __post_init__(self) -> None:
        if not self.values:
            raise InvalidFilter("OneOf requires at least one value; use All for no constraint")

    def allows(self, value: str) -> bool:
        return value in self.values

    def to_payload(self) -> list[str]:
        return sorted(self.values)


ALL = All()
Selection = All | OneOf


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def build_actor(user_id: str | None, role: Any) -> Actor:
    if not user_id:
        raise Unauthorized("Missing actor identity")
    try:
        parsed_role = Role(role)
    except ValueError as exc:
        raise Unauthorized(f"Unknown role: {role!r}") from exc
    return Actor(id=str(user_id), role=parsed_role)


def ensure_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise Unauthorized("Missing actor")
    if not actor.id:
        raise Unauthorized("Missing actor identity")
    try:
        role = Role(actor.role)
    except ValueError as exc:
        raise Unauthorized(f"Unknown role: {actor.role!r}") from exc
    if role is not actor.role:
        return Actor(id=actor.id, role=role)
    return actor


@dataclass(frozen=True)
class FilterState:
    status: Selection = ALL
    priority: Selection = ALL
    assigned_to: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    search: str = ""
    tag_search_mode: TagSearchMode = TagSearchMode.OR
    search_mode: SearchMode = SearchMode.SIMPLE


@dataclass(frozen=True)
class SortSpec:
    column: str = "created_at"
    direction: str = "desc"

    def __post_init__(self) -> None:
        if self.column not in SORT_COLUMNS:
            raise InvalidFilter(f"Unsupported sort column: {self.column!r}")
        if self.direction not in SORT_DIRECTIONS:
            raise InvalidFilter(f"Unsupported sort direction: {self.direction!r}")

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


@dataclass(frozen=True)
class PageSpec:
    index: int = 1
    size: int = 10

    def __post_init__(self) -> None:
        if self.index < 1:
            raise InvalidFilter("Page index starts at 1")
        if self.size < 0:
            raise InvalidFilter("Page size cannot be negative")

    @property
    def offset(self) -> int:
        return (self.index - 1) * self.size


DEFAULT_SORT = SortSpec()


def parse_sort(column: str | None, direction: str | None) -> SortSpec:
    return SortSpec(
        column=(column or "created_at").strip(),
        direction=(direction or "desc").strip().lower(),
    )


def _parse_selection(raw: Any, allowed: tuple[str, ...], name: str) -> Selection:
    if raw is None or raw == "all":
        return ALL
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise InvalidFilter(f"{name} must be 'all' or a list of values")
    if not raw:
        raise InvalidFilter(f"{name} must be 'all' or a non-empty list")
    values = set()
    for item in raw:
        if item not in allowed:
            raise InvalidFilter(f"Unknown {name} value: {item!r}")
        values.add(str(item))
    return OneOf(frozenset(values))


def _parse_tags(raw: Any) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise InvalidFilter("tags must be a list of strings")
    tags = set()
    for item in raw:
        if not isinstance(item, str):
            raise InvalidFilter("tags must be a list of strings")
        cleaned = item.strip()
        if cleaned:
            tags.add(cleaned)
    return frozenset(tags)


def _parse_enum(enum_cls: type[Enum], raw: Any, default: Enum, name: str) -> Any:
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError as exc:
        raise InvalidFilter(f"Unknown {name}: {raw!r}") from exc


def parse_filter_state(payload: dict[str, Any] | None) -> FilterState:
    if payload is None:
        return FilterState()
    if not isinstance(payload, dict):
        raise InvalidFilter("Filter must be a JSON object")

    assigned_to = payload.get("assignedTo", payload.get("assigned_to"))
    if assigned_to is not None and not isinstance(assigned_to, str):
        raise InvalidFilter("assignedTo must be a string or null")

    search = payload.get("search") or ""
    if not isinstance(search, str):
        raise InvalidFilter("search must be a string")

    return FilterState(
        status=_parse_selection(payload.get("status"), STATUS_VALUES, "status"),
        priority=_parse_selection(payload.get("priority"), PRIORITY_VALUES, "priority"),
        assigned_to=assigned_to or None,
        tags=_parse_tags(payload.get("tags")),
        search=search,
        tag_search_mode=_parse_enum(
            TagSearchMode,
            payload.get("tagSearchMode", payload.get("tag_search_mode")),
            TagSearchMode.OR,
            "tagSearchMode",
        ),
        search_mode=_parse_enum(
            SearchMode,
            payload.get("searchMode", payload.get("search_mode")),
            SearchMode.SIMPLE,
            "searchMode",
        ),
    )


def filter_state_to_payload(state: FilterState) -> dict[str, Any]:
    return {
        "status": state.status.to_payload(),
        "priority": state.priority.to_payload(),
        "assignedTo": state.assigned_to,
        "tags": sorted(state.tags),
        "search": state.search,
        "tagSearchMode": state.tag_search_mode.value,
        "searchMode": state.search_mode.value,
    }
