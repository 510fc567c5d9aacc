from __future__ import annotations

import json
from typing import Any

from app.core.config import settings
from app.services.ticket_errors import InvalidFilter
from app.services.ticket_filters import FilterState, PageSpec, parse_filter_state
from app.services.ticket_search import check_filter_limits


def parse_filter(filter_param: str | None) -> FilterState:
    if not filter_param:
        return FilterState()
    try:
        parsed = json.loads(filter_param)
    except json.JSONDecodeError as exc:
        raise InvalidFilter("Invalid filter") from exc
    filters = parse_filter_state(parsed)
    check_filter_limits(filters)
    return filters


def parse_page(page: int, per_page: int) -> PageSpec:
    if per_page < 1 or per_page > settings.MAX_PAGE_SIZE:
        raise InvalidFilter(f"per_page must be between 1 and {settings.MAX_PAGE_SIZE}")
    return PageSpec(index=page, size=per_page)


def list_response(items: list[Any], total: int, **extra: Any) -> dict[str, Any]:
    return {"data": items, "total": total, **extra}
