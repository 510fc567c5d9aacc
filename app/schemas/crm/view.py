from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.ticket_errors import InvalidFilter
from app.services.ticket_filters import filter_state_to_payload, parse_filter_state
from app.services.ticket_search import check_filter_limits


class SavedViewCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    filters: dict[str, Any]
    is_shared: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name must not be blank")
        return cleaned

    @field_validator("filters")
    @classmethod
    def normalize_filters(cls, value: dict[str, Any]) -> dict[str, Any]:
        try:
            filters = parse_filter_state(value)
            check_filter_limits(filters)
        except InvalidFilter as exc:
            raise ValueError(str(exc)) from exc
        return filter_state_to_payload(filters)


class SavedViewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    filters: dict[str, Any]
    is_shared: bool
    user_id: str
    created_at: datetime | None = None
