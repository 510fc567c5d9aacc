from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.tickets import parse_tags

Status = Literal["open", "in_progress", "resolved", "closed"]
Priority = Literal["low", "medium", "high", "urgent"]


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None = None
    status: str
    priority: str
    created_by: str
    assigned_to: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    priority: Priority = "medium"
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("title must not be blank")
        return cleaned

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value: Any) -> list[str]:
        return parse_tags(value)


class TicketUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: Status | None = None
    priority: Priority | None = None
    assigned_to: str | None = None

    @field_validator("title", "status", "priority")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class TicketBulkUpdate(BaseModel):
    ticket_ids: list[str] = Field(min_length=1, max_length=500)
    status: Status | None = None
    priority: Priority | None = None
    assigned_to: str | None = None

    @field_validator("status", "priority")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @model_validator(mode="after")
    def require_change(self) -> TicketBulkUpdate:
        if not self.changes():
            raise ValueError("at least one of status, priority or assigned_to is required")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"ticket_ids"})


class TicketBulkResult(BaseModel):
    updated: int
    ticket_ids: list[str]


class SortOut(BaseModel):
    column: str
    direction: str


class QuickFilterOut(BaseModel):
    key: str
    label: str
    count: int
    sort: SortOut
    filters: dict[str, Any]
