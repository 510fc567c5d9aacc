from app.models.audit_log import AuditLog
from app.models.base import Base, TimestampMixin
from app.models.ticket import Ticket, TicketTag
from app.models.ticket_view import TicketView
from app.models.user_profile import UserProfile

__all__ = [
    "AuditLog",
    "Base",
    "TimestampMixin",
    "Ticket",
    "TicketTag",
    "TicketView",
    "UserProfile",
]
