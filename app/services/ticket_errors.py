from __future__ import annotations


class TicketQueryError(Exception):
    pass


class InvalidFilter(TicketQueryError):
    pass


class Unauthorized(TicketQueryError):
    pass


class StoreUnavailable(TicketQueryError):
    pass
