from datetime import datetime
from typing import Any

from supportdesk.schemas.common import CamelModel


class TicketCreateRequest(CamelModel):
    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    subject: str | None = None
    description: str | None = None
    category: str | None = None
    priority: str | None = None
    chat_history: Any = None
    estimated_eta: str | None = None


class TicketSummary(CamelModel):
    id: str
    ticket_number: str
    estimated_eta: str | None = None


class TicketCreateResponse(CamelModel):
    success: bool = True
    ticket: TicketSummary


class TicketOut(CamelModel):
    id: str
    ticket_number: str
    user_id: str
    user_name: str | None = None
    user_email: str | None = None
    subject: str
    description: str
    category: str
    priority: str
    status: str
    estimated_eta: str | None = None
    chat_history: Any = None
    created_at: datetime


class TicketListResponse(CamelModel):
    tickets: list[TicketOut]
