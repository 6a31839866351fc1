from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from supportdesk.api.deps import get_clock, get_dispatcher
from supportdesk.core.clock import Clock
from supportdesk.db.session import get_db
from supportdesk.schemas.ticket import (
    TicketCreateRequest,
    TicketCreateResponse,
    TicketListResponse,
    TicketOut,
    TicketSummary,
)
from supportdesk.services.notification_dispatcher import NotificationDispatcher
from supportdesk.services.ticket_store import TicketStore

router = APIRouter(prefix="/v1/support", tags=["tickets"])


@router.post("/tickets", response_model=TicketCreateResponse)
def create_ticket(
    payload: TicketCreateRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> TicketCreateResponse:
    ticket = TicketStore(db, dispatcher=dispatcher, clock=clock).create(
        user_id=payload.user_id,
        subject=payload.subject,
        description=payload.description,
        category=payload.category,
        user_name=payload.user_name,
        user_email=payload.user_email,
        priority=payload.priority,
        chat_history=payload.chat_history,
        estimated_eta=payload.estimated_eta,
    )
    return TicketCreateResponse(ticket=TicketSummary.model_validate(ticket))


@router.get("/tickets", response_model=TicketListResponse)
def list_tickets(
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> TicketListResponse:
    tickets = TicketStore(db).list(status)
    return TicketListResponse(tickets=[TicketOut.model_validate(item) for item in tickets])
