import logging
import secrets
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from supportdesk.core.clock import Clock, utc_now
from supportdesk.core.config import get_settings
from supportdesk.core.enums import TicketPriority, TicketStatus
from supportdesk.core.errors import PersistenceError, ValidationError
from supportdesk.db.models import Ticket
from supportdesk.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("user_id", "subject", "description", "category")


class TicketStore:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.db = db
        self._dispatcher = dispatcher
        self.clock = clock
        self.settings = get_settings()

    @property
    def dispatcher(self) -> NotificationDispatcher:
        # Built on first use so read-only callers never open HTTP sessions.
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher()
        return self._dispatcher

    def _next_ticket_number(self) -> str:
        return f"TKT-{self.clock():%Y%m%d}-{secrets.token_hex(3).upper()}"

    def create(
        self,
        user_id: str | None,
        subject: str | None,
        description: str | None,
        category: str | None,
        user_name: str | None = None,
        user_email: str | None = None,
        priority: TicketPriority | str | None = None,
        chat_history: Any = None,
        estimated_eta: str | None = None,
    ) -> Ticket:
        values = {"user_id": user_id, "subject": subject, "description": description, "category": category}
        missing = [name for name in REQUIRED_FIELDS if not (values[name] and values[name].strip())]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        level = TicketPriority.parse(priority, default=TicketPriority.NORMAL)

        ticket = Ticket(
            ticket_number=self._next_ticket_number(),
            user_id=user_id.strip(),
            user_name=user_name,
            user_email=user_email,
            subject=subject.strip(),
            description=description,
            category=category.strip(),
            priority=level.value,
            status=TicketStatus.OPEN.value,
            estimated_eta=estimated_eta,
            chat_history=chat_history,
            created_at=self.clock(),
        )
        try:
            self.db.add(ticket)
            self.db.commit()
            self.db.refresh(ticket)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Ticket insert failed: %s", exc, extra={"operation": "create", "user_id": user_id})
            raise PersistenceError("Failed to create ticket") from exc

        logger.info("Ticket created", extra={"ticket_id": ticket.id, "ticket_number": ticket.ticket_number})
        result = self.dispatcher.email_operator(
            subject=f"New Support Ticket: {ticket.ticket_number} - {ticket.subject}",
            body=self._notification_body(ticket),
        )
        if not result.ok:
            logger.warning("Ticket notification failed", extra={"ticket_id": ticket.id, "error": result.error})
        return ticket

    def _notification_body(self, ticket: Ticket) -> str:
        requester = ticket.user_name or ticket.user_id
        if ticket.user_email:
            requester = f"{requester} ({ticket.user_email})"
        lines = [
            f"Ticket: {ticket.ticket_number}",
            f"From: {requester}",
            f"Category: {ticket.category}",
            f"Priority: {ticket.priority}",
        ]
        if ticket.estimated_eta:
            lines.append(f"Estimated ETA: {ticket.estimated_eta}")
        lines.extend(["", ticket.description, "", f"View ticket: {self.settings.dashboard_url}"])
        return "\n".join(lines)

    def list(self, status: TicketStatus | str | None = None) -> list[Ticket]:
        stmt = select(Ticket).order_by(Ticket.created_at.desc())
        if status:
            stmt = stmt.where(Ticket.status == TicketStatus.parse(status).value)
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Ticket list failed: %s", exc, extra={"operation": "list"})
            raise PersistenceError("Failed to fetch tickets") from exc

    def count_open(self) -> int:
        try:
            return int(
                self.db.scalar(
                    select(func.count()).select_from(Ticket).where(Ticket.status == TicketStatus.OPEN.value)
                )
                or 0
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to count tickets") from exc
