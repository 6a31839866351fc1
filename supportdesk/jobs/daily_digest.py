from datetime import timedelta

from sqlalchemy import select

from supportdesk.core.clock import Clock, utc_now
from supportdesk.core.enums import EscalationStatus, TicketStatus
from supportdesk.db.models import Escalation, Ticket
from supportdesk.db.session import session_scope
from supportdesk.services.notification_dispatcher import NotificationDispatcher

DIGEST_MAX_LINES = 20


def run_daily_digest(dispatcher: NotificationDispatcher | None = None, clock: Clock = utc_now) -> dict:
    now = clock()
    since = now - timedelta(days=1)

    with session_scope() as session:
        escalations = session.scalars(
            select(Escalation)
            .where(
                Escalation.created_at >= since,
                Escalation.status == EscalationStatus.PENDING.value,
            )
            .order_by(Escalation.created_at.desc())
        ).all()
        tickets = session.scalars(
            select(Ticket)
            .where(Ticket.created_at >= since, Ticket.status == TicketStatus.OPEN.value)
            .order_by(Ticket.created_at.desc())
        ).all()

        body = [
            f"Daily support digest for {now.date()}",
            "",
            f"Pending escalations: {len(escalations)}",
            f"Open tickets: {len(tickets)}",
            "",
        ]
        for escalation in escalations[:DIGEST_MAX_LINES]:
            body.append(
                f"- [{escalation.urgency}] {escalation.user_name or escalation.user_id}: "
                f"{escalation.summary} (follow-ups: {escalation.followup_count})"
            )
        for ticket in tickets[:DIGEST_MAX_LINES]:
            body.append(f"- {ticket.ticket_number} [{ticket.priority}] {ticket.subject}")

    owned = dispatcher is None
    dispatcher = dispatcher or NotificationDispatcher()
    try:
        dispatcher.email_operator(subject="Support Daily Digest", body="\n".join(body))
    finally:
        if owned:
            dispatcher.close()
    return {"escalations": len(escalations), "tickets": len(tickets)}


if __name__ == "__main__":
    print(run_daily_digest())
