"""Cron entry point: ``python -m supportdesk.jobs.followup_pass``.

Safe to schedule more often than the follow-up threshold and safe to overlap
with the HTTP trigger; each escalation is advanced at most once per window.
"""

from dataclasses import asdict

from supportdesk.core.clock import Clock, utc_now
from supportdesk.core.config import get_settings
from supportdesk.core.logging import configure_logging
from supportdesk.db.init_db import init_db
from supportdesk.db.session import session_scope
from supportdesk.services.followup_scheduler import FollowupScheduler
from supportdesk.services.notification_dispatcher import NotificationDispatcher


def run_followup_pass(dispatcher: NotificationDispatcher | None = None, clock: Clock = utc_now) -> dict:
    owned = dispatcher is None
    dispatcher = dispatcher or NotificationDispatcher()
    try:
        with session_scope() as session:
            result = FollowupScheduler(session, dispatcher=dispatcher, clock=clock).run_pass()
    finally:
        if owned:
            dispatcher.close()
    return asdict(result)


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    init_db()
    print(run_followup_pass())
