from collections.abc import Iterator

from supportdesk.core.clock import Clock, utc_now
from supportdesk.services.notification_dispatcher import NotificationDispatcher


def get_dispatcher() -> Iterator[NotificationDispatcher]:
    dispatcher = NotificationDispatcher()
    try:
        yield dispatcher
    finally:
        dispatcher.close()


def get_clock() -> Clock:
    return utc_now
