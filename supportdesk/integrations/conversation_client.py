import logging

import requests

from supportdesk.core.config import get_settings
from supportdesk.core.errors import UpstreamNotificationError

logger = logging.getLogger(__name__)


class ConversationClient:
    """Posts assistant messages into the user's support conversation."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.settings = get_settings()
        self.http = session or requests.Session()

    def post_message(self, user_id: str, message: str, escalation_id: str | None = None) -> None:
        url = self.settings.conversation_webhook_url
        if not url:
            logger.info(
                "Conversation webhook not configured, user message logged only",
                extra={"user_id": user_id, "escalation_id": escalation_id, "text": message},
            )
            return

        payload = {"userId": user_id, "escalationId": escalation_id, "role": "assistant", "message": message}
        try:
            response = self.http.post(url, json=payload, timeout=self.settings.notification_timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamNotificationError(f"Conversation webhook failed: {exc}") from exc
        if not response.ok:
            raise UpstreamNotificationError(f"Conversation webhook returned {response.status_code}")

    def close(self) -> None:
        self.http.close()
