import logging
from dataclasses import dataclass

from supportdesk.core.config import get_settings
from supportdesk.core.enums import Channel
from supportdesk.core.errors import ValidationError
from supportdesk.integrations.conversation_client import ConversationClient
from supportdesk.integrations.email_client import EmailClient
from supportdesk.integrations.sms_client import SmsClient

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    channel: str
    target: str | None
    ok: bool
    fallback: bool = False
    error: str | None = None


class NotificationDispatcher:
    """Best-effort messaging to the operator and to users.

    Nothing here raises on a channel failure and nothing is retried: the
    follow-up scheduler re-engages on its next pass instead.
    """

    def __init__(
        self,
        email: EmailClient | None = None,
        sms: SmsClient | None = None,
        conversation: ConversationClient | None = None,
    ) -> None:
        self.settings = get_settings()
        self.email = email or EmailClient()
        self.sms = sms or SmsClient()
        self.conversation = conversation or ConversationClient()

    def close(self) -> None:
        """Release the HTTP sessions held by the SMS and conversation clients."""
        self.sms.close()
        self.conversation.close()

    def send(self, channel: Channel | str, target: str | None, body: str, subject: str | None = None) -> DeliveryResult:
        channel = Channel.parse(channel)
        if channel is Channel.EMAIL:
            if not subject:
                raise ValidationError("Email notifications require a subject")
            return self._send_email(target, subject, body)
        return self._send_sms(target, body)

    def _send_email(self, target: str | None, subject: str, body: str) -> DeliveryResult:
        try:
            delivered = self.email.send(subject=subject, body=body, to_address=target)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Email notification failed",
                extra={"channel": Channel.EMAIL.value, "target": target, "subject": subject, "error": str(exc)},
            )
            return DeliveryResult(channel=Channel.EMAIL.value, target=target, ok=False, error=str(exc))
        return DeliveryResult(channel=Channel.EMAIL.value, target=target, ok=True, fallback=not delivered)

    def _send_sms(self, target: str | None, body: str) -> DeliveryResult:
        try:
            self.sms.send(to_number=target, body=body)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "SMS (fallback): %s",
                body,
                extra={"channel": Channel.SMS.value, "target": target, "error": str(exc)},
            )
            return DeliveryResult(channel=Channel.SMS.value, target=target, ok=True, fallback=True, error=str(exc))
        return DeliveryResult(channel=Channel.SMS.value, target=target, ok=True)

    def alert_operator(self, subject: str, email_body: str, sms_body: str) -> list[DeliveryResult]:
        return [
            self.send(Channel.EMAIL, self.settings.operator_email, email_body, subject=subject),
            self.send(Channel.SMS, self.settings.operator_phone, sms_body),
        ]

    def email_operator(self, subject: str, body: str) -> DeliveryResult:
        return self.send(Channel.EMAIL, self.settings.operator_email, body, subject=subject)

    def realert_operator(self, sms_body: str) -> DeliveryResult:
        return self.send(Channel.SMS, self.settings.operator_phone, sms_body)

    def notify_user(self, user_id: str, message: str, escalation_id: str | None = None) -> bool:
        try:
            self.conversation.post_message(user_id=user_id, message=message, escalation_id=escalation_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "User conversation message failed",
                extra={"user_id": user_id, "escalation_id": escalation_id, "error": str(exc)},
            )
            return False
        return True
