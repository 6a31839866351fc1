import logging
import smtplib
from email.message import EmailMessage

from supportdesk.core.config import get_settings
from supportdesk.core.errors import UpstreamNotificationError

logger = logging.getLogger(__name__)


class EmailClient:
    def __init__(self) -> None:
        self.settings = get_settings()

    @property
    def configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def send(self, subject: str, body: str, to_address: str | None = None) -> bool:
        recipient = to_address or self.settings.operator_email
        if not self.configured:
            logger.info(
                "SMTP not configured, email logged only",
                extra={"to": recipient, "subject": subject},
            )
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.settings.notification_email_from
        message["To"] = recipient
        message.set_content(body)

        try:
            with smtplib.SMTP(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.notification_timeout_seconds,
            ) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()
                if self.settings.smtp_username and self.settings.smtp_password:
                    server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise UpstreamNotificationError(f"SMTP send to {recipient} failed: {exc}") from exc
        return True
