import requests

from supportdesk.core.config import get_settings
from supportdesk.core.errors import UpstreamNotificationError

# Twilio rejects bodies above 1600 characters.
MAX_SMS_CHARS = 1600


class SmsClient:
    """Sends SMS through the Twilio Messages REST resource."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.settings = get_settings()
        self.http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return self.settings.sms_configured

    def messages_url(self) -> str:
        base = self.settings.twilio_api_base_url.rstrip("/")
        return f"{base}/Accounts/{self.settings.twilio_account_sid}/Messages.json"

    def send(self, to_number: str | None, body: str) -> str:
        if not self.configured:
            raise UpstreamNotificationError("SMS provider not configured")
        if not to_number:
            raise UpstreamNotificationError("No SMS recipient configured")

        try:
            response = self.http.post(
                self.messages_url(),
                data={"From": self.settings.twilio_phone_number, "To": to_number, "Body": body[:MAX_SMS_CHARS]},
                auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
                timeout=self.settings.notification_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise UpstreamNotificationError(f"SMS request failed: {exc}") from exc

        if not response.ok:
            raise UpstreamNotificationError(f"SMS provider returned {response.status_code}")
        try:
            return response.json().get("sid", "")
        except ValueError as exc:
            raise UpstreamNotificationError("SMS provider returned an unreadable body") from exc

    def close(self) -> None:
        self.http.close()
