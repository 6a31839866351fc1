import hmac

from fastapi import Header

from supportdesk.core.config import get_settings
from supportdesk.core.errors import UnauthorizedError


async def verify_cron_secret(authorization: str = Header(default="")) -> None:
    settings = get_settings()
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not hmac.compare_digest(authorization, expected):
        raise UnauthorizedError()
