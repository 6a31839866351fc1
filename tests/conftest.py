from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from supportdesk.core.errors import UpstreamNotificationError

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeEmailClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send(self, subject: str, body: str, to_address: str | None = None) -> bool:
        if self.fail:
            raise UpstreamNotificationError("SMTP send failed: connection refused")
        self.sent.append({"to": to_address, "subject": subject, "body": body})
        return True


class FakeSmsClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False
        self.calls = 0
        self.closed = False

    def send(self, to_number: str | None, body: str) -> str:
        self.calls += 1
        if self.fail:
            raise UpstreamNotificationError("SMS provider returned 503")
        self.sent.append({"to": to_number, "body": body})
        return f"SM{self.calls}"

    def close(self) -> None:
        self.closed = True


class FakeConversationClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False
        self.closed = False

    def post_message(self, user_id: str, message: str, escalation_id: str | None = None) -> None:
        if self.fail:
            raise UpstreamNotificationError("Conversation webhook returned 500")
        self.sent.append({"user_id": user_id, "escalation_id": escalation_id, "message": message})

    def close(self) -> None:
        self.closed = True


def _reset_runtime():
    from supportdesk.core.config import get_settings
    from supportdesk.db.session import get_engine, get_session_factory

    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


@pytest.fixture()
def env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test_supportdesk.db'}")
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("LOG_FORMAT", "text")
    monkeypatch.setenv("CRON_SECRET", "test-cron-secret")
    monkeypatch.setenv("OPERATOR_NAME", "Sam")
    monkeypatch.setenv("OPERATOR_EMAIL", "operator@example.com")
    monkeypatch.setenv("OPERATOR_PHONE", "+15550001111")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    _reset_runtime()
    yield monkeypatch
    _reset_runtime()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_email() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture()
def fake_sms() -> FakeSmsClient:
    return FakeSmsClient()


@pytest.fixture()
def fake_conversation() -> FakeConversationClient:
    return FakeConversationClient()


@pytest.fixture()
def dispatcher(env, fake_email, fake_sms, fake_conversation):
    from supportdesk.services.notification_dispatcher import NotificationDispatcher

    return NotificationDispatcher(email=fake_email, sms=fake_sms, conversation=fake_conversation)


@pytest.fixture()
def session_factory(env):
    from supportdesk.db.init_db import init_db
    from supportdesk.db.session import get_session_factory

    init_db()
    return get_session_factory()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(env, dispatcher, clock):
    from supportdesk.api.deps import get_clock, get_dispatcher
    from supportdesk.main import create_app

    app = create_app()
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
