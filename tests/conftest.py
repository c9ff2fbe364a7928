"""Shared fixtures: a throwaway SQLite database and recording fakes."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

TEST_DB_PATH = Path(__file__).parent / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SENDGRID_SENDER", None)

from wealth_notify.domain.entities import User  # noqa: E402
from wealth_notify.infrastructure import database  # noqa: E402
from wealth_notify.infrastructure.channels import DeliveryReceipt  # noqa: E402
from wealth_notify.infrastructure.notifications import notification_manager  # noqa: E402
from wealth_notify.infrastructure.repositories import UserRepository  # noqa: E402


class RecordingEvents:
    """Stand-in for the realtime publisher that keeps every dispatched event."""

    def __init__(self) -> None:
        self.events: list[tuple[int, str, object]] = []

    def dispatch(self, user_id, *, event_type, payload) -> None:
        self.events.append((user_id, event_type, payload))

    def dispatch_many(self, user_ids, *, event_type, payload) -> None:
        for user_id in dict.fromkeys(user_ids):
            self.dispatch(user_id, event_type=event_type, payload=payload)

    def of_type(self, event_type: str) -> list[tuple[int, str, object]]:
        return [event for event in self.events if event[1] == event_type]


class RecordingPublisher:
    def __init__(self) -> None:
        self.notifications = []

    def dispatch(self, notification) -> None:
        self.notifications.append(notification)


class RecordingChannels:
    """External channel registry that accepts everything unless told to fail."""

    def __init__(self) -> None:
        self.enqueued: list[tuple[int, str]] = []
        self.failing: dict[int, Exception] = {}

    def enqueue(self, notification, channel) -> DeliveryReceipt:
        error = self.failing.get(notification.recipient_id)
        if error is not None:
            raise error
        self.enqueued.append((notification.recipient_id, channel.value))
        return DeliveryReceipt.accepted()


class StaticDirectory:
    def __init__(self, recipients: list[int] | None = None) -> None:
        self.recipients = list(recipients or [])
        self.calls: list[dict[str, object]] = []

    def resolve_recipients(self, *, roles=None, team_ids=None) -> list[int]:
        self.calls.append({"roles": roles, "team_ids": team_ids})
        return list(self.recipients)


class RecordingComposer:
    def __init__(self, *, failing_users: set[int] | None = None) -> None:
        self.sent: dict[int, list] = {}
        self.failing_users = failing_users or set()

    def send_digest(self, user_id, notifications, *, frequency) -> bool:
        if user_id in self.failing_users:
            raise RuntimeError("composer unavailable")
        self.sent[user_id] = list(notifications)
        return True


@pytest.fixture(autouse=True)
def reset_connections():
    notification_manager.reset()
    yield
    notification_manager.reset()


@pytest.fixture()
def db_session():
    """Yield a session bound to freshly created tables."""

    database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)
    database.initialize_database()
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session):
    users = UserRepository(db_session)

    def _make_user(
        email: str,
        *,
        role: str = "advisor",
        name: str | None = None,
        team_id: str | None = None,
        is_active: bool = True,
    ) -> User:
        role_entity = users.get_or_create_role(alias=role)
        return users.create(
            User(
                id=None,
                role=role_entity,
                name=name or email.split("@")[0].title(),
                email=email,
                team_id=team_id,
                is_active=is_active,
            )
        )

    return _make_user


@pytest.fixture()
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def channels() -> RecordingChannels:
    return RecordingChannels()


@pytest.fixture()
def directory() -> StaticDirectory:
    return StaticDirectory()


@pytest.fixture()
def composer() -> RecordingComposer:
    return RecordingComposer()


def pytest_sessionfinish(session, exitstatus):
    database.engine.dispose()
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()
