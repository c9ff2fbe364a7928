"""Tests for notification creation, delivery and lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from wealth_notify.application.use_cases.notifications import (
    BroadcastRequest,
    NotificationDispatcher,
    NotificationNotFoundError,
    NotificationRequest,
    NotificationValidationError,
    update_preferences,
)
from wealth_notify.domain.entities import (
    EntityType,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)
from wealth_notify.infrastructure.notifications import (
    EVENT_ALL_READ,
    EVENT_ARCHIVED,
    EVENT_DELETED,
    EVENT_READ,
    serialize_notification,
)
from wealth_notify.infrastructure.repositories import NotificationFilter, NotificationRepository

NOON = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clock():
    current = {"now": NOON}

    def _now() -> datetime:
        return current["now"]

    _now.current = current
    return _now


@pytest.fixture()
def dispatcher(db_session, publisher, events, channels, directory, clock):
    return NotificationDispatcher(
        db_session,
        publisher=publisher,
        events=events,
        channels=channels,
        directory=directory,
        clock=clock,
    )


def _request(recipients, **overrides) -> NotificationRequest:
    values = {
        "type": NotificationType.TASK_DUE,
        "title": "x",
        "message": "y",
        "recipient_ids": list(recipients),
    }
    values.update(overrides)
    return NotificationRequest(**values)


def test_task_due_is_stored_pushed_and_emailed(
    db_session, dispatcher, publisher, channels
) -> None:
    update_preferences(
        db_session,
        1,
        {
            "channel_settings": {"email": True},
            "type_settings": {"task_due": {"enabled": True, "channels": ["in_app", "email"]}},
        },
    )

    created = dispatcher.create(_request([1]))

    assert len(created) == 1
    notification = created[0]
    assert notification.channels_sent == (NotificationChannel.IN_APP, NotificationChannel.EMAIL)
    assert [item.id for item in publisher.notifications] == [notification.id]
    assert channels.enqueued == [(1, "email")]
    assert notification.delivery_status[NotificationChannel.EMAIL].sent is True
    assert notification.delivery_status[NotificationChannel.IN_APP].sent is True

    payload = serialize_notification(publisher.notifications[0])
    assert payload["title"] == "x"
    assert "delivery_status" not in payload
    assert "metadata" not in payload


def test_disabled_type_creates_nothing_for_that_recipient(
    db_session, dispatcher, publisher
) -> None:
    update_preferences(db_session, 2, {"type_settings": {"task_due": {"enabled": False}}})

    created = dispatcher.create(_request([2, 3]))

    assert [item.recipient_id for item in created] == [3]
    repository = NotificationRepository(db_session)
    assert repository.list_for_user(2) == []
    assert [item.recipient_id for item in publisher.notifications] == [3]


def test_quiet_hours_keep_only_in_app_for_normal_priority(
    db_session, dispatcher, channels, clock
) -> None:
    update_preferences(
        db_session,
        4,
        {"quiet_hours": {"enabled": True, "start": "22:00", "end": "07:00", "timezone": "UTC"}},
    )
    clock.current["now"] = datetime(2024, 5, 15, 23, 30, tzinfo=timezone.utc)

    normal = dispatcher.create(_request([4]))
    urgent = dispatcher.create(_request([4], priority=NotificationPriority.URGENT))

    assert normal[0].channels_sent == (NotificationChannel.IN_APP,)
    assert urgent[0].channels_sent == (NotificationChannel.IN_APP, NotificationChannel.EMAIL)
    assert channels.enqueued == [(4, "email")]


def test_no_row_when_every_channel_is_filtered_out(db_session, dispatcher) -> None:
    update_preferences(db_session, 5, {"channel_settings": {"in_app": False, "email": False}})

    assert dispatcher.create(_request([5])) == []
    assert NotificationRepository(db_session).list_for_user(5) == []


def test_channel_error_is_recorded_and_the_batch_continues(
    db_session, dispatcher, publisher, channels
) -> None:
    channels.failing[6] = RuntimeError("smtp down")

    created = dispatcher.create(_request([6, 7]))

    assert [item.recipient_id for item in created] == [6, 7]
    assert [item.recipient_id for item in publisher.notifications] == [6, 7]
    assert channels.enqueued == [(7, "email")]

    failed = created[0].delivery_status[NotificationChannel.EMAIL]
    assert failed.sent is False
    assert failed.error == "smtp down"

    stored = NotificationRepository(db_session).get_for_owner(created[0].id, 6)
    assert stored.delivery_status[NotificationChannel.EMAIL].error == "smtp down"
    assert stored.delivery_status[NotificationChannel.IN_APP].sent is True


def test_failed_receipt_is_stored_in_delivery_status(
    db_session, publisher, events, clock
) -> None:
    from wealth_notify.infrastructure.channels import ChannelSenderRegistry

    dispatcher = NotificationDispatcher(
        db_session,
        publisher=publisher,
        events=events,
        channels=ChannelSenderRegistry(),
        clock=clock,
    )

    created = dispatcher.create(_request([8]))

    status = created[0].delivery_status[NotificationChannel.EMAIL]
    assert status.sent is False
    assert "No sender configured" in status.error
    assert created[0].channels_sent == (NotificationChannel.IN_APP, NotificationChannel.EMAIL)


def test_duplicate_recipients_get_one_notification(dispatcher) -> None:
    created = dispatcher.create(_request([9, 9, 9]))

    assert len(created) == 1


def test_explicit_channels_override_preferences(dispatcher, channels) -> None:
    created = dispatcher.create(
        _request(
            [10],
            type=NotificationType.ANNOUNCEMENT,
            channels=[NotificationChannel.EMAIL],
        )
    )

    assert created[0].channels_sent == (NotificationChannel.EMAIL,)
    assert channels.enqueued == [(10, "email")]


def test_validation_rejects_before_persisting(db_session, dispatcher, clock) -> None:
    request = _request(
        [],
        title="",
        message="m" * 2001,
        expires_at=clock() - timedelta(minutes=1),
    )

    with pytest.raises(NotificationValidationError) as excinfo:
        dispatcher.create(request)

    fields = {issue.field for issue in excinfo.value.issues}
    assert fields == {"title", "message", "recipient_ids", "expires_at"}
    assert NotificationRepository(db_session).count_created_since(1, NOON - timedelta(days=1)) == 0


def test_broadcast_counts_created_notifications(db_session, dispatcher, directory) -> None:
    directory.recipients = [11, 12, 13]
    update_preferences(db_session, 12, {"type_settings": {"announcement": {"enabled": False}}})

    created = dispatcher.broadcast(
        BroadcastRequest(
            type=NotificationType.ANNOUNCEMENT,
            title="Office closed",
            message="Friday",
            roles=["advisor"],
        )
    )

    assert created == 2
    assert directory.calls == [{"roles": ["advisor"], "team_ids": None}]


def test_broadcast_without_matches_returns_zero(dispatcher, directory) -> None:
    directory.recipients = []

    request = BroadcastRequest(type=NotificationType.ANNOUNCEMENT, title="t", message="m")

    assert dispatcher.broadcast(request) == 0


def test_mark_as_read_is_owner_scoped(dispatcher, events) -> None:
    notification = dispatcher.create(_request([20]))[0]

    with pytest.raises(NotificationNotFoundError):
        dispatcher.mark_as_read(notification.id, 21)
    with pytest.raises(NotificationNotFoundError):
        dispatcher.mark_as_read(notification.id + 1000, 20)

    read = dispatcher.mark_as_read(notification.id, 20)

    assert read.is_read is True
    assert read.read_at == NOON
    assert events.of_type(EVENT_READ) == [(20, EVENT_READ, {"id": notification.id})]


def test_mark_all_as_read_emits_a_single_event(db_session, dispatcher, events) -> None:
    dispatcher.create(_request([30]))
    dispatcher.create(_request([30], title="second"))
    dispatcher.create(_request([30], title="third"))
    archived = dispatcher.create(_request([30], title="archived"))[0]
    dispatcher.archive(archived.id, 30)

    updated = dispatcher.mark_all_as_read(30)

    assert updated == 3
    assert events.of_type(EVENT_ALL_READ) == [(30, EVENT_ALL_READ, {})]
    assert dispatcher.get_for_user(30, NotificationFilter(unread_only=True)) == []
    assert dispatcher.get_stats(30).unread_count == 0


def test_archive_and_delete_emit_events_and_check_owner(dispatcher, events) -> None:
    notification = dispatcher.create(_request([40]))[0]

    with pytest.raises(NotificationNotFoundError):
        dispatcher.archive(notification.id, 41)
    with pytest.raises(NotificationNotFoundError):
        dispatcher.delete(notification.id, 41)

    dispatcher.archive(notification.id, 40)
    archived = dispatcher.get_for_user(40, NotificationFilter(include_archived=True))
    assert archived[0].is_archived is True
    assert archived[0].is_read is False
    assert dispatcher.get_for_user(40) == []

    dispatcher.delete(notification.id, 40)
    with pytest.raises(NotificationNotFoundError):
        dispatcher.mark_as_read(notification.id, 40)

    assert events.of_type(EVENT_ARCHIVED) == [(40, EVENT_ARCHIVED, {"id": notification.id})]
    assert events.of_type(EVENT_DELETED) == [(40, EVENT_DELETED, {"id": notification.id})]


def test_get_for_user_filters_and_orders(dispatcher, clock) -> None:
    clock.current["now"] = NOON - timedelta(hours=2)
    oldest = dispatcher.create(
        _request([50], type=NotificationType.RISK_ALERT, priority=NotificationPriority.HIGH)
    )[0]
    clock.current["now"] = NOON - timedelta(hours=1)
    middle = dispatcher.create(
        _request(
            [50],
            entity_type=EntityType.HOUSEHOLD,
            entity_id="hh-1",
            expires_at=NOON - timedelta(minutes=30),
        )
    )[0]
    clock.current["now"] = NOON
    newest = dispatcher.create(_request([50], entity_type=EntityType.HOUSEHOLD))[0]

    everything = dispatcher.get_for_user(50)
    assert [item.id for item in everything] == [newest.id, oldest.id]
    assert middle.id not in {item.id for item in everything}

    by_type = dispatcher.get_for_user(50, NotificationFilter(type=NotificationType.RISK_ALERT))
    assert [item.id for item in by_type] == [oldest.id]

    by_entity = dispatcher.get_for_user(50, NotificationFilter(entity_type=EntityType.HOUSEHOLD))
    assert [item.id for item in by_entity] == [newest.id]

    paged = dispatcher.get_for_user(50, NotificationFilter(limit=1, offset=1))
    assert [item.id for item in paged] == [oldest.id]


def test_stats_cover_unread_non_archived(dispatcher, clock) -> None:
    clock.current["now"] = NOON - timedelta(days=1)
    dispatcher.create(_request([60], priority=NotificationPriority.URGENT))
    clock.current["now"] = NOON
    read = dispatcher.create(_request([60], type=NotificationType.ANNOUNCEMENT))[0]
    archived = dispatcher.create(_request([60], type=NotificationType.RISK_ALERT))[0]
    dispatcher.create(_request([60], type=NotificationType.ANNOUNCEMENT))
    dispatcher.mark_as_read(read.id, 60)
    dispatcher.archive(archived.id, 60)

    stats = dispatcher.get_stats(60)

    assert stats.unread_count == 2
    assert stats.by_type == {"task_due": 1, "announcement": 1}
    assert stats.by_priority == {"urgent": 1, "normal": 1}
    assert stats.urgent_count == 1
    assert stats.today_count == 3
