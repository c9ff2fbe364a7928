"""Tests for the websocket connection registry and realtime event fan-out."""

from __future__ import annotations

import asyncio
import time

import anyio
from anyio import to_thread

from wealth_notify.infrastructure.notifications import (
    EVENT_READ,
    WS_POLICY_VIOLATION,
    NotificationConnectionManager,
    RealtimeEventPublisher,
)


class FakeWebSocket:
    def __init__(self, *, fail_sends: bool = False) -> None:
        self.accepted = False
        self.closed_with: int | None = None
        self.messages: list[dict] = []
        self.fail_sends = fail_sends

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    async def send_json(self, message: dict) -> None:
        if self.fail_sends and self.accepted and message.get("type") != "connected":
            raise RuntimeError("socket gone")
        self.messages.append(message)


def _authenticate(credential: str) -> int | None:
    return {"alice": 1, "bob": 2}.get(credential)


def _run(coroutine):
    return asyncio.run(coroutine)


def test_connections_are_tracked_per_user() -> None:
    manager = NotificationConnectionManager(shards=4)

    async def scenario():
        first = await manager.connect(FakeWebSocket(), "alice", authenticate=_authenticate)
        second = await manager.connect(FakeWebSocket(), "alice", authenticate=_authenticate)
        assert manager.is_user_connected(1)
        assert len(manager.connection_ids(1)) == 2

        manager.disconnect(first)
        assert manager.is_user_connected(1)
        assert manager.connection_ids(1) == [second.connection_id]

        manager.disconnect(second)
        manager.disconnect(second)
        assert not manager.is_user_connected(1)
        assert manager.connected_user_count() == 0

    _run(scenario())


def test_connect_announces_connection_id() -> None:
    manager = NotificationConnectionManager(shards=2)
    websocket = FakeWebSocket()

    handle = _run(manager.connect(websocket, "bob", authenticate=_authenticate))

    assert websocket.accepted
    assert websocket.messages == [
        {
            "type": "connected",
            "data": {"user_id": 2, "connection_id": handle.connection_id},
        }
    ]


def test_invalid_or_missing_credentials_are_rejected() -> None:
    manager = NotificationConnectionManager(shards=2)
    rejected = FakeWebSocket()
    anonymous = FakeWebSocket()

    assert _run(manager.connect(rejected, "mallory", authenticate=_authenticate)) is None
    assert _run(manager.connect(anonymous, None, authenticate=_authenticate)) is None

    for websocket in (rejected, anonymous):
        assert websocket.accepted is False
        assert websocket.closed_with == WS_POLICY_VIOLATION
    assert manager.connected_user_count() == 0


def test_send_to_user_reaches_every_connection_of_that_user_only() -> None:
    manager = NotificationConnectionManager(shards=2)
    phone, laptop, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(phone, "alice", authenticate=_authenticate)
        await manager.connect(laptop, "alice", authenticate=_authenticate)
        await manager.connect(other, "bob", authenticate=_authenticate)
        await manager.send_to_user(1, "notification", {"id": 5})
        await manager.send_to_user(3, "notification", {"id": 6})

    _run(scenario())

    expected = {"type": "notification", "data": {"id": 5}}
    assert phone.messages[-1] == expected
    assert laptop.messages[-1] == expected
    assert expected not in other.messages


def test_send_to_users_fans_out_once_per_user() -> None:
    manager = NotificationConnectionManager(shards=2)
    alice, bob = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(alice, "alice", authenticate=_authenticate)
        await manager.connect(bob, "bob", authenticate=_authenticate)
        await manager.send_to_users([1, 2, 1, 7], "announcement", {"id": 3})

    _run(scenario())

    for websocket in (alice, bob):
        announcements = [m for m in websocket.messages if m["type"] == "announcement"]
        assert announcements == [{"type": "announcement", "data": {"id": 3}}]


def test_broadcast_reaches_all_users() -> None:
    manager = NotificationConnectionManager(shards=2)
    sockets = [FakeWebSocket(), FakeWebSocket()]

    async def scenario():
        await manager.connect(sockets[0], "alice", authenticate=_authenticate)
        await manager.connect(sockets[1], "bob", authenticate=_authenticate)
        await manager.broadcast("maintenance", {"at": "22:00"})

    _run(scenario())

    for websocket in sockets:
        assert websocket.messages[-1] == {"type": "maintenance", "data": {"at": "22:00"}}


def test_failed_send_drops_only_that_connection() -> None:
    manager = NotificationConnectionManager(shards=2)
    healthy, broken = FakeWebSocket(), FakeWebSocket(fail_sends=True)

    async def scenario():
        await manager.connect(healthy, "alice", authenticate=_authenticate)
        await manager.connect(broken, "alice", authenticate=_authenticate)
        await manager.send_to_user(1, "notification", {"id": 9})

    _run(scenario())

    assert len(manager.connection_ids(1)) == 1
    assert healthy.messages[-1] == {"type": "notification", "data": {"id": 9}}


def test_subscriptions_are_kept_per_connection() -> None:
    manager = NotificationConnectionManager(shards=2)

    handle = _run(manager.connect(FakeWebSocket(), "alice", authenticate=_authenticate))

    assert manager.subscribe(handle, ["task_due", "risk_alert"]) == ["risk_alert", "task_due"]
    assert manager.unsubscribe(handle, ["task_due", "unknown"]) == ["risk_alert"]


def test_event_publisher_schedules_on_the_running_loop() -> None:
    manager = NotificationConnectionManager(shards=2)
    events = RealtimeEventPublisher(manager)
    websocket = FakeWebSocket()
    payload = {"id": 4}

    async def scenario():
        await manager.connect(websocket, "alice", authenticate=_authenticate)
        events.dispatch_many([1, 1, 0], event_type=EVENT_READ, payload=payload)
        payload["id"] = 99
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    _run(scenario())

    reads = [message for message in websocket.messages if message["type"] == EVENT_READ]
    assert reads == [{"type": EVENT_READ, "data": {"id": 4}}]


def test_event_publisher_without_loop_is_a_no_op() -> None:
    events = RealtimeEventPublisher(NotificationConnectionManager(shards=2))

    events.dispatch(1, event_type=EVENT_READ, payload={"id": 1})


class SlowManager:
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.sent: list[tuple[int, str]] = []

    async def send_to_user(self, user_id, event_type, payload) -> None:
        await anyio.sleep(self.delay)
        self.sent.append((user_id, event_type))


def test_dispatch_from_a_worker_thread_does_not_wait_for_the_send() -> None:
    manager = SlowManager(delay=1.0)
    events = RealtimeEventPublisher(manager)

    async def scenario():
        started = time.perf_counter()
        await to_thread.run_sync(
            lambda: events.dispatch(1, event_type=EVENT_READ, payload={"id": 2})
        )
        elapsed = time.perf_counter() - started
        assert manager.sent == []
        with anyio.fail_after(3):
            while not manager.sent:
                await anyio.sleep(0.05)
        return elapsed

    elapsed = anyio.run(scenario)

    assert elapsed < 0.5
    assert manager.sent == [(1, EVENT_READ)]
