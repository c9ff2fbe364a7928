"""Connection management helpers for notification websockets."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

from wealth_notify.config import get_settings

logger = logging.getLogger(__name__)

# Policy violation: used when the credential is missing or invalid.
WS_POLICY_VIOLATION = 1008


@dataclass(eq=False)
class ConnectionHandle:
    """A live websocket registered for a user."""

    connection_id: str
    user_id: int
    websocket: WebSocket
    subscriptions: set[str] = field(default_factory=set)


class NotificationConnectionManager:
    """Manage active websocket connections grouped by user.

    A user may hold several connections at once (devices, tabs). Mutations of
    a user's entry happen under the lock shard selected by the user id; sends
    work on a snapshot taken under that lock, never while holding it.
    """

    def __init__(self, *, shards: int | None = None) -> None:
        shard_count = shards or get_settings().connection_lock_shards
        self._locks = [threading.Lock() for _ in range(shard_count)]
        self._connections: dict[int, dict[str, ConnectionHandle]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        credential: str | None,
        *,
        authenticate: Callable[[str], int | None],
    ) -> ConnectionHandle | None:
        """Authenticate ``credential`` and register ``websocket`` for its user.

        Returns ``None`` after closing the socket when the credential is
        missing or rejected.
        """

        user_id = authenticate(credential) if credential else None
        if user_id is None:
            logger.warning("Rejected notification websocket without valid credentials")
            await websocket.close(code=WS_POLICY_VIOLATION)
            return None

        await websocket.accept()
        handle = ConnectionHandle(
            connection_id=uuid.uuid4().hex, user_id=user_id, websocket=websocket
        )
        with self._lock_for(user_id):
            self._connections.setdefault(user_id, {})[handle.connection_id] = handle
        logger.info("Connection %s opened for user %s", handle.connection_id, user_id)

        await websocket.send_json(
            {
                "type": "connected",
                "data": {"user_id": user_id, "connection_id": handle.connection_id},
            }
        )
        return handle

    def disconnect(self, handle: ConnectionHandle) -> None:
        """Remove ``handle``; the user entry disappears with its last connection."""

        with self._lock_for(handle.user_id):
            connections = self._connections.get(handle.user_id)
            if connections is None:
                return
            connections.pop(handle.connection_id, None)
            if not connections:
                self._connections.pop(handle.user_id, None)
        logger.info("Connection %s closed for user %s", handle.connection_id, handle.user_id)

    def subscribe(self, handle: ConnectionHandle, types: Iterable[str]) -> list[str]:
        with self._lock_for(handle.user_id):
            handle.subscriptions.update(types)
            return sorted(handle.subscriptions)

    def unsubscribe(self, handle: ConnectionHandle, types: Iterable[str]) -> list[str]:
        with self._lock_for(handle.user_id):
            handle.subscriptions.difference_update(types)
            return sorted(handle.subscriptions)

    async def send_to_user(self, user_id: int, event: str, payload: Any) -> None:
        """Send ``event`` to every active connection for ``user_id``."""

        for handle in self._snapshot(user_id):
            await self._send(handle, {"type": event, "data": payload})

    async def send_to_users(self, user_ids: Iterable[int], event: str, payload: Any) -> None:
        for user_id in dict.fromkeys(user_ids):
            await self.send_to_user(user_id, event, payload)

    async def broadcast(self, event: str, payload: Any) -> None:
        """Send ``event`` to every live connection regardless of user."""

        for user_id in list(self._connections):
            await self.send_to_user(user_id, event, payload)

    def is_user_connected(self, user_id: int) -> bool:
        with self._lock_for(user_id):
            return bool(self._connections.get(user_id))

    def connected_user_count(self) -> int:
        return len(self._connections)

    def connection_ids(self, user_id: int) -> list[str]:
        return [handle.connection_id for handle in self._snapshot(user_id)]

    def reset(self) -> None:
        """Drop every registered connection without closing the sockets."""

        for lock in self._locks:
            lock.acquire()
        try:
            self._connections.clear()
        finally:
            for lock in reversed(self._locks):
                lock.release()

    def _snapshot(self, user_id: int) -> list[ConnectionHandle]:
        with self._lock_for(user_id):
            return list(self._connections.get(user_id, {}).values())

    async def _send(self, handle: ConnectionHandle, message: dict[str, Any]) -> None:
        try:
            await handle.websocket.send_json(message)
        except Exception:
            logger.warning(
                "Dropping connection %s for user %s after a failed send",
                handle.connection_id,
                handle.user_id,
            )
            self.disconnect(handle)

    def _lock_for(self, user_id: int) -> threading.Lock:
        return self._locks[hash(user_id) % len(self._locks)]


notification_manager = NotificationConnectionManager()


__all__ = [
    "ConnectionHandle",
    "NotificationConnectionManager",
    "WS_POLICY_VIOLATION",
    "notification_manager",
]
