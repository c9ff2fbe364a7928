"""Realtime event fan-out from request handlers to websocket connections."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Iterable

from anyio import from_thread

from .manager import NotificationConnectionManager, notification_manager

logger = logging.getLogger(__name__)

EVENT_NOTIFICATION = "notification"
EVENT_READ = "notification:read"
EVENT_ARCHIVED = "notification:archived"
EVENT_DELETED = "notification:deleted"
EVENT_ALL_READ = "notifications:all-read"


class RealtimeEventPublisher:
    """Push ``{"type", "data"}`` events to every connection of a user.

    Callers may run on the event loop (a task is created) or in a worker
    thread started by anyio (the task is handed to the loop, not awaited). With no
    loop reachable the event is dropped; clients resynchronise on connect.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, user_id: int, *, event_type: str, payload: Any) -> None:
        if not user_id:
            return
        # Snapshot the payload so later mutation by the caller is not sent.
        self._schedule_send(user_id, event_type, copy.deepcopy(payload))

    def dispatch_many(
        self,
        user_ids: Iterable[int],
        *,
        event_type: str,
        payload: Any,
    ) -> None:
        for user_id in dict.fromkeys(user_ids):
            self.dispatch(user_id, event_type=event_type, payload=payload)

    def _schedule_send(self, user_id: int, event_type: str, payload: Any) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            try:
                # Only the task creation runs on the loop; the send is not awaited here.
                from_thread.run_sync(self._spawn, user_id, event_type, payload)
            except RuntimeError:
                logger.debug(
                    "No event loop reachable; %s for user %s not pushed", event_type, user_id
                )
            return
        self._spawn(user_id, event_type, payload)

    def _spawn(self, user_id: int, event_type: str, payload: Any) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._manager.send_to_user(user_id, event_type, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


realtime_event_publisher = RealtimeEventPublisher(notification_manager)


__all__ = [
    "EVENT_ALL_READ",
    "EVENT_ARCHIVED",
    "EVENT_DELETED",
    "EVENT_NOTIFICATION",
    "EVENT_READ",
    "RealtimeEventPublisher",
    "realtime_event_publisher",
]
