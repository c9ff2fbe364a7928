"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import logging
from typing import Any, NoReturn

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from wealth_notify.application.use_cases.notifications import (
    BroadcastRequest,
    NotificationDispatcher,
    NotificationNotFoundError,
    NotificationRequest,
    NotificationValidationError,
    get_or_create_preferences,
    update_preferences,
)
from wealth_notify.domain.entities import (
    EntityType,
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
    User,
)
from wealth_notify.infrastructure.database import SessionLocal, get_db
from wealth_notify.infrastructure.notifications import (
    ConnectionHandle,
    notification_manager,
    serialize_notification,
)
from wealth_notify.infrastructure.repositories import NotificationFilter
from wealth_notify.infrastructure.security import bearer_credential
from wealth_notify.interfaces.api.dependencies import (
    authenticate_websocket_credential,
    get_current_active_user,
    get_notification_dispatcher,
    require_admin,
)
from wealth_notify.interfaces.api.schemas import (
    BroadcastResult,
    MarkAllReadResult,
    NotificationBroadcast,
    NotificationCreate,
    NotificationRead,
    NotificationStatsRead,
    PreferenceRead,
    PreferenceUpdate,
)
from wealth_notify.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id or 0,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        priority=notification.priority,
        entity_type=notification.entity_type,
        entity_id=notification.entity_id,
        entity_name=notification.entity_name,
        action_url=notification.action_url,
        action_label=notification.action_label,
        is_read=notification.is_read,
        read_at=notification.read_at,
        is_archived=notification.is_archived,
        archived_at=notification.archived_at,
        channels_sent=list(notification.channels_sent),
        expires_at=notification.expires_at,
        created_at=notification.created_at,
    )


def _preference_to_schema(preference: NotificationPreference) -> PreferenceRead:
    return PreferenceRead(
        user_id=preference.user_id,
        channel_settings=preference.channel_settings.to_dict(),
        type_settings={
            notification_type.value: setting.to_dict()
            for notification_type, setting in preference.type_settings.items()
        },
        quiet_hours=preference.quiet_hours.to_dict(),
        digest_settings=preference.digest_settings.to_dict(),
        push_token=preference.push_token,
        push_token_updated_at=preference.push_token_updated_at,
        updated_at=preference.updated_at,
    )


def _raise_http_error(exc: ValueError) -> NoReturn:
    if isinstance(exc, NotificationNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, NotificationValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(exc),
                "issues": [issue.to_dict() for issue in exc.issues],
            },
        ) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    notification_type: NotificationType | None = Query(default=None, alias="type"),
    priority: NotificationPriority | None = None,
    entity_type: EntityType | None = None,
    limit: int | None = Query(default=None, ge=1, le=200),
    offset: int | None = Query(default=None, ge=0),
    include_archived: bool = False,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> list[NotificationRead]:
    """Return the caller's notifications, newest first."""

    notifications = dispatcher.get_for_user(
        current_user.id,
        NotificationFilter(
            unread_only=unread_only,
            type=notification_type,
            priority=priority,
            entity_type=entity_type,
            limit=limit,
            offset=offset,
            include_archived=include_archived,
        ),
    )
    return [_notification_to_schema(notification) for notification in notifications]


@router.get("/stats", response_model=NotificationStatsRead)
def get_notification_stats(
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> NotificationStatsRead:
    stats = dispatcher.get_stats(current_user.id)
    return NotificationStatsRead(
        unread_count=stats.unread_count,
        by_type=stats.by_type,
        by_priority=stats.by_priority,
        today_count=stats.today_count,
        urgent_count=stats.urgent_count,
    )


@router.get("/preferences", response_model=PreferenceRead)
def get_preferences(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PreferenceRead:
    return _preference_to_schema(get_or_create_preferences(db, current_user.id))


@router.patch("/preferences", response_model=PreferenceRead)
def patch_preferences(
    payload: PreferenceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PreferenceRead:
    try:
        preference = update_preferences(
            db, current_user.id, payload.model_dump(exclude_unset=True, mode="json")
        )
    except ValueError as exc:
        _raise_http_error(exc)
    return _preference_to_schema(preference)


@router.post("/mark-all-read", response_model=MarkAllReadResult)
def mark_all_notifications_read(
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> MarkAllReadResult:
    return MarkAllReadResult(updated=dispatcher.mark_all_as_read(current_user.id))


@router.post("", response_model=list[NotificationRead], status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(require_admin),
) -> list[NotificationRead]:
    """Create a notification for each listed recipient."""

    request = NotificationRequest(**payload.model_dump())
    try:
        notifications = dispatcher.create(request, created_by=current_user.id)
    except ValueError as exc:
        _raise_http_error(exc)
    return [_notification_to_schema(notification) for notification in notifications]


@router.post("/broadcast", response_model=BroadcastResult)
def broadcast_notification(
    payload: NotificationBroadcast,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(require_admin),
) -> BroadcastResult:
    """Notify every active user matching the role and team filters."""

    try:
        created = dispatcher.broadcast(
            BroadcastRequest(**payload.model_dump()), created_by=current_user.id
        )
    except ValueError as exc:
        _raise_http_error(exc)
    return BroadcastResult(created=created)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    try:
        notification = dispatcher.mark_as_read(notification_id, current_user.id)
    except ValueError as exc:
        _raise_http_error(exc)
    return _notification_to_schema(notification)


@router.patch("/{notification_id}/archive", status_code=status.HTTP_204_NO_CONTENT)
def archive_notification(
    notification_id: int,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> Response:
    try:
        dispatcher.archive(notification_id, current_user.id)
    except ValueError as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> Response:
    try:
        dispatcher.delete(notification_id, current_user.id)
    except ValueError as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _unread_snapshot(user_id: int) -> list[dict[str, Any]]:
    session = SessionLocal()
    try:
        pending = NotificationDispatcher(session).get_unread(user_id)
    finally:
        session.close()
    return [serialize_notification(notification) for notification in pending]


def _acknowledge(user_id: int, ids: list[Any]) -> int:
    notification_ids = [value for value in ids if isinstance(value, int)]
    session = SessionLocal()
    try:
        return NotificationDispatcher(session).mark_many_as_read(notification_ids, user_id)
    finally:
        session.close()


async def _handle_message(handle: ConnectionHandle, message: dict[str, Any]) -> None:
    websocket = handle.websocket
    message_type = message.get("type")
    data = message.get("data") if isinstance(message.get("data"), dict) else message

    if message_type == "ping":
        await websocket.send_json(
            {"type": "pong", "data": {"timestamp": now_in_app_timezone().isoformat()}}
        )
    elif message_type in {"subscribe", "unsubscribe"}:
        types = [value for value in data.get("types") or [] if isinstance(value, str)]
        if message_type == "subscribe":
            current = notification_manager.subscribe(handle, types)
            reply = "subscribed"
        else:
            current = notification_manager.unsubscribe(handle, types)
            reply = "unsubscribed"
        await websocket.send_json({"type": reply, "data": {"types": current}})
    elif message_type == "ack":
        ids = data.get("ids")
        if isinstance(ids, list) and ids:
            _acknowledge(handle.user_id, ids)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to the authenticated user."""

    credential = websocket.query_params.get("token") or bearer_credential(
        websocket.headers.get("authorization")
    )
    handle = await notification_manager.connect(
        websocket, credential, authenticate=authenticate_websocket_credential
    )
    if handle is None:
        return

    try:
        await websocket.send_json({"type": "init", "data": _unread_snapshot(handle.user_id)})
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignoring malformed message from user %s", handle.user_id)
                continue

            if isinstance(message, dict):
                await _handle_message(handle, message)
    except WebSocketDisconnect:
        pass
    finally:
        notification_manager.disconnect(handle)
