"""Use cases for creating, delivering and maintaining notifications."""

from .dispatcher import NotificationDispatcher, NotificationStats, RecipientDirectory
from .errors import (
    NOT_FOUND_MESSAGE,
    NotificationNotFoundError,
    NotificationValidationError,
    ValidationIssue,
)
from .maintenance import (
    DigestComposer,
    DigestRunSummary,
    cleanup_expired_notifications,
    digest_window,
    send_notification_digests,
)
from .preferences import (
    apply_quiet_hours,
    get_or_create_preferences,
    is_quiet_hours,
    is_type_enabled,
    resolve_channels,
    update_preferences,
)
from .requests import BroadcastRequest, NotificationRequest
from .validators import (
    validate_broadcast_request,
    validate_notification_request,
    validate_preference,
    validate_preference_patch,
)

__all__ = [
    "BroadcastRequest",
    "DigestComposer",
    "DigestRunSummary",
    "NOT_FOUND_MESSAGE",
    "NotificationDispatcher",
    "NotificationNotFoundError",
    "NotificationRequest",
    "NotificationStats",
    "NotificationValidationError",
    "RecipientDirectory",
    "ValidationIssue",
    "apply_quiet_hours",
    "cleanup_expired_notifications",
    "digest_window",
    "get_or_create_preferences",
    "is_quiet_hours",
    "is_type_enabled",
    "resolve_channels",
    "send_notification_digests",
    "update_preferences",
    "validate_broadcast_request",
    "validate_notification_request",
    "validate_preference",
    "validate_preference_patch",
]
