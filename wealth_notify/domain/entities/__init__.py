"""Domain entities exposed by the application."""

from .notification import (
    CHANNEL_ORDER,
    DEFAULT_CHANNELS_BY_TYPE,
    PRIORITY_RANK,
    ChannelDeliveryStatus,
    EntityType,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    default_channels_for,
)
from .notification_preference import (
    DIGEST_DAILY,
    DIGEST_FREQUENCIES,
    DIGEST_WEEKLY,
    ChannelSettings,
    DigestSettings,
    NotificationPreference,
    QuietHours,
    TypeSetting,
    build_default_preference,
    default_type_settings,
)
from .user import ADMIN_ROLE_ALIAS, Role, User

__all__ = [
    "ADMIN_ROLE_ALIAS",
    "CHANNEL_ORDER",
    "ChannelDeliveryStatus",
    "ChannelSettings",
    "DEFAULT_CHANNELS_BY_TYPE",
    "DIGEST_DAILY",
    "DIGEST_FREQUENCIES",
    "DIGEST_WEEKLY",
    "DigestSettings",
    "EntityType",
    "Notification",
    "NotificationChannel",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationType",
    "PRIORITY_RANK",
    "QuietHours",
    "Role",
    "TypeSetting",
    "User",
    "build_default_preference",
    "default_channels_for",
    "default_type_settings",
]
