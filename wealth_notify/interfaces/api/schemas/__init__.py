from .notification import (
    BroadcastResult,
    MarkAllReadResult,
    NotificationBroadcast,
    NotificationCreate,
    NotificationRead,
    NotificationStatsRead,
)
from .preference import (
    ChannelSettingsPatch,
    DigestSettingsPatch,
    PreferenceRead,
    PreferenceUpdate,
    QuietHoursPatch,
    TypeSettingPatch,
)

__all__ = [
    "BroadcastResult",
    "ChannelSettingsPatch",
    "DigestSettingsPatch",
    "MarkAllReadResult",
    "NotificationBroadcast",
    "NotificationCreate",
    "NotificationRead",
    "NotificationStatsRead",
    "PreferenceRead",
    "PreferenceUpdate",
    "QuietHoursPatch",
    "TypeSettingPatch",
]
