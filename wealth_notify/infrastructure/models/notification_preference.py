"""SQLAlchemy model for per-user notification preferences."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint

from wealth_notify.infrastructure.database import Base
from wealth_notify.utils import now_in_app_naive_datetime


class NotificationPreferenceModel(Base):
    """One row per user; the unique constraint backs the get-or-create race."""

    __tablename__ = "notification_preference"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_notification_preference_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    channel_settings = Column(JSON, nullable=False, default=dict)
    type_settings = Column(JSON, nullable=False, default=dict)
    quiet_hours = Column(JSON, nullable=False, default=dict)
    digest_settings = Column(JSON, nullable=False, default=dict)
    push_token = Column(String(512), nullable=True)
    push_token_updated_at = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["NotificationPreferenceModel"]
