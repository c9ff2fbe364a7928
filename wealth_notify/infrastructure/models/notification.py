"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from wealth_notify.infrastructure.database import Base
from wealth_notify.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_read_created", "recipient_id", "is_read", "created_at"),
        Index("ix_notification_recipient_archived", "recipient_id", "is_archived"),
    )

    id = Column(Integer, primary_key=True, index=True)
    notification_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False, default="normal")
    recipient_id = Column(Integer, nullable=False, index=True)
    entity_type = Column(String(30), nullable=True)
    entity_id = Column(String(64), nullable=True)
    entity_name = Column(String(200), nullable=True)
    action_url = Column(String(500), nullable=True)
    action_label = Column(String(100), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(), nullable=True)
    channels_sent = Column(JSON, nullable=False, default=list)
    delivery_status = Column(JSON, nullable=False, default=dict)
    expires_at = Column(DateTime(), nullable=True, index=True)
    # ``metadata`` is reserved by the declarative base.
    extra_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["NotificationModel"]
