"""Transactional e-mail delivery for notifications and digests via SendGrid."""

from __future__ import annotations

import json
import logging
from html import escape
from typing import Any, Sequence

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from wealth_notify.config import get_settings
from wealth_notify.domain.entities import Notification

logger = logging.getLogger(__name__)


def _error_details(body: Any) -> str | None:
    """Flatten a SendGrid error body (bytes, JSON text or dict) into one line."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        text = body.strip()
        if not text:
            return None
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            return text
    if isinstance(body, list):
        return "; ".join(str(entry) for entry in body) or None
    if not isinstance(body, dict):
        return None

    described = []
    for error in body.get("errors") or []:
        if not isinstance(error, dict) or not error.get("message"):
            continue
        hint = f" (help: {error['help']})" if error.get("help") else ""
        described.append(f"{error['message']}{hint}")
    return "; ".join(described) if described else json.dumps(body, default=str)


def _report_failure(source: Any) -> None:
    status_code = getattr(source, "status_code", None)
    details = _error_details(getattr(source, "body", None))
    if details is None and isinstance(source, Exception):
        details = str(source) or source.__class__.__name__
    status = f" with status {status_code}" if status_code else ""
    logger.error("SendGrid rejected the message%s: %s", status, details or "no details")


def send_email(subject: str, html_content: str, recipient: str) -> bool:
    """Send one HTML e-mail through SendGrid; ``False`` when not delivered.

    Missing credentials are not an error: delivery is simply skipped.
    """

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        logger.info("SendGrid is not configured; e-mail to %s skipped", recipient)
        return False

    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(
            Mail(
                from_email=settings.sendgrid_sender,
                to_emails=recipient,
                subject=subject,
                html_content=html_content,
            )
        )
    except Exception as exc:
        _report_failure(exc)
        return False

    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int) and 200 <= status_code < 300:
        return True
    _report_failure(response)
    return False


def render_notification_html(notification: Notification) -> str:
    parts = [
        f"<h2>{escape(notification.title)}</h2>",
        f"<p>{escape(notification.message)}</p>",
    ]
    if notification.entity_name:
        parts.append(f"<p><strong>Regarding:</strong> {escape(notification.entity_name)}</p>")
    if notification.action_url:
        label = escape(notification.action_label or "Open in CRM")
        parts.append(f'<p><a href="{escape(notification.action_url)}">{label}</a></p>')
    return "".join(parts)


def send_notification_email(email: str, notification: Notification) -> bool:
    """Deliver a single notification to ``email``."""

    prefix = "[Urgent] " if notification.priority.value == "urgent" else ""
    return send_email(
        f"{prefix}{notification.title}", render_notification_html(notification), email
    )


def render_digest_html(
    name: str, notifications: Sequence[Notification], *, frequency: str
) -> str:
    period = "week" if frequency == "weekly" else "day"
    items = "".join(
        "<li>"
        f"<strong>[{escape(item.priority.value)}] {escape(item.title)}</strong>"
        f": {escape(item.message)}"
        "</li>"
        for item in notifications
    )
    return (
        f"<p>Hello {escape(name)},</p>"
        f"<p>You received {len(notifications)} notification(s) during the last {period}.</p>"
        f"<ul>{items}</ul>"
    )


def send_digest_email(
    email: str, name: str, notifications: Sequence[Notification], *, frequency: str
) -> bool:
    """Send the periodic summary of ``notifications`` to ``email``."""

    subject = "Your weekly notification digest" if frequency == "weekly" else "Your daily notification digest"
    return send_email(subject, render_digest_html(name, notifications, frequency=frequency), email)


__all__ = [
    "render_digest_html",
    "render_notification_html",
    "send_digest_email",
    "send_email",
    "send_notification_email",
]
