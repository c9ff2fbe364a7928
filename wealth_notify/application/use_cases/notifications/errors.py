"""Errors raised by the notification use cases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

NOT_FOUND_MESSAGE = "Notification not found"


@dataclass(frozen=True)
class ValidationIssue:
    """A single rejected input: what went wrong (``kind``) and where (``field``)."""

    kind: str
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "field": self.field, "message": self.message}


class NotificationValidationError(ValueError):
    """Raised before any persistence when a request fails validation."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = list(issues)
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(summary or "Invalid notification request")


class NotificationNotFoundError(ValueError):
    """Missing notification, or one owned by somebody else; both look the same."""

    def __init__(self) -> None:
        super().__init__(NOT_FOUND_MESSAGE)


__all__ = [
    "NOT_FOUND_MESSAGE",
    "NotificationNotFoundError",
    "NotificationValidationError",
    "ValidationIssue",
]
