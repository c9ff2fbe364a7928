"""Directory view of the CRM users that can receive notifications."""

from dataclasses import dataclass
from datetime import datetime

ADMIN_ROLE_ALIAS = "admin"


@dataclass
class Role:
    """Role assigned to a user (advisor, operations, compliance, admin...)."""

    id: int
    name: str
    alias: str


@dataclass
class User:
    """Attributes of a user needed to address and authorize notifications."""

    id: int | None
    role: Role
    name: str
    email: str
    team_id: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    def has_role(self, alias: str) -> bool:
        """Return ``True`` when the user's role alias matches ``alias``."""

        return self.role.alias.lower() == alias.lower()

    def is_admin(self) -> bool:
        """Return ``True`` when the user is an administrator."""

        return self.has_role(ADMIN_ROLE_ALIAS)


__all__ = ["ADMIN_ROLE_ALIAS", "Role", "User"]
