"""Directory lookups used to address notifications."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from wealth_notify.infrastructure.repositories import UserRepository


class UserDirectory:
    """Resolve broadcast filters and contact details from the user table."""

    def __init__(self, session: Session) -> None:
        self._users = UserRepository(session)

    def resolve_recipients(
        self,
        *,
        roles: Sequence[str] | None = None,
        team_ids: Sequence[str] | None = None,
    ) -> list[int]:
        return self._users.list_active_ids(role_aliases=roles, team_ids=team_ids)

    def email_for(self, user_id: int) -> str | None:
        user = self._users.get(user_id)
        if user is None or not user.is_active:
            return None
        return user.email

    def display_name_for(self, user_id: int) -> str:
        user = self._users.get(user_id)
        return user.name if user else "there"


__all__ = ["UserDirectory"]
