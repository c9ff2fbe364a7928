"""Persistence layer for the user directory."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from wealth_notify.domain.entities import Role, User
from wealth_notify.infrastructure.models import RoleModel, UserModel
from wealth_notify.utils import ensure_app_timezone


class UserRepository:
    """Read users and roles; writes are limited to directory seeding."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User | None:
        model = (
            self.session.query(UserModel)
            .options(joinedload(UserModel.role))
            .filter(UserModel.id == user_id)
            .first()
        )
        return self._to_entity(model) if model else None

    def list_active_ids(
        self,
        *,
        role_aliases: Sequence[str] | None = None,
        team_ids: Sequence[str] | None = None,
    ) -> list[int]:
        """Return active user ids matching any role alias and any team id.

        A missing criterion does not restrict the result; with neither criterion
        every active user is returned.
        """

        query = (
            self.session.query(UserModel.id)
            .join(RoleModel, UserModel.role_id == RoleModel.id)
            .filter(UserModel.is_active.is_(True))
        )
        if role_aliases:
            lowered = [alias.lower() for alias in role_aliases]
            query = query.filter(func.lower(RoleModel.alias).in_(lowered))
        if team_ids:
            query = query.filter(UserModel.team_id.in_(list(team_ids)))
        return [user_id for (user_id,) in query.order_by(UserModel.id).all()]

    def get_or_create_role(self, *, alias: str, name: str | None = None) -> Role:
        model = (
            self.session.query(RoleModel)
            .filter(func.lower(RoleModel.alias) == alias.lower())
            .first()
        )
        if model is None:
            model = RoleModel(alias=alias, name=name or alias.title())
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._role_to_entity(model)

    def create(self, user: User) -> User:
        model = UserModel(
            role_id=user.role.id,
            name=user.name,
            email=user.email,
            team_id=user.team_id,
            is_active=user.is_active,
        )
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            role=UserRepository._role_to_entity(model.role),
            name=model.name,
            email=model.email,
            team_id=model.team_id,
            is_active=model.is_active,
            created_at=ensure_app_timezone(model.created_at),
        )

    @staticmethod
    def _role_to_entity(model_role: RoleModel | None) -> Role:
        if model_role is None:
            msg = "User role is not set"
            raise ValueError(msg)
        return Role(id=model_role.id, name=model_role.name, alias=model_role.alias)


__all__ = ["UserRepository"]
