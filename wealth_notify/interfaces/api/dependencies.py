"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from wealth_notify.application.use_cases.notifications import NotificationDispatcher
from wealth_notify.domain.entities import NotificationChannel, User
from wealth_notify.infrastructure.channels import ChannelSenderRegistry, EmailChannelSender
from wealth_notify.infrastructure.database import SessionLocal, get_db
from wealth_notify.infrastructure.directory import UserDirectory
from wealth_notify.infrastructure.repositories import UserRepository
from wealth_notify.infrastructure.security import user_id_from_token

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_current_user(token: str, db: Session) -> User:
    """Resolve the authenticated user for the provided token."""

    try:
        user_id = user_id_from_token(token)
    except ValueError as exc:
        raise _unauthorized() from exc

    user = UserRepository(db).get(user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated user from the bearer token."""

    if credentials is None:
        raise _unauthorized("Not authenticated")
    return resolve_current_user(credentials.credentials, db)


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the authenticated user is active."""

    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Ensure the authenticated user has administrator privileges."""

    if not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized",
        )
    return current_user


def get_notification_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    """Return a dispatcher wired to the directory and the e-mail channel."""

    directory = UserDirectory(db)
    channels = ChannelSenderRegistry(
        {NotificationChannel.EMAIL: EmailChannelSender(directory.email_for)}
    )
    return NotificationDispatcher(db, channels=channels, directory=directory)


def authenticate_websocket_credential(credential: str) -> int | None:
    """Return the active user id behind ``credential`` or ``None``."""

    session = SessionLocal()
    try:
        user = resolve_current_user(credential, session)
    except HTTPException:
        return None
    finally:
        session.close()
    return user.id if user.is_active else None
