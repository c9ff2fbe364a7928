from fastapi import APIRouter

from wealth_notify.infrastructure.notifications import notification_manager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, object]:
    return {
        "status": "ok",
        "connected_users": notification_manager.connected_user_count(),
    }
