"""User activity endpoints."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from yanggaeng.config import settings
from yanggaeng.dependencies import get_current_user_id
from yanggaeng.models.notification import ActivityResponse
from yanggaeng.services import notification_service

router = APIRouter(prefix="/users", tags=["Users"])
limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/me/activity",
    response_model=ActivityResponse,
    summary="Record that the user is active in the app",
)
@limiter.limit(settings.RATE_LIMIT)
async def record_activity(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> ActivityResponse:
    """Heartbeat sent while the app is open.

    Scheduled reminders are held back for users seen in the last few
    minutes, and the inactivity check-in is measured from this timestamp.
    """
    last_active_at = notification_service.touch_activity(user_id)
    return ActivityResponse(last_active_at=last_active_at)
