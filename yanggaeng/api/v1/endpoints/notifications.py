"""Notification inbox and reminder settings endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from yanggaeng.config import settings
from yanggaeng.dependencies import get_current_user_id
from yanggaeng.models.auth import ApiErrorResponse
from yanggaeng.models.notification import (
    MarkAllReadResponse,
    NotificationList,
    NotificationSettings,
    UpdateNotificationSettingsRequest,
)
from yanggaeng.services import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
limiter = Limiter(key_func=get_remote_address)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": {"code": "notification_not_found", "message": "Notification not found"}},
    )


@router.get(
    "",
    response_model=NotificationList,
    summary="List the current user's notifications",
)
@limiter.limit(settings.RATE_LIMIT)
async def list_notifications(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    limit: int = Query(50, ge=1, le=100, description="Max notifications to return"),
) -> NotificationList:
    """Return non-deleted notifications, newest first, with the unread count."""
    return notification_service.list_notifications(user_id, limit=limit)


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark every notification as read",
)
@limiter.limit(settings.RATE_LIMIT)
async def read_all_notifications(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=notification_service.mark_all_as_read(user_id))


@router.get(
    "/settings",
    response_model=NotificationSettings,
    summary="Get reminder settings",
)
@limiter.limit(settings.RATE_LIMIT)
async def get_notification_settings(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> NotificationSettings:
    """Return the user's reminder switches (all on until changed)."""
    return notification_service.get_settings(user_id)


@router.patch(
    "/settings",
    response_model=NotificationSettings,
    summary="Update reminder settings",
)
@limiter.limit(settings.RATE_LIMIT)
async def update_notification_settings(
    request: Request,
    body: UpdateNotificationSettingsRequest,
    user_id: str = Depends(get_current_user_id),
) -> NotificationSettings:
    """Change only the switches present in the body."""
    changes = body.model_dump(exclude_none=True)
    return notification_service.update_settings(user_id, **changes)


@router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ApiErrorResponse}},
    summary="Mark a notification as read",
)
@limiter.limit(settings.RATE_LIMIT)
async def read_notification(
    request: Request,
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
) -> None:
    if not notification_service.mark_as_read(user_id, notification_id):
        raise _not_found()


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ApiErrorResponse}},
    summary="Delete a notification",
)
@limiter.limit(settings.RATE_LIMIT)
async def delete_notification(
    request: Request,
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
) -> None:
    """Hide a notification from the inbox. Deletion is soft."""
    if not notification_service.delete_notification(user_id, notification_id):
        raise _not_found()
