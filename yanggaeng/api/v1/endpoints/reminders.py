"""Scheduled reminder endpoint, called by the cron job with ``X-API-Key``."""

import logging

from fastapi import APIRouter, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from yanggaeng.config import settings
from yanggaeng.models.notification import ReminderDispatchResult
from yanggaeng.services.reminder_service import dispatch_reminders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])
limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/dispatch",
    response_model=ReminderDispatchResult,
    summary="Run one reminder dispatch tick",
)
@limiter.limit(settings.RATE_LIMIT)
async def dispatch(request: Request) -> ReminderDispatchResult:
    """Write every reminder due now to the matching inboxes."""
    return dispatch_reminders()
