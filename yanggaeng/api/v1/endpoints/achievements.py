"""Daily goal achievement endpoints."""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from yanggaeng.config import settings
from yanggaeng.dependencies import get_current_user_id
from yanggaeng.models.achievement import AchievementEvaluation, DailyAchievement, EvaluateRequest
from yanggaeng.models.auth import ApiErrorResponse
from yanggaeng.services.achievement_service import get_evaluator, to_daily_achievement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/achievements", tags=["Achievements"])
limiter = Limiter(key_func=get_remote_address)


@router.get(
    "/today",
    response_model=DailyAchievement,
    responses={503: {"model": ApiErrorResponse}},
    summary="Get today's goal achievement state",
)
@limiter.limit(settings.RATE_LIMIT)
async def achievement_today(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> DailyAchievement:
    """Return today's (KST) record, creating an empty one on first access."""
    return to_daily_achievement(get_evaluator().load_today(user_id))


@router.post(
    "/evaluate",
    response_model=AchievementEvaluation,
    responses={503: {"model": ApiErrorResponse}},
    summary="Re-evaluate today's goals",
)
@limiter.limit(settings.RATE_LIMIT)
async def evaluate_achievement(
    request: Request,
    body: EvaluateRequest,
    user_id: str = Depends(get_current_user_id),
) -> AchievementEvaluation:
    """Submit the current goal-met flags.

    The client calls this whenever calories, water or missions change.
    ``notified`` is true only for the call that produced today's
    achievement notification.
    """
    return get_evaluator().evaluate(
        user_id,
        body.calories_met,
        body.water_met,
        body.missions_met,
    )
