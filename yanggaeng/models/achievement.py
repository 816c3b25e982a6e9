"""Pydantic models for daily goal achievement."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EvaluateRequest(BaseModel):
    """Goal-met flags recomputed by the client from today's totals."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    calories_met: bool = Field(..., description="Calorie intake reached the user's target")
    water_met: bool = Field(..., description="Water intake reached the user's target")
    missions_met: bool = Field(..., description="All of today's missions are done")


class DailyAchievement(BaseModel):
    """Stored achievement state for one user and KST date."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: str = Field(..., description="User ID")
    date: str = Field(..., description="KST calendar date (YYYY-MM-DD)")
    achieved: bool = Field(False, description="All goals met as of the last evaluation")
    notified_at: Optional[datetime] = Field(None, description="When the achievement notification was sent")
    updated_at: Optional[datetime] = Field(None, description="Last write timestamp")


class AchievementEvaluation(BaseModel):
    """Outcome of one evaluation call."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    notified: bool = Field(..., description="True only for the call that fired today's notification")
    date: str = Field(..., description="KST calendar date the evaluation applied to")
    achieved: bool = Field(..., description="Stored achieved flag after this call")
    notified_at: Optional[datetime] = Field(None, description="When today's notification was sent, if ever")
