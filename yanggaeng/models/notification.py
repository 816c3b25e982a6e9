"""Pydantic models for the notification inbox, settings and reminders."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Notification(BaseModel):
    """A single inbox notification."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., description="Notification ID")
    user_id: str = Field(..., description="Recipient user ID")
    type: str = Field(..., description="Notification type, e.g. goal_achievement or meal_reminder")
    title: str = Field(..., description="Title")
    message: Optional[str] = Field(None, description="Body text")
    is_read: bool = Field(False, description="Whether the user has read it")
    related_id: Optional[str] = Field(None, description="ID of a related entity")
    related_type: Optional[str] = Field(None, description="Type of the related entity")
    created_at: datetime = Field(..., description="Creation timestamp")


class NotificationList(BaseModel):
    """Newest-first inbox page with the unread counter."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = Field(0, description="Unread, non-deleted notifications")


class MarkAllReadResponse(BaseModel):
    """Result of marking every notification read."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    updated: int = Field(..., description="Number of notifications marked read")


class NotificationSettings(BaseModel):
    """Per-user reminder switches. Everything is on by default."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    meal_reminder: bool = Field(True, description="Breakfast, lunch and dinner reminders")
    water_reminder: bool = Field(True, description="Water intake reminders")
    exercise_reminder: bool = Field(True, description="Evening exercise reminder")
    coaching_reminder: bool = Field(True, description="Coaching reminders")
    default_reminder: bool = Field(True, description="Check-in after a long inactivity")


class UpdateNotificationSettingsRequest(BaseModel):
    """Partial settings update; omitted fields keep their current value."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    meal_reminder: Optional[bool] = None
    water_reminder: Optional[bool] = None
    exercise_reminder: Optional[bool] = None
    coaching_reminder: Optional[bool] = None
    default_reminder: Optional[bool] = None


class ActivityResponse(BaseModel):
    """Heartbeat acknowledgement."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    last_active_at: datetime = Field(..., description="Recorded activity timestamp")


class ReminderDispatchResult(BaseModel):
    """Summary of one scheduled reminder tick."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    success: bool = True
    notifications_created: int = Field(0, description="Reminders written to inboxes")
    timestamp: datetime = Field(..., description="Tick time in KST")
