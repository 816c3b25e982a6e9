"""Business logic for the notification inbox, settings and activity heartbeat."""

import logging
from datetime import datetime

from yanggaeng.config import settings
from yanggaeng.db.notification_store import SETTING_FIELDS, get_notification_store
from yanggaeng.kst import utc_now
from yanggaeng.models.notification import Notification, NotificationList, NotificationSettings
from yanggaeng.services.achievement_service import Notifier

logger = logging.getLogger(__name__)

GOAL_ACHIEVEMENT_TYPE = "goal_achievement"


class InboxNotifier(Notifier):
    """Delivers notifications by writing them to the user's inbox."""

    def __init__(self, type_: str = GOAL_ACHIEVEMENT_TYPE) -> None:
        self._type = type_

    def notify(self, uid: str, title: str, body: str) -> None:
        get_notification_store().add_notification(uid, self._type, title, body)
        logger.info("Queued %s notification for %s", self._type, uid)


def list_notifications(uid: str, limit: int | None = None) -> NotificationList:
    """Return the newest non-deleted notifications and the unread count."""
    store = get_notification_store()
    rows = store.list_notifications(uid, limit or settings.NOTIFICATION_PAGE_SIZE)
    return NotificationList(
        notifications=[Notification(**row) for row in rows],
        unread_count=store.count_unread(uid),
    )


def mark_as_read(uid: str, notification_id: str) -> bool:
    return get_notification_store().mark_read(uid, notification_id)


def mark_all_as_read(uid: str) -> int:
    updated = get_notification_store().mark_all_read(uid)
    logger.debug("Marked %d notifications read for %s", updated, uid)
    return updated


def delete_notification(uid: str, notification_id: str) -> bool:
    """Soft-delete a notification; it disappears from the inbox but is kept."""
    return get_notification_store().soft_delete(uid, notification_id)


def settings_from_record(stored: dict | None) -> NotificationSettings:
    """Build settings from a stored row; missing or null fields mean enabled."""
    values = {
        field: (stored or {}).get(field)
        for field in SETTING_FIELDS
    }
    return NotificationSettings(**{k: v for k, v in values.items() if v is not None})


def get_settings(uid: str) -> NotificationSettings:
    """Return the user's settings, falling back to all-enabled defaults."""
    return settings_from_record(get_notification_store().get_settings(uid))


def update_settings(uid: str, **changes: bool) -> NotificationSettings:
    """Merge *changes* onto the current settings and persist the result."""
    unknown = set(changes) - set(SETTING_FIELDS)
    if unknown:
        raise ValueError(f"unknown_settings: {', '.join(sorted(unknown))}")
    merged = get_settings(uid).model_dump()
    merged.update(changes)
    stored = get_notification_store().save_settings(uid, merged)
    logger.info("Updated notification settings for %s", uid)
    return settings_from_record(stored)


def touch_activity(uid: str, at: datetime | None = None) -> datetime:
    """Record a heartbeat and return the stored timestamp."""
    moment = at or utc_now()
    get_notification_store().touch_activity(uid, moment)
    return moment
