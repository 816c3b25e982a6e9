"""Scheduled reminder dispatch.

A cron job calls ``dispatch_reminders`` every few minutes.  Each timed
reminder is due from its KST wall-clock time until ``REMINDER_GRACE_MINUTES``
later, and is claimed in the dispatch log before it is written to the inbox,
so a slot fires at most once per user per day however often the job runs.
The inactivity check-in is claimed once per stretch of inactivity.

Users active within ``ACTIVE_SUPPRESSION_MINUTES`` are skipped for the tick;
a reminder skipped that way can still go out on a later tick inside the grace
window.  If activity cannot be read the tick still runs, without
suppression and without inactivity check-ins.
"""

import logging
from datetime import datetime, time, timedelta

from yanggaeng.config import settings
from yanggaeng.db.errors import StoreUnavailableError
from yanggaeng.db.notification_store import get_notification_store
from yanggaeng.kst import KST, to_kst, utc_now
from yanggaeng.models.notification import NotificationSettings, ReminderDispatchResult
from yanggaeng.services.notification_service import settings_from_record

logger = logging.getLogger(__name__)

# A reminder's notification type is the name of the setting that enables it.
TIMED_REMINDERS: dict[str, dict] = {
    "meal_breakfast": {
        "setting": "meal_reminder",
        "at": time(7, 0),
        "title": "아침 식사 알림",
        "message": "아침 식사는 하셨나요? 행복한 하루를 만들어봅시다",
    },
    "meal_lunch": {
        "setting": "meal_reminder",
        "at": time(12, 0),
        "title": "점심 식사 알림",
        "message": "점심 식사는 하셨나요? 어떤 음식을 드셨나요?",
    },
    "meal_dinner": {
        "setting": "meal_reminder",
        "at": time(18, 0),
        "title": "저녁 식사 알림",
        "message": "저녁 식사는 하셨나요? 오늘도 고생 많으셨어요",
    },
    "water_morning": {
        "setting": "water_reminder",
        "at": time(8, 0),
        "title": "물 섭취 알림",
        "message": "물 한잔 마셔가는 여유, 어떨까요?",
    },
    "water_afternoon": {
        "setting": "water_reminder",
        "at": time(13, 0),
        "title": "물 섭취 알림",
        "message": "물 한잔 마셔가는 여유, 어떨까요?",
    },
    "water_evening": {
        "setting": "water_reminder",
        "at": time(19, 0),
        "title": "물 섭취 알림",
        "message": "물 한잔 마셔가는 여유, 어떨까요?",
    },
    "exercise_evening": {
        "setting": "exercise_reminder",
        "at": time(18, 30),
        "title": "운동 알림",
        "message": "오늘 운동은 하셨나요? 하루를 건강하게 마무리해봅시다",
    },
}

INACTIVITY_REMINDER = {
    "setting": "default_reminder",
    "title": "안녕하세요",
    "message": "혹시 무슨 일이 있으신가요? 오늘 많이 바쁘신가봐요",
}


def due_timed_reminders(
    user_settings: NotificationSettings,
    now_kst: datetime,
    grace: timedelta,
) -> list[str]:
    """Return the timed reminder slots that are inside their window at *now_kst*."""
    due: list[str] = []
    for slot, rule in TIMED_REMINDERS.items():
        if not getattr(user_settings, rule["setting"]):
            continue
        start = datetime.combine(now_kst.date(), rule["at"], tzinfo=KST)
        if start <= now_kst < start + grace:
            due.append(slot)
    return due


def dispatch_reminders(now: datetime | None = None) -> ReminderDispatchResult:
    """Run one dispatcher tick and write due reminders to user inboxes."""
    now_kst = to_kst(now or utc_now())
    today = now_kst.date().isoformat()
    grace = timedelta(minutes=settings.REMINDER_GRACE_MINUTES)
    active_window = timedelta(minutes=settings.ACTIVE_SUPPRESSION_MINUTES)
    inactivity = timedelta(hours=settings.INACTIVITY_REMINDER_HOURS)

    logger.info("Scheduled reminder check at KST %s", now_kst.strftime("%H:%M"))

    store = get_notification_store()
    try:
        activity = store.get_activity_map()
    except StoreUnavailableError as e:
        logger.warning("Activity lookup failed, dispatching without suppression: %s", e)
        activity = {}
    created = 0

    for uid, raw_settings in store.list_settings().items():
        user_settings = settings_from_record(raw_settings)
        last_active = activity.get(uid)
        idle = now_kst - to_kst(last_active) if last_active is not None else None

        if idle is not None and idle < active_window:
            continue

        for slot in due_timed_reminders(user_settings, now_kst, grace):
            rule = TIMED_REMINDERS[slot]
            if not store.claim_reminder(uid, today, slot):
                continue
            store.add_notification(uid, rule["setting"], rule["title"], rule["message"])
            created += 1

        if user_settings.default_reminder and idle is not None and idle >= inactivity:
            # one check-in per stretch of inactivity, keyed by when it began
            started = to_kst(last_active)
            slot = f"inactive_{int(started.timestamp())}"
            if store.claim_reminder(uid, started.date().isoformat(), slot):
                store.add_notification(
                    uid,
                    INACTIVITY_REMINDER["setting"],
                    INACTIVITY_REMINDER["title"],
                    INACTIVITY_REMINDER["message"],
                )
                created += 1

    if created:
        logger.info("Created %d reminder notifications", created)
    return ReminderDispatchResult(notifications_created=created, timestamp=now_kst)
