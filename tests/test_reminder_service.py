"""Tests for scheduled reminder dispatch and the notification service."""

from datetime import datetime, timedelta

import pytest

from yanggaeng.config import settings
from yanggaeng.db import notification_store
from yanggaeng.db.errors import StoreUnavailableError
from yanggaeng.db.notification_store import InMemoryNotificationStore
from yanggaeng.kst import KST
from yanggaeng.services import notification_service
from yanggaeng.services.reminder_service import dispatch_reminders


def _at(hour: int, minute: int = 0, day: int = 10) -> datetime:
    return datetime(2025, 3, day, hour, minute, tzinfo=KST)


def _types(inbox, uid: str) -> list[str]:
    return [n["type"] for n in inbox.list_notifications(uid, 50)]


class TestTimedReminders:
    """Meal, water and exercise slots."""

    def test_breakfast_reminder_fires_in_window(self, inbox):
        notification_service.update_settings("u1")
        result = dispatch_reminders(_at(7, 2))
        assert result.notifications_created == 1
        notifications = inbox.list_notifications("u1", 50)
        assert notifications[0]["type"] == "meal_reminder"
        assert notifications[0]["title"] == "아침 식사 알림"

    def test_slot_fires_once_per_day(self, inbox):
        notification_service.update_settings("u1")
        dispatch_reminders(_at(7, 0))
        assert dispatch_reminders(_at(7, 5)).notifications_created == 0
        assert dispatch_reminders(_at(7, 29)).notifications_created == 0
        assert _types(inbox, "u1") == ["meal_reminder"]

    def test_same_slot_fires_again_next_day(self, inbox):
        notification_service.update_settings("u1")
        dispatch_reminders(_at(7, 1))
        assert dispatch_reminders(_at(7, 1, day=11)).notifications_created == 1

    def test_late_tick_inside_grace_still_delivers(self, inbox):
        notification_service.update_settings("u1")
        assert dispatch_reminders(_at(8, 25)).notifications_created == 1
        assert _types(inbox, "u1") == ["water_reminder"]

    def test_outside_grace_window_nothing_fires(self, inbox):
        notification_service.update_settings("u1")
        assert dispatch_reminders(_at(7, 30)).notifications_created == 0
        assert dispatch_reminders(_at(10, 0)).notifications_created == 0

    def test_overlapping_slots_both_fire(self, inbox, monkeypatch):
        monkeypatch.setattr(settings, "REMINDER_GRACE_MINUTES", 45)
        notification_service.update_settings("u1")
        result = dispatch_reminders(_at(18, 31))
        assert result.notifications_created == 2
        assert sorted(_types(inbox, "u1")) == ["exercise_reminder", "meal_reminder"]

    def test_disabled_setting_suppresses_reminder(self, inbox):
        notification_service.update_settings("u1", meal_reminder=False)
        assert dispatch_reminders(_at(12, 0)).notifications_created == 0
        assert dispatch_reminders(_at(13, 0)).notifications_created == 1

    def test_users_without_settings_are_skipped(self, inbox):
        assert dispatch_reminders(_at(7, 0)).notifications_created == 0

    def test_result_timestamp_is_kst(self, inbox):
        result = dispatch_reminders(_at(9, 0))
        assert result.success is True
        assert result.timestamp.utcoffset() == timedelta(hours=9)


class TestActivitySuppression:
    """Users currently in the app are not interrupted."""

    def test_active_user_is_skipped(self, inbox):
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(6, 58))
        assert dispatch_reminders(_at(7, 0)).notifications_created == 0

    def test_skipped_reminder_goes_out_later_in_window(self, inbox):
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(6, 58))
        dispatch_reminders(_at(7, 0))
        assert dispatch_reminders(_at(7, 10)).notifications_created == 1

    def test_activity_outage_dispatches_without_suppression(self, monkeypatch):
        class NoActivityStore(InMemoryNotificationStore):
            def get_activity_map(self):
                raise StoreUnavailableError("deadline exceeded")

        monkeypatch.setattr(notification_store, "_store", NoActivityStore())
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(6, 58))
        assert dispatch_reminders(_at(7, 0)).notifications_created == 1


class TestInactivityReminder:
    """Check-in after a long absence."""

    def test_fires_after_inactivity_threshold(self, inbox):
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(2, 0))
        assert dispatch_reminders(_at(13, 59)).notifications_created == 0
        assert dispatch_reminders(_at(14, 0)).notifications_created == 1
        assert _types(inbox, "u1") == ["default_reminder"]

    def test_fires_once_per_inactive_stretch(self, inbox):
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(2, 0))
        dispatch_reminders(_at(14, 0))
        assert dispatch_reminders(_at(15, 0)).notifications_created == 0
        assert dispatch_reminders(_at(2, 0, day=11)).notifications_created == 0

    def test_new_stretch_fires_again(self, inbox):
        notification_service.update_settings("u1")
        notification_service.touch_activity("u1", _at(2, 0))
        dispatch_reminders(_at(14, 0))
        notification_service.touch_activity("u1", _at(15, 0))
        assert dispatch_reminders(_at(3, 0, day=11)).notifications_created == 1

    def test_never_active_users_get_no_checkin(self, inbox):
        notification_service.update_settings("u1", meal_reminder=False, water_reminder=False)
        assert dispatch_reminders(_at(15, 0)).notifications_created == 0

    def test_disabled_default_reminder(self, inbox):
        notification_service.update_settings("u1", default_reminder=False)
        notification_service.touch_activity("u1", _at(1, 0))
        assert dispatch_reminders(_at(15, 0)).notifications_created == 0


class TestNotificationService:
    """Inbox and settings operations."""

    def test_settings_default_to_enabled(self, inbox):
        current = notification_service.get_settings("u1")
        assert current.model_dump() == {
            "meal_reminder": True,
            "water_reminder": True,
            "exercise_reminder": True,
            "coaching_reminder": True,
            "default_reminder": True,
        }

    def test_partial_update_merges(self, inbox):
        notification_service.update_settings("u1", water_reminder=False)
        updated = notification_service.update_settings("u1", meal_reminder=False)
        assert updated.water_reminder is False
        assert updated.meal_reminder is False
        assert updated.exercise_reminder is True

    def test_unknown_setting_rejected(self, inbox):
        with pytest.raises(ValueError):
            notification_service.update_settings("u1", sms_reminder=True)

    def test_null_stored_fields_mean_enabled(self, inbox):
        inbox.save_settings("u1", {"meal_reminder": None, "water_reminder": False})
        current = notification_service.get_settings("u1")
        assert current.meal_reminder is True
        assert current.water_reminder is False

    def test_inbox_notifier_writes_goal_achievement(self, inbox):
        notification_service.InboxNotifier().notify("u1", "title", "body")
        page = notification_service.list_notifications("u1")
        assert page.unread_count == 1
        assert page.notifications[0].type == "goal_achievement"
        assert page.notifications[0].message == "body"

    def test_list_is_newest_first_and_limited(self, inbox):
        for i in range(5):
            inbox.add_notification("u1", "meal_reminder", f"n{i}")
        page = notification_service.list_notifications("u1", limit=3)
        assert [n.title for n in page.notifications] == ["n4", "n3", "n2"]
        assert page.unread_count == 5

    def test_read_and_delete_are_owner_scoped(self, inbox):
        doc = inbox.add_notification("u1", "meal_reminder", "mine")
        assert notification_service.mark_as_read("u2", doc["id"]) is False
        assert notification_service.delete_notification("u2", doc["id"]) is False
        assert notification_service.mark_as_read("u1", doc["id"]) is True
        assert notification_service.list_notifications("u1").unread_count == 0

    def test_soft_delete_hides_notification(self, inbox):
        doc = inbox.add_notification("u1", "meal_reminder", "gone")
        assert notification_service.delete_notification("u1", doc["id"]) is True
        assert notification_service.list_notifications("u1").notifications == []
        assert notification_service.delete_notification("u1", doc["id"]) is False

    def test_mark_all_as_read(self, inbox):
        for i in range(3):
            inbox.add_notification("u1", "water_reminder", f"n{i}")
        inbox.add_notification("u2", "water_reminder", "other")
        assert notification_service.mark_all_as_read("u1") == 3
        assert notification_service.mark_all_as_read("u1") == 0
        assert notification_service.list_notifications("u2").unread_count == 1
