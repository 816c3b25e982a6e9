"""Daily goal achievement evaluation with at-most-once notification.

The client re-evaluates whenever today's calorie, water or mission totals
change and sends three goal-met flags.  A celebratory notification fires on
the first time all three are met in a KST day.  ``achieved`` keeps tracking
the live flags afterwards, but the day never notifies again: the persisted
``notified_at`` is the source of truth.  The evaluator remembers users it
has seen notified today so it can skip the read, never the write of
``achieved``.
"""

import abc
import logging
import threading
import weakref
from datetime import datetime
from typing import Callable

from yanggaeng.db.achievement_store import AchievementStore, get_achievement_store
from yanggaeng.db.errors import ConflictError
from yanggaeng.kst import kst_date_iso, utc_now
from yanggaeng.models.achievement import AchievementEvaluation, DailyAchievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_TITLE = "🎉 오늘의 목표 달성!"
ACHIEVEMENT_BODY = "칼로리, 물, 미션 모두 완료했어요!"


class Notifier(abc.ABC):
    """Fire-and-forget notification sink."""

    @abc.abstractmethod
    def notify(self, uid: str, title: str, body: str) -> None:
        """Deliver a notification. May raise; callers do not retry."""


class AchievementEvaluator:
    """Decides, per call, whether today's achievement notification must fire.

    Calls for the same user are serialised with a per-user lock; calls for
    different users run independently.  ``clock`` returns an aware UTC
    datetime and exists so tests can move across KST midnight.
    """

    def __init__(
        self,
        store: AchievementStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        # uid -> KST date on which that user is known to be notified
        self._notified: dict[str, str] = {}
        self._cache_date: str | None = None
        # a lock lives only while some call for that user holds it
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, uid: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(uid)
            if lock is None:
                lock = threading.Lock()
                self._locks[uid] = lock
            return lock

    def _prune(self, today: str) -> None:
        with self._locks_guard:
            if self._cache_date == today:
                return
            stale = [uid for uid, date in list(self._notified.items()) if date != today]
            for uid in stale:
                self._notified.pop(uid, None)
            self._cache_date = today

    def today(self) -> str:
        """Return today's KST date according to the evaluator's clock."""
        return kst_date_iso(self._clock())

    def load_today(self, uid: str) -> dict:
        """Return today's record for *uid*, creating it on first use."""
        return self._load_or_create(uid, self.today())

    def _load_or_create(self, uid: str, date: str) -> dict:
        record = self._store.get(uid, date)
        if record is not None:
            return record
        try:
            return self._store.create(uid, date)
        except ConflictError:
            logger.debug("Achievement record for %s on %s created concurrently", uid, date)
            record = self._store.get(uid, date)
            if record is None:
                raise
            return record

    def evaluate(
        self,
        uid: str,
        calories_met: bool,
        water_met: bool,
        missions_met: bool,
    ) -> AchievementEvaluation:
        """Re-check today's goals for *uid* and notify on the first achievement.

        Safe to call at any frequency and in any order.  Raises
        ``StoreUnavailableError`` when the store fails; the next call
        re-derives everything from the persisted record.
        """
        today = self.today()
        all_met = calories_met and water_met and missions_met

        self._prune(today)

        with self._lock_for(uid):
            if self._notified.get(uid) == today:
                # another instance may have written achieved since; always persist ours
                record = self._store.upsert(uid, today, achieved=all_met)
                return self._result(record, notified=False)

            record = self._load_or_create(uid, today)

            if record.get("notified_at") is not None:
                if record["achieved"] != all_met:
                    record = self._store.upsert(uid, today, achieved=all_met)
                self._remember(uid, record)
                return self._result(record, notified=False)

            if all_met:
                claimed, record = self._store.claim_notification(uid, today, self._clock())
                self._remember(uid, record)
                if not claimed:
                    logger.info("Achievement for %s on %s already claimed elsewhere", uid, today)
                    return self._result(record, notified=False)
                logger.info("User %s met all goals on %s", uid, today)
                self._deliver(uid)
                return self._result(record, notified=True)

            if record["achieved"]:
                record = self._store.upsert(uid, today, achieved=False)
            return self._result(record, notified=False)

    def _remember(self, uid: str, record: dict) -> None:
        if record.get("notified_at") is not None:
            self._notified[uid] = record["date"]

    def _deliver(self, uid: str) -> None:
        # notified_at is already persisted; a failed delivery is not retried
        try:
            self._notifier.notify(uid, ACHIEVEMENT_TITLE, ACHIEVEMENT_BODY)
        except Exception as e:
            logger.warning("Achievement notification for %s failed: %s", uid, e)

    @staticmethod
    def _result(record: dict, notified: bool) -> AchievementEvaluation:
        return AchievementEvaluation(
            notified=notified,
            date=record["date"],
            achieved=record["achieved"],
            notified_at=record.get("notified_at"),
        )


def to_daily_achievement(record: dict) -> DailyAchievement:
    """Convert a store record into its API model."""
    return DailyAchievement(**record)


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_evaluator: AchievementEvaluator | None = None


def get_evaluator() -> AchievementEvaluator:
    """Return the process-wide evaluator wired to the inbox notifier."""
    global _evaluator
    if _evaluator is None:
        from yanggaeng.services.notification_service import InboxNotifier  # local import to avoid circular deps
        _evaluator = AchievementEvaluator(get_achievement_store(), InboxNotifier())
    return _evaluator
