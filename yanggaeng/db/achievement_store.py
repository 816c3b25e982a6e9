"""Pluggable storage for daily goal-achievement records.

One record exists per ``(user_id, date)`` where ``date`` is the KST calendar
date.  ``get_achievement_store()`` returns a singleton whose concrete type
depends on whether the app is running in mock mode.

Record shape::

    {
        "user_id": str,
        "date": "YYYY-MM-DD",
        "achieved": bool,
        "notified_at": datetime | None,
        "updated_at": datetime,
    }

``notified_at`` is append-only: once set for a date no store operation
changes or clears it.
"""

import abc
import logging
import threading
from datetime import datetime

from google.cloud.firestore_v1 import DocumentReference, Transaction, transactional

from yanggaeng.db.errors import ConflictError
from yanggaeng.db.firestore import (
    get_firestore_client,
    is_mock_mode,
    run_transaction,
    translate_errors,
)
from yanggaeng.kst import utc_now

logger = logging.getLogger(__name__)


def _new_record(uid: str, date: str, now: datetime) -> dict:
    return {
        "user_id": uid,
        "date": date,
        "achieved": False,
        "notified_at": None,
        "updated_at": now,
    }


def _apply_changes(
    record: dict,
    achieved: bool | None,
    notified_at: datetime | None,
    now: datetime,
) -> dict:
    """Merge *achieved* / *notified_at* into *record* in place.

    An existing ``notified_at`` always wins over the one supplied.
    """
    if achieved is not None:
        record["achieved"] = achieved
    if notified_at is not None:
        if record.get("notified_at") is None:
            record["notified_at"] = notified_at
        else:
            logger.debug(
                "Ignoring notified_at overwrite for %s on %s", record["user_id"], record["date"]
            )
    record["updated_at"] = now
    return record


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class AchievementStore(abc.ABC):
    """Common interface for daily achievement persistence."""

    @abc.abstractmethod
    def get(self, uid: str, date: str) -> dict | None:
        """Return the record for ``(uid, date)`` or *None*."""

    @abc.abstractmethod
    def create(self, uid: str, date: str) -> dict:
        """Create a fresh ``achieved=False`` record.

        Raises ``ConflictError`` if the record already exists.
        """

    @abc.abstractmethod
    def upsert(
        self,
        uid: str,
        date: str,
        *,
        achieved: bool | None = None,
        notified_at: datetime | None = None,
    ) -> dict:
        """Create or update the record, refreshing ``updated_at``.

        Only the supplied fields change.  A previously set ``notified_at`` is
        preserved whatever the caller passes.
        """

    @abc.abstractmethod
    def claim_notification(
        self, uid: str, date: str, notified_at: datetime,
    ) -> tuple[bool, dict]:
        """Atomically mark the day achieved and, if not yet set, notified.

        Returns ``(claimed, record)``.  ``claimed`` is *True* only for the
        caller whose write set ``notified_at``.
        """


# ---------------------------------------------------------------------------
# In-memory implementation (mock / test mode)
# ---------------------------------------------------------------------------

class InMemoryAchievementStore(AchievementStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def get(self, uid: str, date: str) -> dict | None:
        with self._lock:
            record = self._records.get((uid, date))
            return dict(record) if record is not None else None

    def create(self, uid: str, date: str) -> dict:
        with self._lock:
            if (uid, date) in self._records:
                raise ConflictError("achievement_exists")
            record = _new_record(uid, date, utc_now())
            self._records[(uid, date)] = record
            logger.debug("Created achievement record for %s on %s", uid, date)
            return dict(record)

    def upsert(
        self,
        uid: str,
        date: str,
        *,
        achieved: bool | None = None,
        notified_at: datetime | None = None,
    ) -> dict:
        with self._lock:
            now = utc_now()
            record = self._records.setdefault((uid, date), _new_record(uid, date, now))
            _apply_changes(record, achieved, notified_at, now)
            return dict(record)

    def claim_notification(
        self, uid: str, date: str, notified_at: datetime,
    ) -> tuple[bool, dict]:
        with self._lock:
            now = utc_now()
            record = self._records.setdefault((uid, date), _new_record(uid, date, now))
            claimed = record.get("notified_at") is None
            _apply_changes(record, True, notified_at, now)
            return claimed, dict(record)


# ---------------------------------------------------------------------------
# Firestore implementation
# ---------------------------------------------------------------------------

class FirestoreAchievementStore(AchievementStore):
    """Firestore-backed store using ``daily_goal_achievements/{uid}_{date}``."""

    COLLECTION = "daily_goal_achievements"

    def _ref(self, uid: str, date: str) -> DocumentReference:
        return get_firestore_client().collection(self.COLLECTION).document(f"{uid}_{date}")

    @translate_errors
    def get(self, uid: str, date: str) -> dict | None:
        snap = self._ref(uid, date).get()
        if not snap.exists:
            return None
        return snap.to_dict()

    @translate_errors
    def create(self, uid: str, date: str) -> dict:
        record = _new_record(uid, date, utc_now())
        # create() fails with AlreadyExists instead of overwriting
        self._ref(uid, date).create(record)
        logger.debug("Created Firestore achievement doc for %s on %s", uid, date)
        return record

    @translate_errors
    def upsert(
        self,
        uid: str,
        date: str,
        *,
        achieved: bool | None = None,
        notified_at: datetime | None = None,
    ) -> dict:
        ref = self._ref(uid, date)

        @transactional
        def _upsert(transaction: Transaction) -> dict:
            now = utc_now()
            snap = ref.get(transaction=transaction)
            record = snap.to_dict() if snap.exists else _new_record(uid, date, now)
            _apply_changes(record, achieved, notified_at, now)
            transaction.set(ref, record)
            return record

        return run_transaction(_upsert)

    @translate_errors
    def claim_notification(
        self, uid: str, date: str, notified_at: datetime,
    ) -> tuple[bool, dict]:
        ref = self._ref(uid, date)

        @transactional
        def _claim(transaction: Transaction) -> tuple[bool, dict]:
            now = utc_now()
            snap = ref.get(transaction=transaction)
            record = snap.to_dict() if snap.exists else _new_record(uid, date, now)
            claimed = record.get("notified_at") is None
            _apply_changes(record, True, notified_at, now)
            transaction.set(ref, record)
            return claimed, record

        return run_transaction(_claim)


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_store: AchievementStore | None = None


def get_achievement_store() -> AchievementStore:
    """Return the singleton ``AchievementStore`` instance."""
    global _store
    if _store is None:
        if is_mock_mode():
            logger.info("Using InMemoryAchievementStore (mock mode)")
            _store = InMemoryAchievementStore()
        else:
            logger.info("Using FirestoreAchievementStore")
            _store = FirestoreAchievementStore()
    return _store
