"""Pluggable storage for the notification inbox and its supporting tables.

Covers four kinds of data:

* inbox notifications (soft-deleted, never removed),
* per-user notification settings,
* per-user activity heartbeats (``last_active_at``),
* the reminder dispatch log used to emit each scheduled reminder at most once.

``get_notification_store()`` returns the in-memory or Firestore singleton.
"""

import abc
import logging
import threading
import uuid
from datetime import datetime

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter, Query

from yanggaeng.db.firestore import get_firestore_client, is_mock_mode, translate_errors
from yanggaeng.kst import utc_now

logger = logging.getLogger(__name__)

SETTING_FIELDS = (
    "meal_reminder",
    "water_reminder",
    "exercise_reminder",
    "coaching_reminder",
    "default_reminder",
)

# Firestore rejects batches larger than this
_BATCH_LIMIT = 500


def _new_notification(
    uid: str,
    type_: str,
    title: str,
    message: str | None,
    related_id: str | None,
    related_type: str | None,
) -> dict:
    return {
        "user_id": uid,
        "type": type_,
        "title": title,
        "message": message,
        "is_read": False,
        "is_deleted": False,
        "related_id": related_id,
        "related_type": related_type,
        "created_at": utc_now(),
    }


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class NotificationStore(abc.ABC):
    """Common interface for inbox, settings, activity and dispatch persistence."""

    # -- inbox --

    @abc.abstractmethod
    def add_notification(
        self,
        uid: str,
        type_: str,
        title: str,
        message: str | None = None,
        related_id: str | None = None,
        related_type: str | None = None,
    ) -> dict:
        """Insert an unread notification and return it (with ``id``)."""

    @abc.abstractmethod
    def list_notifications(self, uid: str, limit: int) -> list[dict]:
        """Return up to *limit* non-deleted notifications, newest first."""

    @abc.abstractmethod
    def count_unread(self, uid: str) -> int:
        """Return the number of unread, non-deleted notifications."""

    @abc.abstractmethod
    def mark_read(self, uid: str, notification_id: str) -> bool:
        """Mark one of *uid*'s notifications read. *False* if not found."""

    @abc.abstractmethod
    def mark_all_read(self, uid: str) -> int:
        """Mark every unread notification read and return how many changed."""

    @abc.abstractmethod
    def soft_delete(self, uid: str, notification_id: str) -> bool:
        """Flag one of *uid*'s notifications deleted. *False* if not found."""

    # -- settings --

    @abc.abstractmethod
    def get_settings(self, uid: str) -> dict | None:
        """Return stored settings or *None* when the user never saved any."""

    @abc.abstractmethod
    def save_settings(self, uid: str, values: dict) -> dict:
        """Replace the stored settings for *uid* and return them."""

    @abc.abstractmethod
    def list_settings(self) -> dict[str, dict]:
        """Return stored settings for every user, keyed by UID."""

    # -- activity --

    @abc.abstractmethod
    def touch_activity(self, uid: str, at: datetime) -> dict:
        """Record *at* as the user's ``last_active_at``."""

    @abc.abstractmethod
    def get_activity_map(self) -> dict[str, datetime]:
        """Return ``{uid: last_active_at}`` for every user with a heartbeat."""

    # -- reminder dispatch log --

    @abc.abstractmethod
    def claim_reminder(self, uid: str, date: str, slot: str) -> bool:
        """Record that *slot* fired for *uid* on *date*.

        Returns *False* when it was already recorded.
        """


# ---------------------------------------------------------------------------
# In-memory implementation (mock / test mode)
# ---------------------------------------------------------------------------

class InMemoryNotificationStore(NotificationStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self) -> None:
        self._notifications: dict[str, dict] = {}
        self._settings: dict[str, dict] = {}
        self._activity: dict[str, datetime] = {}
        self._dispatched: set[tuple[str, str, str]] = set()
        self._lock = threading.Lock()

    def add_notification(
        self,
        uid: str,
        type_: str,
        title: str,
        message: str | None = None,
        related_id: str | None = None,
        related_type: str | None = None,
    ) -> dict:
        doc = _new_notification(uid, type_, title, message, related_id, related_type)
        doc["id"] = uuid.uuid4().hex
        with self._lock:
            self._notifications[doc["id"]] = doc
        return dict(doc)

    def _owned(self, uid: str) -> list[dict]:
        # dicts keep insertion order, so reversed() is newest first
        return [
            n for n in reversed(self._notifications.values())
            if n["user_id"] == uid and not n["is_deleted"]
        ]

    def list_notifications(self, uid: str, limit: int) -> list[dict]:
        with self._lock:
            return [dict(n) for n in self._owned(uid)[:limit]]

    def count_unread(self, uid: str) -> int:
        with self._lock:
            return sum(1 for n in self._owned(uid) if not n["is_read"])

    def mark_read(self, uid: str, notification_id: str) -> bool:
        with self._lock:
            doc = self._notifications.get(notification_id)
            if doc is None or doc["user_id"] != uid or doc["is_deleted"]:
                return False
            doc["is_read"] = True
            return True

    def mark_all_read(self, uid: str) -> int:
        with self._lock:
            unread = [n for n in self._owned(uid) if not n["is_read"]]
            for doc in unread:
                doc["is_read"] = True
            return len(unread)

    def soft_delete(self, uid: str, notification_id: str) -> bool:
        with self._lock:
            doc = self._notifications.get(notification_id)
            if doc is None or doc["user_id"] != uid or doc["is_deleted"]:
                return False
            doc["is_deleted"] = True
            return True

    def get_settings(self, uid: str) -> dict | None:
        with self._lock:
            values = self._settings.get(uid)
            return dict(values) if values is not None else None

    def save_settings(self, uid: str, values: dict) -> dict:
        stored = {**values, "updated_at": utc_now()}
        with self._lock:
            self._settings[uid] = stored
        return dict(stored)

    def list_settings(self) -> dict[str, dict]:
        with self._lock:
            return {uid: dict(values) for uid, values in self._settings.items()}

    def touch_activity(self, uid: str, at: datetime) -> dict:
        with self._lock:
            self._activity[uid] = at
        return {"user_id": uid, "last_active_at": at}

    def get_activity_map(self) -> dict[str, datetime]:
        with self._lock:
            return dict(self._activity)

    def claim_reminder(self, uid: str, date: str, slot: str) -> bool:
        key = (uid, date, slot)
        with self._lock:
            if key in self._dispatched:
                return False
            self._dispatched.add(key)
            return True


# ---------------------------------------------------------------------------
# Firestore implementation
# ---------------------------------------------------------------------------

class FirestoreNotificationStore(NotificationStore):
    """Firestore-backed store.

    Collections: ``notifications/{auto}``, ``notification_settings/{uid}``,
    ``user_activity/{uid}`` and ``reminder_dispatches/{uid}_{date}_{slot}``.
    """

    NOTIFICATIONS = "notifications"
    SETTINGS = "notification_settings"
    ACTIVITY = "user_activity"
    DISPATCHES = "reminder_dispatches"

    def _collection(self, name: str):
        return get_firestore_client().collection(name)

    def _owned_query(self, uid: str):
        return (
            self._collection(self.NOTIFICATIONS)
            .where(filter=FieldFilter("user_id", "==", uid))
            .where(filter=FieldFilter("is_deleted", "==", False))
        )

    @translate_errors
    def add_notification(
        self,
        uid: str,
        type_: str,
        title: str,
        message: str | None = None,
        related_id: str | None = None,
        related_type: str | None = None,
    ) -> dict:
        doc = _new_notification(uid, type_, title, message, related_id, related_type)
        ref = self._collection(self.NOTIFICATIONS).document()
        ref.set(doc)
        return {"id": ref.id, **doc}

    @translate_errors
    def list_notifications(self, uid: str, limit: int) -> list[dict]:
        query = (
            self._owned_query(uid)
            .order_by("created_at", direction=Query.DESCENDING)
            .limit(limit)
        )
        return [{"id": snap.id, **snap.to_dict()} for snap in query.stream()]

    @translate_errors
    def count_unread(self, uid: str) -> int:
        query = self._owned_query(uid).where(filter=FieldFilter("is_read", "==", False))
        return sum(1 for _ in query.stream())

    def _owned_ref(self, uid: str, notification_id: str):
        ref = self._collection(self.NOTIFICATIONS).document(notification_id)
        snap = ref.get()
        if not snap.exists:
            return None
        data = snap.to_dict()
        if data.get("user_id") != uid or data.get("is_deleted"):
            return None
        return ref

    @translate_errors
    def mark_read(self, uid: str, notification_id: str) -> bool:
        ref = self._owned_ref(uid, notification_id)
        if ref is None:
            return False
        ref.update({"is_read": True})
        return True

    @translate_errors
    def mark_all_read(self, uid: str) -> int:
        db = get_firestore_client()
        query = self._owned_query(uid).where(filter=FieldFilter("is_read", "==", False))
        refs = [snap.reference for snap in query.stream()]
        for start in range(0, len(refs), _BATCH_LIMIT):
            batch = db.batch()
            for ref in refs[start:start + _BATCH_LIMIT]:
                batch.update(ref, {"is_read": True})
            batch.commit()
        return len(refs)

    @translate_errors
    def soft_delete(self, uid: str, notification_id: str) -> bool:
        ref = self._owned_ref(uid, notification_id)
        if ref is None:
            return False
        ref.update({"is_deleted": True})
        return True

    @translate_errors
    def get_settings(self, uid: str) -> dict | None:
        snap = self._collection(self.SETTINGS).document(uid).get()
        if not snap.exists:
            return None
        return snap.to_dict()

    @translate_errors
    def save_settings(self, uid: str, values: dict) -> dict:
        stored = {**values, "user_id": uid, "updated_at": utc_now()}
        self._collection(self.SETTINGS).document(uid).set(stored)
        return stored

    @translate_errors
    def list_settings(self) -> dict[str, dict]:
        return {snap.id: snap.to_dict() for snap in self._collection(self.SETTINGS).stream()}

    @translate_errors
    def touch_activity(self, uid: str, at: datetime) -> dict:
        doc = {"user_id": uid, "last_active_at": at}
        self._collection(self.ACTIVITY).document(uid).set(doc, merge=True)
        return doc

    @translate_errors
    def get_activity_map(self) -> dict[str, datetime]:
        result: dict[str, datetime] = {}
        for snap in self._collection(self.ACTIVITY).stream():
            last_active = snap.to_dict().get("last_active_at")
            if last_active is not None:
                result[snap.id] = last_active
        return result

    @translate_errors
    def claim_reminder(self, uid: str, date: str, slot: str) -> bool:
        ref = self._collection(self.DISPATCHES).document(f"{uid}_{date}_{slot}")
        try:
            ref.create({"user_id": uid, "date": date, "slot": slot, "created_at": utc_now()})
        except google_exceptions.AlreadyExists:
            return False
        return True


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_store: NotificationStore | None = None


def get_notification_store() -> NotificationStore:
    """Return the singleton ``NotificationStore`` instance."""
    global _store
    if _store is None:
        if is_mock_mode():
            logger.info("Using InMemoryNotificationStore (mock mode)")
            _store = InMemoryNotificationStore()
        else:
            logger.info("Using FirestoreNotificationStore")
            _store = FirestoreNotificationStore()
    return _store
