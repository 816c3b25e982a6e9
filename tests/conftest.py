"""Shared fixtures for service-level tests.

No ``FIREBASE_CREDENTIALS`` is set under test, so every store singleton is
the in-memory implementation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from yanggaeng.db import notification_store
from yanggaeng.db.achievement_store import InMemoryAchievementStore
from yanggaeng.db.notification_store import InMemoryNotificationStore
from yanggaeng.services.achievement_service import AchievementEvaluator, Notifier


class RecordingNotifier(Notifier):
    """Notifier that remembers every call instead of delivering."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.fail = fail

    def notify(self, uid: str, title: str, body: str) -> None:
        self.calls.append((uid, title, body))
        if self.fail:
            raise ConnectionError("push gateway down")


class FakeClock:
    """Controllable UTC clock. Starts at 2025-03-10 12:00 KST."""

    def __init__(self) -> None:
        self.now = datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> InMemoryAchievementStore:
    return InMemoryAchievementStore()


@pytest.fixture
def evaluator(store, notifier, clock) -> AchievementEvaluator:
    return AchievementEvaluator(store, notifier, clock=clock)


@pytest.fixture
def inbox(monkeypatch) -> InMemoryNotificationStore:
    """Swap the notification store singleton for a fresh in-memory one."""
    fresh = InMemoryNotificationStore()
    monkeypatch.setattr(notification_store, "_store", fresh)
    return fresh
