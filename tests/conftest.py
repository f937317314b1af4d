"""Pytest configuration and shared fixtures.

Organization:
    - Clock Fixtures: a settable clock injected through ``now_fn``
    - Storage Fixtures: a temporary aiosqlite database and reminder store
    - Notification Fixtures: a recording backend and the scheduler around it
    - Core Fixtures: coordinator and scanner wired to the fixtures above
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field

import pytest

import medreminder.storage.db_config as db_config
from medreminder.core.coordinator import ReminderLifecycleCoordinator
from medreminder.core.scanner import DueReminderScanner
from medreminder.errors import SchedulingError
from medreminder.notifications.base import NotificationBackend
from medreminder.notifications.scheduler import NotificationScheduler
from medreminder.storage.reminder import ReminderStore

USER_TZ = "UTC"


# ============================================================================
# Clock Fixtures
# ============================================================================


class FixedClock:
    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def set(self, *args: int) -> None:
        self.now = datetime.datetime(*args, tzinfo=datetime.timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    """2026-10-18 07:00 UTC, before the 08:30 Aspirin dose."""
    return FixedClock(datetime.datetime(2026, 10, 18, 7, 0, tzinfo=datetime.timezone.utc))


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
async def db(tmp_path):
    await db_config.init_db(str(tmp_path / "data" / "test.db"))
    yield db_config.conn
    await db_config.close_db()


@pytest.fixture
def store(db) -> ReminderStore:
    return ReminderStore()


# ============================================================================
# Notification Fixtures
# ============================================================================


@dataclass
class Entry:
    notification_id: int
    title: str
    body: str
    at: datetime.datetime | None = None


@dataclass
class RecordingBackend(NotificationBackend):
    """Records every call; ``active`` mirrors what a platform would still have queued."""

    permitted: bool = True
    fail_schedule: bool = False
    cancel_failures: int = 0
    shown: list[Entry] = field(default_factory=list)
    scheduled: list[Entry] = field(default_factory=list)
    active: list[Entry] = field(default_factory=list)
    cancelled: list[int] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)

    async def show(self, notification_id, title, body):
        self.calls.append("show")
        self.shown.append(Entry(notification_id, title, body))

    async def schedule_exact(self, notification_id, title, body, at):
        self.calls.append("schedule_exact")
        if self.fail_schedule:
            raise SchedulingError("exact alarms not allowed")
        entry = Entry(notification_id, title, body, at)
        self.scheduled.append(entry)
        self.active.append(entry)

    async def cancel(self, notification_id):
        self.calls.append("cancel")
        if self.cancel_failures > 0:
            self.cancel_failures -= 1
            raise RuntimeError("platform busy")
        self.cancelled.append(notification_id)
        self.active = [e for e in self.active if e.notification_id != notification_id]

    async def cancel_all(self):
        self.calls.append("cancel_all")
        self.active.clear()

    async def are_notifications_permitted(self):
        return self.permitted

    async def request_permission(self):
        return self.permitted

    def active_for(self, notification_id: int) -> list[Entry]:
        return [e for e in self.active if e.notification_id == notification_id]


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def scheduler(backend, clock) -> NotificationScheduler:
    return NotificationScheduler(backend, now_fn=clock, cancel_attempts=2)


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def coordinator(store, scheduler, clock) -> ReminderLifecycleCoordinator:
    return ReminderLifecycleCoordinator(store, scheduler, user_tz=USER_TZ, now_fn=clock)


@pytest.fixture
def scanner(store, scheduler, clock) -> DueReminderScanner:
    return DueReminderScanner(store, scheduler, user_tz=USER_TZ, now_fn=clock)
