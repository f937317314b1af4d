import asyncio
import dataclasses
import datetime

import pytest

from medreminder.datamodel import Reminder
from medreminder.errors import NotFoundError
from medreminder.events import E, bus
from medreminder.notifications.scheduler import REMINDER_TITLE, derive_notification_id

UTC = datetime.timezone.utc
TODAY = datetime.date(2026, 10, 18)


def aspirin(**overrides) -> Reminder:
    fields = dict(
        id=None,
        medicine_name="Aspirin",
        time=datetime.time(8, 30),
        date=TODAY,
        dosage="1 pill",
        notes="",
    )
    fields.update(overrides)
    return Reminder(**fields)


async def test_added_reminder_is_listed_exactly_once(coordinator, store):
    added = await coordinator.add(aspirin(notes="with water"))
    assert added.id

    listed = await store.list()
    assert listed == [added]


async def test_add_keeps_a_caller_supplied_id(coordinator):
    added = await coordinator.add(aspirin(id="1729245000000"))
    assert added.id == "1729245000000"
    with pytest.raises(ValueError):
        await coordinator.add(aspirin(id="1729245000000"))


async def test_generated_ids_are_unique(coordinator):
    ids = {(await coordinator.add(aspirin())).id for _ in range(20)}
    assert len(ids) == 20


async def test_add_future_reminder_schedules_one_notification(coordinator, backend):
    added = await coordinator.add(aspirin())

    assert backend.shown == []
    assert len(backend.scheduled) == 1
    entry = backend.scheduled[0]
    assert entry.notification_id == derive_notification_id(added.id)
    assert entry.title == REMINDER_TITLE
    assert "Aspirin" in entry.body and "1 pill" in entry.body
    assert entry.at == datetime.datetime(2026, 10, 18, 8, 30, tzinfo=UTC)


async def test_add_reminder_already_past_today_delivers_immediately(coordinator, backend, clock):
    clock.set(2026, 10, 18, 9, 0)
    added = await coordinator.add(aspirin())

    assert backend.scheduled == []
    assert [e.notification_id for e in backend.shown] == [derive_notification_id(added.id)]
    assert backend.shown[0].body == "Time to take Aspirin - 1 pill"


async def test_add_historical_reminder_is_stored_without_notifying(coordinator, backend, store):
    added = await coordinator.add(aspirin(date=TODAY - datetime.timedelta(days=2)))
    assert backend.scheduled == []
    assert backend.shown == []
    assert await store.list() == [added]


async def test_add_rejects_blank_medicine_names(coordinator, store, backend):
    with pytest.raises(ValueError):
        await coordinator.add(aspirin(medicine_name="  "))
    assert await store.list() == []
    assert backend.calls == []


async def test_scheduling_failure_never_blocks_persistence(coordinator, backend, store):
    backend.fail_schedule = True
    added = await coordinator.add(aspirin())
    assert await store.list() == [added]
    assert backend.calls == ["schedule_exact", "show"]


async def test_update_dosage_reschedules_same_instant_with_new_body(coordinator, backend, store):
    added = await coordinator.add(aspirin())
    notification_id = derive_notification_id(added.id)

    changed = await coordinator.update(dataclasses.replace(added, dosage="2 pills"))

    assert changed is True
    assert backend.cancelled == [notification_id]
    assert len(backend.scheduled) == 2
    old, new = backend.scheduled
    assert new.at == old.at
    assert new.body == "Time to take Aspirin - 2 pills"
    assert backend.active_for(notification_id) == [new]
    assert (await store.get(added.id)).dosage == "2 pills"


async def test_update_time_leaves_exactly_one_active_schedule(coordinator, backend):
    added = await coordinator.add(aspirin())
    notification_id = derive_notification_id(added.id)

    for hour in (9, 10, 11):
        await coordinator.update(dataclasses.replace(added, time=datetime.time(hour, 15)))
        active = backend.active_for(notification_id)
        assert len(active) == 1
        assert active[0].at == datetime.datetime(2026, 10, 18, hour, 15, tzinfo=UTC)


async def test_update_cancels_before_rescheduling(coordinator, backend):
    added = await coordinator.add(aspirin())
    backend.calls.clear()
    await coordinator.update(dataclasses.replace(added, notes="after food"))
    assert backend.calls == ["cancel", "schedule_exact"]


async def test_update_to_a_past_date_only_cancels(coordinator, backend):
    added = await coordinator.add(aspirin())
    await coordinator.update(dataclasses.replace(added, date=TODAY - datetime.timedelta(days=1)))
    assert backend.active_for(derive_notification_id(added.id)) == []
    assert backend.shown == []


async def test_update_missing_reminder_is_a_no_op(coordinator, backend, store):
    added = await coordinator.add(aspirin())
    backend.calls.clear()

    changed = await coordinator.update(aspirin(id="missing", medicine_name="Metformin"))

    assert changed is False
    assert await store.list() == [added]
    assert backend.calls == []


async def test_delete_removes_only_that_reminder_and_cancels_it(coordinator, backend, store):
    first = await coordinator.add(aspirin())
    second = await coordinator.add(aspirin(medicine_name="Metformin", time=datetime.time(20, 0)))

    assert await coordinator.delete(first.id) is True

    assert await store.list() == [second]
    assert backend.cancelled == [derive_notification_id(first.id)]
    assert backend.active_for(derive_notification_id(first.id)) == []
    assert len(backend.active_for(derive_notification_id(second.id))) == 1


async def test_delete_missing_reminder_still_cancels(coordinator, backend, store):
    await coordinator.add(aspirin())
    assert await coordinator.delete("missing") is False
    assert len(await store.list()) == 1
    assert backend.cancelled == [derive_notification_id("missing")]


async def test_concurrent_adds_are_serialised(coordinator, store):
    added = await asyncio.gather(*(coordinator.add(aspirin(medicine_name=f"Med {i}")) for i in range(10)))
    assert sorted(r.id for r in await store.list()) == sorted(r.id for r in added)


async def test_lifecycle_events_are_emitted(coordinator):
    seen = []

    def on_created(reminder):
        seen.append(("created", reminder.id))

    def on_deleted(reminder_id):
        seen.append(("deleted", reminder_id))

    bus.on(E.REMINDER_CREATED)(on_created)
    bus.on(E.REMINDER_DELETED)(on_deleted)
    try:
        added = await coordinator.add(aspirin())
        await coordinator.delete(added.id)
    finally:
        bus.remove_listener(E.REMINDER_CREATED, on_created)
        bus.remove_listener(E.REMINDER_DELETED, on_deleted)
    assert seen == [("created", added.id), ("deleted", added.id)]


async def test_restore_schedules_only_future_reminders(coordinator, backend, store, clock):
    await store.save_all([
        aspirin(id="future"),
        aspirin(id="tomorrow", date=TODAY + datetime.timedelta(days=1)),
        aspirin(id="past", time=datetime.time(6, 0)),
        aspirin(id="old", date=TODAY - datetime.timedelta(days=3)),
    ])

    restored = await coordinator.restore_schedules()
    assert restored == 2
    # restoring twice keeps one schedule per reminder
    await coordinator.restore_schedules()

    for reminder_id in ("future", "tomorrow"):
        assert len(backend.active_for(derive_notification_id(reminder_id))) == 1
    assert backend.active_for(derive_notification_id("past")) == []
    assert backend.shown == []


async def test_send_test_notification(coordinator, backend):
    added = await coordinator.add(aspirin())
    notification_id = await coordinator.send_test_notification(added.id)

    assert 0 <= notification_id < 10000
    assert backend.shown[-1].title == "TEST: Aspirin"
    assert backend.shown[-1].body == "This is a test notification. Dosage: 1 pill"

    with pytest.raises(NotFoundError):
        await coordinator.send_test_notification("missing")


async def test_check_permissions(coordinator, backend):
    assert await coordinator.check_permissions() is True
    backend.permitted = False
    assert await coordinator.check_permissions(request=True) is False


async def test_fire_at_combines_date_and_time_in_user_timezone(store, scheduler, clock):
    from medreminder.core.coordinator import ReminderLifecycleCoordinator

    coordinator = ReminderLifecycleCoordinator(store, scheduler, user_tz="Not/AZone", now_fn=clock)
    assert coordinator.fire_at(aspirin()) == datetime.datetime(2026, 10, 18, 8, 30, tzinfo=UTC)
