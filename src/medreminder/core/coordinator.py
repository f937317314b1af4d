"""提醒生命周期协调器

所有增删改都经过这里：先持久化，再取消/重新登记通知，整个过程持有存储锁，
保证同一提醒在任何时刻最多只有一个定时通知，删除后不会残留通知，修改后不会保留旧时间的通知。

持久化是事实来源，通知投递是尽力而为：调度失败由调度器回退为立即投递，不会影响已保存的提醒。
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import Callable

from ulid import ULID

from medreminder.datamodel import Reminder
from medreminder.errors import NotFoundError
from medreminder.events import E, bus
from medreminder.logger import logger
from medreminder.notifications.scheduler import (
    REMINDER_TITLE,
    NotificationScheduler,
    derive_notification_id,
    reminder_body,
)
from medreminder.storage.reminder import ReminderStore
from medreminder.utils import combine_local, now_user_local

__all__ = ["ReminderLifecycleCoordinator", "new_reminder_id"]


def new_reminder_id() -> str:
    return str(ULID())


def _find_index(reminders: list[Reminder], reminder_id: str) -> int:
    for i, reminder in enumerate(reminders):
        if reminder.id == reminder_id:
            return i
    raise NotFoundError(reminder_id)


def _validate(reminder: Reminder) -> None:
    if not isinstance(reminder.medicine_name, str) or not reminder.medicine_name.strip():
        raise ValueError("药品名称不能为空")
    if not isinstance(reminder.time, datetime.time):
        raise ValueError("time 必须为 datetime.time")
    if not isinstance(reminder.date, datetime.date) or isinstance(reminder.date, datetime.datetime):
        raise ValueError("date 必须为 datetime.date")


class ReminderLifecycleCoordinator:
    def __init__(
        self,
        store: ReminderStore,
        scheduler: NotificationScheduler,
        *,
        user_tz: str,
        now_fn: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._user_tz = user_tz
        self._now_fn = now_fn or (lambda: now_user_local(user_tz))

    def fire_at(self, reminder: Reminder) -> datetime.datetime:
        return combine_local(reminder.date, reminder.time, self._user_tz)

    async def list(self) -> list[Reminder]:
        return await self._store.list()

    async def get(self, reminder_id: str) -> Reminder:
        return await self._store.get(reminder_id)

    async def _program(self, reminder: Reminder) -> None:
        """按当前时间登记通知；今天以前的提醒只保存不通知"""
        now = self._now_fn()
        at = self.fire_at(reminder)
        if reminder.date < now.date():
            logger.info(f"提醒日期早于今天，不登记通知: id={reminder.id}, at={at.isoformat()}")
            return
        await self._scheduler.schedule(
            derive_notification_id(reminder.id),
            REMINDER_TITLE,
            reminder_body(reminder),
            at,
        )

    async def add(self, draft: Reminder) -> Reminder:
        _validate(draft)
        async with self._store.lock:
            reminders = await self._store.list()
            reminder = draft if draft.id else dataclasses.replace(draft, id=new_reminder_id())
            if any(r.id == reminder.id for r in reminders):
                raise ValueError(f"提醒 id 已存在: {reminder.id}")
            reminders.append(reminder)
            await self._store.save_all(reminders)
            await self._program(reminder)

        logger.info(f"新增提醒: id={reminder.id}, medicine={reminder.medicine_name}")
        bus.emit(E.REMINDER_CREATED, reminder=reminder)
        return reminder

    async def update(self, reminder: Reminder) -> bool:
        """整体替换提醒，目标不存在时不做任何修改并返回 False"""
        _validate(reminder)
        async with self._store.lock:
            reminders = await self._store.list()
            try:
                index = _find_index(reminders, reminder.id)
            except NotFoundError:
                logger.warning(f"更新的提醒不存在，已忽略: id={reminder.id}")
                return False

            reminders[index] = reminder
            await self._store.save_all(reminders)
            await self._scheduler.cancel(derive_notification_id(reminder.id))
            await self._program(reminder)

        logger.info(f"更新提醒: id={reminder.id}, medicine={reminder.medicine_name}")
        bus.emit(E.REMINDER_UPDATED, reminder=reminder)
        return True

    async def delete(self, reminder_id: str) -> bool:
        """删除提醒并取消其通知，目标不存在时只做取消，返回是否删除了记录"""
        async with self._store.lock:
            reminders = await self._store.list()
            remaining = [r for r in reminders if r.id != reminder_id]
            removed = len(remaining) != len(reminders)
            if removed:
                await self._store.save_all(remaining)
            await self._scheduler.cancel(derive_notification_id(reminder_id))

        if removed:
            logger.info(f"删除提醒: id={reminder_id}")
            bus.emit(E.REMINDER_DELETED, reminder_id=reminder_id)
        else:
            logger.debug(f"删除的提醒不存在: id={reminder_id}")
        return removed

    async def restore_schedules(self) -> int:
        """进程启动时为所有未来的提醒重新登记定时通知，返回登记数量"""
        restored = 0
        async with self._store.lock:
            now = self._now_fn()
            for reminder in await self._store.list():
                if self.fire_at(reminder) <= now:
                    continue
                notification_id = derive_notification_id(reminder.id)
                await self._scheduler.cancel(notification_id)
                await self._scheduler.schedule(notification_id, REMINDER_TITLE, reminder_body(reminder), self.fire_at(reminder))
                restored += 1
        logger.info(f"已恢复定时通知: count={restored}")
        return restored

    async def send_test_notification(self, reminder_id: str) -> int:
        """立即发送一条测试通知，返回使用的通知 id"""
        reminder = await self._store.get(reminder_id)
        notification_id = int(self._now_fn().timestamp() * 1000) % 10000
        await self._scheduler.notify_now(
            notification_id,
            f"TEST: {reminder.medicine_name}",
            f"This is a test notification. Dosage: {reminder.dosage}",
        )
        return notification_id

    async def check_permissions(self, request: bool = False) -> bool:
        """查询通知权限，request=True 时在未授权的情况下申请一次；结果交给调用方处理"""
        backend = self._scheduler.backend
        permitted = await backend.are_notifications_permitted()
        if not permitted and request:
            permitted = await backend.request_permission()
        if not permitted:
            logger.warning("通知权限未授予，定时通知可能被系统静默丢弃")
        return permitted
