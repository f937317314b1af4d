"""到期提醒扫描

扫描是兜底机制：平台的精确定时可能因进程被杀或系统限制而没有触发，这里只按墙钟匹配重新投递，
与是否已经登记过定时通知无关。

注意: 匹配粒度是分钟且没有去重，扫描时刻抖动跨过分钟边界或与精确定时同时触发时，同一提醒可能投递两次。
"""

from __future__ import annotations

import datetime
from typing import Callable

from medreminder.datamodel import Reminder
from medreminder.events import E, bus
from medreminder.logger import logger
from medreminder.metrics import runtime_metrics
from medreminder.notifications.scheduler import (
    REMINDER_TITLE,
    NotificationScheduler,
    derive_notification_id,
    reminder_body,
)
from medreminder.storage.reminder import ReminderStore
from medreminder.utils import now_user_local

__all__ = ["DueReminderScanner", "is_due"]


def is_due(reminder: Reminder, now: datetime.datetime) -> bool:
    """时、分与当前时刻相同，且日期不晚于今天"""
    return (
        reminder.time.hour == now.hour
        and reminder.time.minute == now.minute
        and reminder.date <= now.date()
    )


class DueReminderScanner:
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
        self._now_fn = now_fn or (lambda: now_user_local(user_tz))

    async def scan(self, now: datetime.datetime | None = None) -> list[Reminder]:
        """扫描一次并立即投递所有到期提醒，返回到期的提醒；存储损坏时抛出 PersistenceError"""
        now = now or self._now_fn()
        logger.trace(f"扫描到期提醒: {now.hour}:{now.minute:02d}")

        due = [r for r in await self._store.list() if is_due(r, now)]
        for reminder in due:
            logger.info(f"发现到期提醒: {reminder.medicine_name} at {reminder.time.hour}:{reminder.time.minute:02d}")
            bus.emit(E.REMINDER_DUE, reminder=reminder)
            await self._scheduler.notify_now(
                derive_notification_id(reminder.id),
                REMINDER_TITLE,
                reminder_body(reminder),
            )

        runtime_metrics.record_scan(len(due))
        return due
