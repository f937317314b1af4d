"""进程内通知投递

定时投递基于事件循环的 call_later，进程退出后不会保留，重启时由协调器 restore_schedules 重新登记，
漏掉的触发由周期扫描兜底。投递结果通过事件总线 E.NOTIFICATION_SHOWN 广播。
"""

from __future__ import annotations

import asyncio
import datetime
from collections import deque
from typing import Callable

from medreminder.datamodel import DeliveredNotification, ScheduledNotification
from medreminder.errors import SchedulingError
from medreminder.events import E, bus
from medreminder.logger import logger
from medreminder.utils import now_utc

from .base import NotificationBackend

__all__ = ["LocalNotificationBackend"]


class LocalNotificationBackend(NotificationBackend):
    def __init__(
        self,
        *,
        permitted: bool = True,
        exact_supported: bool = True,
        history_size: int = 200,
        now_fn: Callable[[], datetime.datetime] = now_utc,
    ) -> None:
        self._permitted = permitted
        self._exact_supported = exact_supported
        self._now_fn = now_fn
        self._pending: dict[int, tuple[ScheduledNotification, asyncio.TimerHandle]] = {}
        self.history: deque[DeliveredNotification] = deque(maxlen=history_size)

    def get_status(self) -> dict[str, object]:
        return {
            "permitted": self._permitted,
            "exact_supported": self._exact_supported,
            "pending": len(self._pending),
            "delivered": len(self.history),
        }

    def pending(self) -> list[ScheduledNotification]:
        return sorted((item for item, _ in self._pending.values()), key=lambda n: n.fire_at)

    def _deliver(self, notification_id: int, title: str, body: str, scheduled: bool) -> DeliveredNotification | None:
        if not self._permitted:
            logger.warning(f"通知权限未授予，通知被系统静默丢弃: id={notification_id}")
            return None
        delivered = DeliveredNotification(
            notification_id=notification_id,
            title=title,
            body=body,
            delivered_at=self._now_fn(),
            scheduled=scheduled,
        )
        self.history.append(delivered)
        logger.info(f"通知已投递: id={notification_id}, title={title}, body={body}")
        bus.emit(E.NOTIFICATION_SHOWN, notification=delivered)
        return delivered

    def _fire(self, notification_id: int) -> None:
        entry = self._pending.pop(notification_id, None)
        if entry is None:
            return
        item, _ = entry
        self._deliver(item.notification_id, item.title, item.body, scheduled=True)

    async def show(self, notification_id: int, title: str, body: str) -> None:
        self._deliver(notification_id, title, body, scheduled=False)

    async def schedule_exact(self, notification_id: int, title: str, body: str, at: datetime.datetime) -> None:
        if not self._exact_supported:
            logger.warning(f"当前环境不支持精确定时，通知 {notification_id} 立即投递")
            await self.show(notification_id, title, body)
            return
        if at.tzinfo is None:
            raise SchedulingError(f"定时时间必须带时区: {at}")

        delay = (at - self._now_fn()).total_seconds()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulingError("没有运行中的事件循环，无法登记定时通知") from e

        # 同 id 重复登记时覆盖旧句柄，保证不会泄漏计时器；去重语义仍由协调器负责
        previous = self._pending.pop(notification_id, None)
        if previous is not None:
            previous[1].cancel()

        handle = loop.call_later(max(0.0, delay), self._fire, notification_id)
        self._pending[notification_id] = (
            ScheduledNotification(notification_id=notification_id, title=title, body=body, fire_at=at),
            handle,
        )
        logger.debug(f"已登记定时通知: id={notification_id}, at={at.isoformat()}, delay={delay:.1f}s")

    async def cancel(self, notification_id: int) -> None:
        entry = self._pending.pop(notification_id, None)
        if entry is not None:
            entry[1].cancel()
            logger.debug(f"已取消定时通知: id={notification_id}")

    async def cancel_all(self) -> None:
        for _, handle in self._pending.values():
            handle.cancel()
        count = len(self._pending)
        self._pending.clear()
        logger.info(f"已取消全部定时通知: count={count}")

    async def are_notifications_permitted(self) -> bool:
        return self._permitted

    async def request_permission(self) -> bool:
        # 进程内投递没有系统授权流程，权限由配置决定
        return self._permitted
