"""通知调度

过去(含当前)时间的请求直接立即投递，未来时间登记精确定时；精确定时失败同样回退为立即投递。
调度器不按 id 去重，时间变化时由调用方先 cancel 再 schedule。
"""

from __future__ import annotations

import datetime
import hashlib
from typing import Callable

from medreminder.datamodel import Reminder
from medreminder.events import E, bus
from medreminder.logger import logger
from medreminder.metrics import runtime_metrics
from medreminder.utils import now_utc

from .base import NotificationBackend

__all__ = [
    "NotificationScheduler",
    "REMINDER_TITLE",
    "derive_notification_id",
    "reminder_body",
]

REMINDER_TITLE = "Medicine Reminder"

_NOTIFICATION_ID_MASK = 0x7FFFFFFF


def derive_notification_id(reminder_id: str) -> int:
    """由提醒 id 推导通知 id

    取 BLAKE2b 摘要的 31 位，结果与进程无关、跨重启稳定，落在平台通知 id 的正 int32 范围内。
    n 条提醒出现碰撞的概率约为 n^2 / 2^32，一千条约 0.02%。
    """
    digest = hashlib.blake2b(reminder_id.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & _NOTIFICATION_ID_MASK


def reminder_body(reminder: Reminder) -> str:
    body = f"Time to take {reminder.medicine_name}"
    if reminder.dosage:
        body += f" - {reminder.dosage}"
    return body


class NotificationScheduler:
    def __init__(
        self,
        backend: NotificationBackend,
        *,
        now_fn: Callable[[], datetime.datetime] = now_utc,
        cancel_attempts: int = 2,
    ) -> None:
        self.backend = backend
        self._now_fn = now_fn
        self._cancel_attempts = max(1, cancel_attempts)

    async def schedule(self, notification_id: int, title: str, body: str, at: datetime.datetime) -> bool:
        """登记通知，返回 True 表示已登记为定时投递，False 表示已立即投递"""
        now = self._now_fn()
        logger.debug(f"请求调度通知: id={notification_id}, at={at.isoformat()}, now={now.isoformat()}")

        if at <= now:
            logger.info(f"通知时间已过，立即投递: id={notification_id}, at={at.isoformat()}")
            await self.notify_now(notification_id, title, body)
            return False

        try:
            await self.backend.schedule_exact(notification_id, title, body, at)
        except Exception as e:
            runtime_metrics.record_scheduling_fallback()
            logger.error(f"精确定时失败，回退为立即投递: id={notification_id}, error={e!r}")
            await self.notify_now(notification_id, title, body)
            return False

        runtime_metrics.record_scheduled()
        bus.emit(E.NOTIFICATION_SCHEDULED, notification_id=notification_id, at=at)
        return True

    async def notify_now(self, notification_id: int, title: str, body: str) -> None:
        try:
            await self.backend.show(notification_id, title, body)
        except Exception:
            runtime_metrics.record_delivery_error()
            logger.exception(f"立即投递通知失败: id={notification_id}")
            return
        runtime_metrics.record_immediate()

    async def cancel(self, notification_id: int) -> None:
        """取消定时通知，对不存在的 id 无副作用"""
        for attempt in range(1, self._cancel_attempts + 1):
            try:
                await self.backend.cancel(notification_id)
            except Exception as e:
                logger.warning(f"取消通知失败: id={notification_id}, attempt={attempt}/{self._cancel_attempts}, error={e!r}")
                continue
            runtime_metrics.record_cancelled()
            bus.emit(E.NOTIFICATION_CANCELLED, notification_id=notification_id)
            return
        runtime_metrics.record_delivery_error()
        logger.error(f"多次取消通知失败，可能残留过期的定时通知: id={notification_id}")

    async def cancel_all(self) -> None:
        await self.backend.cancel_all()
        logger.info("已取消全部通知")
