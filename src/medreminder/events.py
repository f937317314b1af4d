"""事件总线模块，定义了事件总线类 Bus 及事件名集合 E

处理器通过 @bus.on(E.XXX) 注册，既可以是普通函数也可以是协程函数。
"""

from __future__ import annotations
from pyee.asyncio import AsyncIOEventEmitter
from typing import Any, Callable

from medreminder.logger import logger

Handler = Callable[..., Any]


# 事件名集中定义
class E:
    REMINDER_CREATED = "reminder.created"
    REMINDER_UPDATED = "reminder.updated"
    REMINDER_DELETED = "reminder.deleted"
    REMINDER_DUE = "reminder.due"
    NOTIFICATION_SHOWN = "notification.shown"
    NOTIFICATION_SCHEDULED = "notification.scheduled"
    NOTIFICATION_CANCELLED = "notification.cancelled"


class Bus(AsyncIOEventEmitter):
    def on(self, event: str) -> Callable[[Handler], Handler]:
        """注册事件处理器装饰器"""
        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {handler.__name__}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()

__all__ = ["bus", "Bus", "E"]
