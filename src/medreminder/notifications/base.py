from abc import ABC, abstractmethod
import datetime

__all__ = ["NotificationBackend"]


class NotificationBackend(ABC):
    """通知投递协作者

    schedule_exact 在不支持精确定时的平台上应退化为 show；失败时抛出异常，由调度器兜底。
    cancel 对不存在的 id 必须是无操作。
    """

    @abstractmethod
    async def show(self, notification_id: int, title: str, body: str) -> None:
        pass

    @abstractmethod
    async def schedule_exact(self, notification_id: int, title: str, body: str, at: datetime.datetime) -> None:
        pass

    @abstractmethod
    async def cancel(self, notification_id: int) -> None:
        pass

    @abstractmethod
    async def cancel_all(self) -> None:
        pass

    @abstractmethod
    async def are_notifications_permitted(self) -> bool:
        pass

    @abstractmethod
    async def request_permission(self) -> bool:
        pass
