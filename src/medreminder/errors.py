"""错误类型

- PersistenceError: 存储不可用或数据损坏，直接向调用方抛出，不得伪造数据
- NotFoundError: 更新/删除的目标不存在，协调器内部吸收为无操作
- SchedulingError: 平台定时调用失败，由调度器回退为立即通知
"""

__all__ = ["MedReminderError", "PersistenceError", "NotFoundError", "SchedulingError"]


class MedReminderError(Exception):
    pass


class PersistenceError(MedReminderError):
    pass


class NotFoundError(MedReminderError):
    def __init__(self, reminder_id: str) -> None:
        super().__init__(f"提醒不存在: {reminder_id}")
        self.reminder_id = reminder_id


class SchedulingError(MedReminderError):
    pass
