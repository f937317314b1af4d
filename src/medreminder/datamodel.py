from dataclasses import dataclass
import datetime
from typing import Optional

__all__ = [
    "Reminder",
    "ScheduledNotification", "DeliveredNotification",
    "UserInfo",
]

# ----------------- Reminder 数据模型 ----------------
@dataclass
class Reminder:
    id: Optional[str]  # 新建时可以为空，由协调器分配，之后不可变
    medicine_name: str
    time: datetime.time  # 只有时、分有意义
    date: datetime.date  # 不含时间部分
    dosage: str = ""
    notes: str = ""


# ----------------- Notification 数据模型 ----------------
@dataclass
class ScheduledNotification:
    notification_id: int
    title: str
    body: str
    fire_at: datetime.datetime  # 带时区的本地时间


@dataclass
class DeliveredNotification:
    notification_id: int
    title: str
    body: str
    delivered_at: datetime.datetime
    scheduled: bool = False  # True 表示由定时投递触发，False 表示立即投递


# ----------------- User 数据模型 ----------------
@dataclass
class UserInfo:
    username: str
    logged_in: bool = True
