from __future__ import annotations

import asyncio
import datetime
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medreminder.core.clock import ReminderClock
from medreminder.core.coordinator import ReminderLifecycleCoordinator
from medreminder.datamodel import Reminder
from medreminder.notifications.base import NotificationBackend
from medreminder.storage.reminder import parse_time_of_day


@dataclass
class RuntimeControl:
    shutdown_event: asyncio.Event
    started_at: float
    coordinator: ReminderLifecycleCoordinator
    backend: NotificationBackend
    clock: ReminderClock


class ShutdownRequest(BaseModel):
    reason: str = Field(default="manual")


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)

    @field_validator("username")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("用户名不能为空")
        return value


class ReminderPayload(BaseModel):
    """与持久化格式一致的驼峰字段"""

    model_config = ConfigDict(populate_by_name=True)

    medicine_name: str = Field(alias="medicineName", min_length=1, max_length=200)
    time: str = Field(description="H:MM")
    date: datetime.date
    dosage: str = Field(default="", max_length=200)
    notes: str = Field(default="", max_length=2000)

    @field_validator("medicine_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("药品名称不能为空")
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_time_of_day(value)
        return value

    def to_reminder(self, reminder_id: str | None = None) -> Reminder:
        return Reminder(
            id=reminder_id,
            medicine_name=self.medicine_name,
            time=parse_time_of_day(self.time),
            date=self.date,
            dosage=self.dosage.strip(),
            notes=self.notes.strip(),
        )
