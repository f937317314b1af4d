"""提醒存储

整个提醒集合序列化为一个 JSON 数组，保存在键值存储的 medicine_reminders 下:

    [{"id": "...", "medicineName": "Aspirin", "time": "8:30", "date": "2026-10-18", "dosage": "1 pill", "notes": ""}]

注意: time 的小时不补零、分钟补零("H:MM")；date 为 ISO-8601 日期。读取时兼容未补零的分钟和带时间部分的 ISO 日期时间。
"""

from __future__ import annotations

import asyncio
import datetime
import json
import re
from types import ModuleType
from typing import Any, Iterable, Protocol

import medreminder.storage.kv as kv_storage
from medreminder.datamodel import Reminder
from medreminder.errors import NotFoundError, PersistenceError
from medreminder.logger import logger

__all__ = [
    "REMINDERS_KEY",
    "ReminderStore", "KeyValueStore",
    "encode_reminder", "decode_reminder", "encode_reminders", "decode_reminders",
    "format_time_of_day", "parse_time_of_day",
]

REMINDERS_KEY = "medicine_reminders"

_TIME_OF_DAY_RE = re.compile(r"(\d{1,2}):(\d{1,2})", re.ASCII)


class KeyValueStore(Protocol):
    async def get_value(self, key: str) -> str | None: ...

    async def set_value(self, key: str, value: str) -> None: ...


# ----------------- 编解码 ----------------
def format_time_of_day(value: datetime.time) -> str:
    return f"{value.hour}:{value.minute:02d}"


def parse_time_of_day(raw: str) -> datetime.time:
    # 只接受 ASCII 数字，不接受空白、正负号和下划线
    match = _TIME_OF_DAY_RE.fullmatch(raw)
    if match is None:
        raise ValueError(f"时间格式应为 H:MM: {raw!r}")
    return datetime.time(hour=int(match.group(1)), minute=int(match.group(2)))


def _parse_date(raw: str) -> datetime.date:
    if len(raw) > 10:
        return datetime.datetime.fromisoformat(raw).date()
    return datetime.date.fromisoformat(raw)


def _optional_str(item: dict[str, Any], field: str) -> str:
    value = item.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{field} 必须为字符串")
    return value


def _required_str(item: dict[str, Any], field: str) -> str:
    value = item.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"缺少字段或为空: {field}")
    return value


def encode_reminder(reminder: Reminder) -> dict[str, str]:
    if not reminder.id:
        raise ValueError("提醒尚未分配 id，不能持久化")
    return {
        "id": reminder.id,
        "medicineName": reminder.medicine_name,
        "time": format_time_of_day(reminder.time),
        "date": reminder.date.isoformat(),
        "dosage": reminder.dosage,
        "notes": reminder.notes,
    }


def decode_reminder(item: Any) -> Reminder:
    """解码单条记录，任何字段缺失或非法都抛出 PersistenceError，不会回退为空记录"""
    if not isinstance(item, dict):
        raise PersistenceError(f"提醒记录必须为对象: {item!r}")
    try:
        return Reminder(
            id=_required_str(item, "id"),
            medicine_name=_required_str(item, "medicineName"),
            time=parse_time_of_day(_required_str(item, "time")),
            date=_parse_date(_required_str(item, "date")),
            dosage=_optional_str(item, "dosage"),
            notes=_optional_str(item, "notes"),
        )
    except (ValueError, TypeError) as e:
        raise PersistenceError(f"提醒记录损坏: {e}") from e


def encode_reminders(reminders: Iterable[Reminder]) -> str:
    return json.dumps([encode_reminder(r) for r in reminders], ensure_ascii=False)


def decode_reminders(raw: str) -> list[Reminder]:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"提醒数据无法解析: {e}") from e
    if not isinstance(decoded, list):
        raise PersistenceError("提醒数据必须为 JSON 数组")

    reminders = [decode_reminder(item) for item in decoded]
    seen: set[str] = set()
    for reminder in reminders:
        if reminder.id in seen:
            raise PersistenceError(f"提醒 id 重复: {reminder.id}")
        seen.add(reminder.id)
    return reminders


# ----------------- 存储 ----------------
class ReminderStore:
    """提醒集合的持久化

    save_all 整体替换(后写者胜出)。读-改-写必须在 lock 内完成，lock 由协调器持有。
    """

    def __init__(self, kv: KeyValueStore | ModuleType = kv_storage, key: str = REMINDERS_KEY) -> None:
        self._kv = kv
        self._key = key
        self.lock = asyncio.Lock()

    async def list(self) -> list[Reminder]:
        raw = await self._kv.get_value(self._key)
        if raw is None:
            return []
        return decode_reminders(raw)

    async def get(self, reminder_id: str) -> Reminder:
        for reminder in await self.list():
            if reminder.id == reminder_id:
                return reminder
        raise NotFoundError(reminder_id)

    async def save_all(self, reminders: Iterable[Reminder]) -> None:
        reminders = list(reminders)
        ids = [r.id for r in reminders]
        if len(set(ids)) != len(ids):
            raise ValueError("提醒 id 必须唯一")
        await self._kv.set_value(self._key, encode_reminders(reminders))
        logger.trace(f"保存提醒集合: count={len(reminders)}")
