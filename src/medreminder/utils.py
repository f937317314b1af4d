from datetime import date, datetime, time, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from medreminder.logger import logger

__all__ = ["now_utc", "resolve_timezone", "now_user_local", "combine_local", "today_user_local"]


def now_utc() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


@lru_cache(maxsize=8)
def resolve_timezone(user_tz: str) -> tzinfo:
    """解析 IANA 时区名，非法时回退到 UTC"""
    try:
        return ZoneInfo(user_tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error(f"时区配置非法: {user_tz}, 已回退到 UTC")
        return timezone.utc


def now_user_local(user_tz: str) -> datetime:
    """用户本地时间(带时区)"""
    return now_utc().astimezone(resolve_timezone(user_tz))


def today_user_local(user_tz: str) -> date:
    return now_user_local(user_tz).date()


def combine_local(day: date, time_of_day: time, user_tz: str) -> datetime:
    """把日期与时刻合成为用户本地时区下的绝对时间"""
    return datetime(
        day.year, day.month, day.day,
        time_of_day.hour, time_of_day.minute,
        tzinfo=resolve_timezone(user_tz),
    )
