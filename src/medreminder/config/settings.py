import os
from dotenv import load_dotenv
from medreminder.logger import logger
load_dotenv()

__all__ = [
    "USER_NAME", "USER_TIMEZONE",
    "DATA_DB_PATH",
    "REMINDER_SCAN_INTERVAL_SECONDS", "NOTIFICATION_CANCEL_ATTEMPTS",
    "NOTIFICATIONS_PERMITTED", "NOTIFICATIONS_EXACT_SUPPORTED", "NOTIFICATION_HISTORY_SIZE",
    "ADMIN_HTTP_HOST", "ADMIN_HTTP_PORT", "ADMIN_AUTH_TOKEN", "ADMIN_LOG_FILE",
    "LOG_LEVEL", "CONSOLE_LOG_LEVEL",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_float(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw}, 已回退到 {default}")
        return default
    if value < minimum:
        logger.warning(f"{name} 过小: {value}, 已回退到 {default}")
        return default
    return value


def _parse_int(name: str, default: int, minimum: int) -> int:
    return int(_parse_float(name, float(default), float(minimum)))


# 用户个人信息
USER_NAME = os.getenv("USER_NAME", "User")
USER_TIMEZONE = os.getenv("USER_TIMEZONE", "Asia/Shanghai")

# 存储
DATA_DB_PATH = os.getenv("DATA_DB_PATH", "data/medreminder.db")

# 提醒扫描与通知
# 提醒的精度是分钟，扫描周期不宜大于 60 秒，否则可能跨过触发分钟
REMINDER_SCAN_INTERVAL_SECONDS = _parse_float("REMINDER_SCAN_INTERVAL_SECONDS", 60.0, 1.0)
if REMINDER_SCAN_INTERVAL_SECONDS > 60:
    logger.warning(f"REMINDER_SCAN_INTERVAL_SECONDS={REMINDER_SCAN_INTERVAL_SECONDS} 大于 60 秒，可能漏掉到期提醒")

NOTIFICATION_CANCEL_ATTEMPTS = _parse_int("NOTIFICATION_CANCEL_ATTEMPTS", 2, 1)
NOTIFICATIONS_PERMITTED = _parse_bool("NOTIFICATIONS_PERMITTED", True)
NOTIFICATIONS_EXACT_SUPPORTED = _parse_bool("NOTIFICATIONS_EXACT_SUPPORTED", True)
NOTIFICATION_HISTORY_SIZE = _parse_int("NOTIFICATION_HISTORY_SIZE", 200, 1)


# Admin API
ADMIN_HTTP_HOST = os.getenv("ADMIN_HTTP_HOST", "127.0.0.1")
ADMIN_HTTP_PORT = _parse_int("ADMIN_HTTP_PORT", 18080, 1)
ADMIN_AUTH_TOKEN = os.getenv("ADMIN_AUTH_TOKEN", "")
ADMIN_LOG_FILE = os.getenv("ADMIN_LOG_FILE", "logs/medreminder.log")

# 日志
LOG_LEVEL = os.getenv("LOG_LEVEL", "TRACE").strip().upper()
CONSOLE_LOG_LEVEL = os.getenv("CONSOLE_LOG_LEVEL", "INFO").strip().upper()
