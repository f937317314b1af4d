from medreminder.logger import setup_logging, logger
from medreminder.config.settings import *
setup_logging(
    log_level=LOG_LEVEL,
    log_file=ADMIN_LOG_FILE,
    console_level=CONSOLE_LOG_LEVEL,
)

import asyncio
import signal
import time

from medreminder.admin.http_server import main_loop as admin_http_main
from medreminder.admin.schemas import RuntimeControl
from medreminder.core.clock import ReminderClock
from medreminder.core.coordinator import ReminderLifecycleCoordinator
from medreminder.core.scanner import DueReminderScanner
from medreminder.notifications.local import LocalNotificationBackend
from medreminder.notifications.scheduler import NotificationScheduler
from medreminder.storage.reminder import ReminderStore
import medreminder.storage.db_config as db_config
import medreminder.storage.user as user_storage

shutdown_event = asyncio.Event()


def signal_handler(sig, frame):
    """处理 SIGINT (Ctrl+C) / SIGTERM 信号"""
    logger.info("收到中断信号,正在依次关闭组件...")
    shutdown_event.set()


async def main():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    await db_config.init_db(DATA_DB_PATH)

    backend = LocalNotificationBackend(
        permitted=NOTIFICATIONS_PERMITTED,
        exact_supported=NOTIFICATIONS_EXACT_SUPPORTED,
        history_size=NOTIFICATION_HISTORY_SIZE,
    )
    scheduler = NotificationScheduler(backend, cancel_attempts=NOTIFICATION_CANCEL_ATTEMPTS)
    store = ReminderStore()
    coordinator = ReminderLifecycleCoordinator(store, scheduler, user_tz=USER_TIMEZONE)
    scanner = DueReminderScanner(store, scheduler, user_tz=USER_TIMEZONE)
    clock = ReminderClock(scanner.scan, interval_seconds=REMINDER_SCAN_INTERVAL_SECONDS)

    control = RuntimeControl(
        shutdown_event=shutdown_event,
        started_at=time.time(),
        coordinator=coordinator,
        backend=backend,
        clock=clock,
    )

    try:
        user = await user_storage.get_current_user()
        logger.info(f"当前用户: {user.username if user else USER_NAME}")
        await coordinator.check_permissions(request=True)
        await coordinator.restore_schedules()

        await asyncio.gather(
            clock.main_loop(shutdown_event),
            admin_http_main(control),
        )
    finally:
        logger.info("关闭 MedReminder...")
        await clock.stop()
        await scheduler.cancel_all()

        logger.info("关闭数据库连接...")
        await db_config.close_db()
        logger.info("MedReminder 已关闭")


def run() -> None:
    logger.info("启动 MedReminder...")
    asyncio.run(main())


if __name__ == "__main__":
    run()
