from __future__ import annotations

import asyncio

import uvicorn

from medreminder.config import settings
from medreminder.logger import intercept_std_logging, logger

from .app import create_app
from .schemas import RuntimeControl

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def build_server(control: RuntimeControl) -> uvicorn.Server:
    """管理 API 的 uvicorn 实例，日志统一走 loguru"""
    if not settings.ADMIN_AUTH_TOKEN:
        logger.warning("未配置 ADMIN_AUTH_TOKEN，提醒管理 API 除健康检查外均返回 503")

    config = uvicorn.Config(
        create_app(control),
        host=settings.ADMIN_HTTP_HOST,
        port=settings.ADMIN_HTTP_PORT,
        log_config=None,
        log_level="info",
        access_log=False,
    )
    intercept_std_logging(*UVICORN_LOGGERS)
    server = uvicorn.Server(config)
    # 嵌入到主进程时，统一由 main.py 处理系统信号。
    server.install_signal_handlers = lambda: None
    return server


async def _wait_shutdown_signal(shutdown_event: asyncio.Event, server: uvicorn.Server) -> None:
    await shutdown_event.wait()
    logger.info("收到关闭信号，停止 Admin HTTP 服务")
    server.should_exit = True


async def main_loop(control: RuntimeControl) -> None:
    server = build_server(control)
    watcher = asyncio.create_task(_wait_shutdown_signal(control.shutdown_event, server))
    logger.info(f"Admin HTTP 服务准备启动: http://{settings.ADMIN_HTTP_HOST}:{settings.ADMIN_HTTP_PORT}")
    try:
        await server.serve()
    finally:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass
        logger.info("Admin HTTP 服务已关闭")
