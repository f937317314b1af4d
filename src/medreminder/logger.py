"""日志模块

级别支持: TRACE/DEBUG/INFO/WARNING/ERROR/CRITICAL (兼容别名 FATAL -> CRITICAL)

使用：先调用 setup_logging 配置日志，然后 logger.info(...) 等写日志
"""

from __future__ import annotations

import inspect
import logging
import sys
from pathlib import Path
from typing import Literal, Union

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "FATAL"]

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "{name}:{function}:{line} - {message}"
)

_LEVEL_ALIAS = {"FATAL": "CRITICAL"}


def _normalize_level(level: Union[str, LogLevel]) -> str:
    return _LEVEL_ALIAS.get(str(level).upper(), str(level).upper())


def _file_handler(
    path: Path,
    *,
    level: str,
    retention: str,
) -> dict:
    return {
        "sink": path,
        "level": level,
        "format": FILE_FORMAT,
        "rotation": "10 MB",
        "retention": retention,
        "compression": "zip",
        "encoding": "utf-8",
    }


def error_log_path(log_file: Union[str, Path]) -> Path:
    """错误日志与主日志同目录，文件名追加 _error"""
    log_file = Path(log_file)
    return log_file.with_name(f"{log_file.stem}_error{log_file.suffix}")


def setup_logging(
    log_level: LogLevel,
    log_file: Union[str, Path],
    console_level: LogLevel = "INFO",
) -> None:
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_level = _normalize_level(log_level)
    console_lv = _normalize_level(console_level)

    logger.configure(
        handlers=[
            {
                "sink": sys.stderr,
                "level": console_lv,
                "format": CONSOLE_FORMAT,
                "colorize": True,
            },
            _file_handler(log_file, level=file_level, retention="30 days"),
            _file_handler(error_log_path(log_file), level="ERROR", retention="90 days"),
        ]
    )


class InterceptHandler(logging.Handler):
    """把标准库 logging 的记录转发给 loguru，保留调用位置和异常信息"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def intercept_std_logging(*names: str) -> None:
    """让指定的标准库 logger(如 uvicorn)只输出到 loguru 的 sink"""
    handler = InterceptHandler()
    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.propagate = False


__all__ = ["setup_logging", "error_log_path", "intercept_std_logging", "InterceptHandler", "logger"]
