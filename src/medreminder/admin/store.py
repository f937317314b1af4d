"""日志读取

文件日志的每一行由 logger.FILE_FORMAT 产生:

    2026-10-18 08:30:00.012 | INFO     | medreminder.core.scanner:scan:61 - 到期提醒: ...

多行消息(如异常堆栈)的续行没有前缀，归属到上一条记录。
"""

from __future__ import annotations

import datetime
import re
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path

_RECORD_RE = re.compile(
    r"^(?P<time>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}) \| "
    r"(?P<level>[A-Z]+)\s*\| "
    r"(?P<module>[\w.]+):(?P<function>[\w<>]+):(?P<line>\d+) - "
    r"(?P<message>.*)$"
)
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
_ALLOWED_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class LogRecord:
    time: datetime.datetime
    level: str
    module: str
    function: str
    line: int
    message: str

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["time"] = self.time.isoformat(sep=" ", timespec="milliseconds")
        return data


def tail_lines(path: Path, lines: int) -> list[str]:
    if not path.exists():
        return []
    buf: deque[str] = deque(maxlen=lines)
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            buf.append(line.rstrip("\n"))
    return list(buf)


def parse_log_lines(lines: list[str]) -> list[LogRecord]:
    """把原始行解析为记录；tail 截断导致开头没有前缀的续行会被丢弃"""
    records: list[LogRecord] = []
    for raw in lines:
        match = _RECORD_RE.match(raw)
        if match is None:
            if records:
                records[-1].message += "\n" + raw
            continue
        records.append(
            LogRecord(
                time=datetime.datetime.strptime(match.group("time"), _TIME_FORMAT),
                level=match.group("level"),
                module=match.group("module"),
                function=match.group("function"),
                line=int(match.group("line")),
                message=match.group("message"),
            )
        )
    return records


def filter_logs(
    records: list[LogRecord],
    levels: list[str] | None = None,
    keyword: str | None = None,
    module: str | None = None,
    since: datetime.datetime | None = None,
) -> list[LogRecord]:
    """按级别、关键字(忽略大小写，匹配消息)、模块前缀和起始时间过滤

    module 按点分段匹配前缀，例如 "medreminder.core" 匹配 medreminder.core.scanner。
    """
    target_levels = {str(lv).upper().strip() for lv in levels or []} & _ALLOWED_LOG_LEVELS
    target_keyword = (keyword or "").strip().lower()
    target_module = (module or "").strip().rstrip(".")

    filtered: list[LogRecord] = []
    for record in records:
        if target_levels and record.level not in target_levels:
            continue
        if target_keyword and target_keyword not in record.message.lower():
            continue
        if target_module and not (
            record.module == target_module or record.module.startswith(target_module + ".")
        ):
            continue
        if since is not None and record.time < since:
            continue
        filtered.append(record)
    return filtered
