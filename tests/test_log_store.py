import datetime

from medreminder.admin.store import filter_logs, parse_log_lines, tail_lines

LINES = [
    "Traceback fragment cut off by tail",
    "2026-10-18 08:29:59.950 | DEBUG    | medreminder.core.clock:_tick:45 - 开始扫描",
    "2026-10-18 08:30:00.012 | INFO     | medreminder.core.scanner:scan:61 - 到期提醒: Aspirin",
    "2026-10-18 08:30:00.020 | ERROR    | medreminder.notifications.scheduler:notify_now:88 - 通知显示失败",
    "Traceback (most recent call last):",
    "RuntimeError: backend offline",
    "2026-10-18 08:31:00.000 | WARNING  | medreminder.core.coordinator:_program:120 - 跳过历史提醒",
]


def test_parse_groups_continuation_lines():
    records = parse_log_lines(LINES)
    assert [r.level for r in records] == ["DEBUG", "INFO", "ERROR", "WARNING"]
    assert records[1].module == "medreminder.core.scanner"
    assert records[1].function == "scan"
    assert records[1].line == 61
    assert records[1].time == datetime.datetime(2026, 10, 18, 8, 30, 0, 12000)
    assert records[2].message.endswith("RuntimeError: backend offline")
    assert "Traceback fragment" not in "".join(r.message for r in records)


def test_filter_by_level_and_keyword():
    records = parse_log_lines(LINES)
    assert [r.level for r in filter_logs(records, levels=["error", "warning"])] == ["ERROR", "WARNING"]
    assert [r.module for r in filter_logs(records, keyword="ASPIRIN")] == ["medreminder.core.scanner"]
    assert filter_logs(records, levels=["bogus"]) == records


def test_filter_by_module_prefix_matches_whole_segments():
    records = parse_log_lines(LINES)
    core = filter_logs(records, module="medreminder.core")
    assert [r.function for r in core] == ["_tick", "scan", "_program"]
    assert filter_logs(records, module="medreminder.co") == []


def test_filter_since():
    records = parse_log_lines(LINES)
    recent = filter_logs(records, since=datetime.datetime(2026, 10, 18, 8, 30))
    assert [r.level for r in recent] == ["INFO", "ERROR", "WARNING"]


def test_record_serialises_time():
    record = parse_log_lines(LINES)[1]
    assert record.to_dict()["time"] == "2026-10-18 08:30:00.012"


def test_tail_keeps_last_lines(tmp_path):
    path = tmp_path / "app.log"
    path.write_text("\n".join(LINES) + "\n", encoding="utf-8")
    assert tail_lines(path, 2) == LINES[-2:]
    assert tail_lines(tmp_path / "missing.log", 10) == []
