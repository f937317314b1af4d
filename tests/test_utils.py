import datetime

from medreminder.logger import error_log_path
from medreminder.utils import combine_local, now_user_local, resolve_timezone


def test_invalid_timezone_falls_back_to_utc():
    assert resolve_timezone("Mars/Olympus_Mons") is datetime.timezone.utc


def test_combine_local_uses_the_user_timezone():
    at = combine_local(datetime.date(2026, 10, 18), datetime.time(8, 30), "Asia/Shanghai")
    assert at.utcoffset() == datetime.timedelta(hours=8)
    assert at.astimezone(datetime.timezone.utc) == datetime.datetime(2026, 10, 18, 0, 30, tzinfo=datetime.timezone.utc)


def test_combine_local_drops_seconds():
    at = combine_local(datetime.date(2026, 10, 18), datetime.time(8, 30, 45), "UTC")
    assert (at.hour, at.minute, at.second) == (8, 30, 0)


def test_now_user_local_is_aware():
    assert now_user_local("UTC").tzinfo is not None


def test_error_log_path():
    assert str(error_log_path("logs/medreminder.log")).endswith("medreminder_error.log")
