"""
一个简单的运行时指标收集类，用于统计扫描次数、通知投递等信息，方便后续扩展和监控。
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass
class RuntimeMetrics:
    scan_count: int = 0
    scan_error_count: int = 0
    due_reminder_count: int = 0
    immediate_delivery_count: int = 0
    scheduled_delivery_count: int = 0
    scheduling_fallback_count: int = 0
    delivery_error_count: int = 0
    cancelled_count: int = 0
    last_scan_at: float | None = None

    def record_scan(self, due: int, error: bool = False) -> None:
        self.scan_count += 1
        self.due_reminder_count += max(0, due)
        self.last_scan_at = time.time()
        if error:
            self.scan_error_count += 1

    def record_immediate(self) -> None:
        self.immediate_delivery_count += 1

    def record_scheduled(self) -> None:
        self.scheduled_delivery_count += 1

    def record_scheduling_fallback(self) -> None:
        self.scheduling_fallback_count += 1

    def record_delivery_error(self) -> None:
        self.delivery_error_count += 1

    def record_cancelled(self) -> None:
        self.cancelled_count += 1

    def snapshot(self) -> dict:
        return {
            "scan_count": self.scan_count,
            "scan_error_count": self.scan_error_count,
            "due_reminder_count": self.due_reminder_count,
            "immediate_delivery_count": self.immediate_delivery_count,
            "scheduled_delivery_count": self.scheduled_delivery_count,
            "scheduling_fallback_count": self.scheduling_fallback_count,
            "delivery_error_count": self.delivery_error_count,
            "cancelled_count": self.cancelled_count,
            "last_scan_at_epoch": self.last_scan_at,
            "last_scan_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_scan_at))
                if self.last_scan_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


__all__ = ["RuntimeMetrics", "runtime_metrics"]
