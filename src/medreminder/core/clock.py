"""周期唤醒

状态只有 idle 和 running。start() 立即扫描一次，之后按固定频率扫描:
第 k 次唤醒的截止时间是 start 时刻 + k * 周期，扫描耗时不会累积成漂移。
扫描在同一个后台任务里顺序执行，上一次扫描结束之前不会开始下一次。
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from medreminder.logger import logger
from medreminder.metrics import runtime_metrics

__all__ = ["ReminderClock"]


class ReminderClock:
    def __init__(self, scan: Callable[[], Awaitable[Any]], interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds 必须为正数")
        self._scan = scan
        self._interval = interval_seconds
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._last_tick_at_epoch: float | None = None

    @property
    def state(self) -> str:
        return "running" if self._stop_event is not None else "idle"

    def get_status(self) -> dict[str, object]:
        return {
            "state": self.state,
            "interval_seconds": self._interval,
            "last_tick_at_epoch": self._last_tick_at_epoch,
        }

    async def _tick(self) -> None:
        self._last_tick_at_epoch = time.time()
        try:
            await self._scan()
        except Exception:
            runtime_metrics.record_scan(0, error=True)
            logger.exception("到期提醒扫描失败，等待下一个周期")

    def _next_deadline(self, deadline: float, now: float) -> float:
        # 截止时间按起点累加，不受扫描耗时影响；扫描超过一个周期时跳到下一个未来的截止时间
        deadline += self._interval
        if deadline <= now:
            skipped = int((now - deadline) // self._interval) + 1
            deadline += skipped * self._interval
            logger.warning(f"到期提醒扫描超过周期, 跳过 {skipped} 次唤醒")
        return deadline

    async def _run(self, stop_event: asyncio.Event, started_at: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = self._next_deadline(started_at, loop.time())
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, deadline - loop.time()))
            except asyncio.TimeoutError:
                await self._tick()
                deadline = self._next_deadline(deadline, loop.time())

    async def start(self) -> None:
        if self._stop_event is not None:
            logger.debug("提醒时钟已在运行")
            return
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        logger.info(f"提醒时钟已启动, 周期 {self._interval} 秒")

        started_at = asyncio.get_running_loop().time()
        await self._tick()
        if stop_event.is_set():
            return
        self._task = asyncio.create_task(self._run(stop_event, started_at))

    async def stop(self) -> None:
        if self._stop_event is None:
            return
        stop_event, task = self._stop_event, self._task
        self._stop_event = None
        self._task = None
        stop_event.set()
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("提醒时钟已停止")

    async def main_loop(self, shutdown_event: asyncio.Event) -> None:
        await self.start()
        try:
            await shutdown_event.wait()
        finally:
            await self.stop()
