"""
Clock: 可取消的周期 tick 源

职责：
- start(interval_ms, on_tick) 开始按固定间隔回调；运行中再次 start 会替换旧订阅（不叠加）
- stop() 停止后续 tick，幂等；不回滚任何状态（暂停/恢复，而非中止）
- 同一时刻最多只有一个 on_tick 在执行（single-flight）

两种实现：
- ThreadClock: 守护线程 + Event，按 time.monotonic() 截止时间调度
- ManualClock: 测试/模拟用，advance(ms) 时同步触发 tick
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TickHandler = Callable[[], None]


class Clock(Protocol):
    """tick 源接口。"""

    def start(self, interval_ms: float, on_tick: TickHandler) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_running(self) -> bool:
        ...


def _check_interval(interval_ms: float) -> float:
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be > 0, got {interval_ms!r}")
    return float(interval_ms)


class ThreadClock:
    """基于工作线程的时钟。

    内部字段：
    - _thread: 当前订阅的工作线程（None 表示未运行）
    - _stop_event: 当前订阅的停止事件，每次 start 新建
    - _lock: 保护 start/stop 的切换

    所有 tick 都在同一个工作线程上串行执行；回调超时只会让后续 tick
    紧接着触发，不会并发。
    """

    def __init__(self, name: str = "Clock") -> None:
        self.name = name
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self.interval_ms: Optional[float] = None

    def start(self, interval_ms: float, on_tick: TickHandler) -> None:
        """启动（或替换）订阅。"""
        interval = _check_interval(interval_ms)
        # 先停旧订阅，join 时不能持锁
        self.stop()
        with self._lock:
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(interval / 1000.0, on_tick, stop_event),
                name=f"{self.name}-{interval:g}ms",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            self.interval_ms = interval
            thread.start()
        logger.debug("%s started at %sms", self.name, interval)

    def stop(self) -> None:
        """停止后续 tick；未运行时为 no-op。

        在 tick 回调内部调用时不会 join 自己。
        """
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if stop_event is None:
            return
        stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.debug("%s stopped", self.name)

    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None

    # -------------------- 内部逻辑 --------------------

    def _run(self, interval: float, on_tick: TickHandler, stop_event: threading.Event) -> None:
        next_deadline = time.monotonic() + interval
        while True:
            remaining = next_deadline - time.monotonic()
            if remaining > 0 and stop_event.wait(remaining):
                break
            if stop_event.is_set():
                break
            try:
                on_tick()
            except Exception:
                # 回调异常不应导致时钟线程崩溃
                logger.exception("%s tick handler failed", self.name)
            next_deadline += interval


class ManualClock:
    """手动推进的时钟，tick 在 advance() 的调用方线程上同步触发。"""

    def __init__(self) -> None:
        self.interval_ms: Optional[float] = None
        self._on_tick: Optional[TickHandler] = None
        self._carry_ms = 0.0
        self._in_tick = False
        self.ticks = 0

    def start(self, interval_ms: float, on_tick: TickHandler) -> None:
        self.interval_ms = _check_interval(interval_ms)
        self._on_tick = on_tick
        self._carry_ms = 0.0

    def stop(self) -> None:
        self._on_tick = None
        self._carry_ms = 0.0

    def is_running(self) -> bool:
        return self._on_tick is not None

    def advance(self, ms: float) -> int:
        """推进 ms 毫秒，返回本次实际触发的 tick 数。

        不足一个间隔的余量累积到下次；停止状态下不触发，也不累积。
        """
        if ms < 0:
            raise ValueError("cannot advance a clock backwards")
        if self._on_tick is None:
            return 0
        if self._in_tick:
            raise RuntimeError("advance() called from inside a tick handler")
        self._carry_ms += ms
        fired = 0
        while self._on_tick is not None and self._carry_ms >= self.interval_ms:
            self._carry_ms -= self.interval_ms
            self._in_tick = True
            try:
                self._on_tick()
            finally:
                self._in_tick = False
            fired += 1
            self.ticks += 1
        return fired

    def tick(self) -> None:
        """恰好触发一次 tick。"""
        if self.interval_ms is not None:
            self.advance(self.interval_ms)
