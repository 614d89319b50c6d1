"""
Engine: 订单生命周期控制器

职责：
- 持有 OrderStore、Clock 与菜单，生成订单 id
- 驱动单工位 FIFO 推进：下单即尝试上工位；tick 推进进度，满 1.0 时同一 tick 内完成并接续下一单
- 对外提供命令（place_order / pick_up / start / stop）与只读查询
- 提供 CLI 需要的入口 handle_cmd：只做解析与调度，不直接打印

并发约定：所有命令、查询与 tick 都在同一把 RLock 下串行执行；
start/stop 在锁外调用时钟，避免与正在等锁的 tick 线程互相等待。
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from functools import partial
from typing import Any, Dict, List, Optional

from .clock import Clock, ThreadClock
from .domain import MenuItem, Order
from .menu import Menu, default_menu
from .progress import compute_progress, remaining_seconds
from .store import OrderStore

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS = 100


class Engine:
    """订单引擎（每个会话一个实例，显式传给各个使用方）。

    内部字段：
    - menu: Menu
    - store: OrderStore
    - clock: Clock
    - tick_interval_ms: 当前 tick 间隔，也是每次 tick 推进的毫秒数
    - picked_up_count: 已取餐总数
    """

    def __init__(
        self,
        menu: Optional[Menu] = None,
        clock: Optional[Clock] = None,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    ) -> None:
        if tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be > 0, got {tick_interval_ms!r}")
        self.menu = menu if menu is not None else default_menu()
        self.store = OrderStore()
        self.clock: Clock = clock if clock is not None else ThreadClock(name="EngineClock")
        self.tick_interval_ms = tick_interval_ms
        self.picked_up_count = 0
        self._lock = threading.RLock()

    # -------------------- 命令 --------------------

    def place_order(self, menu_item: MenuItem) -> Order:
        """为菜单项创建新订单并入队；工位空闲时立即上工位。"""
        order = Order(
            id=f"{menu_item.id}--{uuid.uuid4().hex}",
            menu_item_id=menu_item.id,
            name=menu_item.name,
            duration_seconds=menu_item.duration_seconds,
        )
        with self._lock:
            self.store.enqueue(order)
            logger.info("Order %s placed for %s", order.id, order.name)
            self._promote()
        return order

    def place_order_by_id(self, item_id: str) -> Order:
        """按菜单 id 下单；未知 id 抛 KeyError。"""
        return self.place_order(self.menu.get(item_id))

    def pick_up(self, order_id: str) -> Dict[str, Any]:
        """从待取餐中移除订单，返回 {"removed": bool, "order_id": str}。

        找不到时不抛异常：通常是界面数据过期（已取走或仍在制作）。
        """
        with self._lock:
            order = self.store.pick_up(order_id)
            if order is None:
                if self.store.find(order_id) is not None:
                    logger.debug("Order %s is not ready for pickup yet", order_id)
                else:
                    logger.warning("Pickup requested for unknown order %s", order_id)
                return {"removed": False, "order_id": order_id}
            self.picked_up_count += 1
        logger.info("Order %s picked up (%s)", order.id, order.name)
        return {"removed": True, "order_id": order.id}

    def start(self, tick_interval_ms: Optional[int] = None) -> None:
        """启动（或以新间隔重启）时钟；已在制作的订单从原进度继续。

        每个订阅绑定自己的间隔，旧订阅残留的 tick 只推进旧间隔。
        """
        if tick_interval_ms is not None and tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be > 0, got {tick_interval_ms!r}")
        with self._lock:
            if tick_interval_ms is not None:
                self.tick_interval_ms = tick_interval_ms
            interval = self.tick_interval_ms
        self.clock.start(interval, partial(self._on_tick, interval))
        logger.info("Clock started (%sms per tick)", interval)

    def stop(self) -> None:
        """停止时钟，不回滚任何状态；未运行时为 no-op。"""
        if not self.clock.is_running():
            return
        self.clock.stop()
        logger.info("Clock stopped")

    def shutdown(self) -> None:
        self.stop()

    # -------------------- 查询 --------------------

    def get_queued(self) -> List[Order]:
        with self._lock:
            return [replace(o) for o in self.store.queued()]

    def get_preparing(self) -> Optional[Order]:
        with self._lock:
            order = self.store.preparing
            return None if order is None else replace(order)

    def get_progress(self) -> float:
        with self._lock:
            return self.store.progress

    def get_ready(self) -> List[Order]:
        with self._lock:
            return [replace(o) for o in self.store.ready()]

    def pending_count(self) -> int:
        """待制作徽标：queued 数量 + 工位上的 1 单。"""
        with self._lock:
            return len(self.store.queued()) + (1 if self.store.preparing is not None else 0)

    def pickup_count(self) -> int:
        with self._lock:
            return len(self.store.ready())

    def remaining_seconds(self) -> float:
        """工位订单剩余秒数；空闲时为 0。"""
        with self._lock:
            order = self.store.preparing
            if order is None:
                return 0.0
            return remaining_seconds(self.store.elapsed_ms, order.duration_seconds)

    def estimated_wait_seconds(self) -> float:
        """新订单上工位前需要等待的秒数：工位剩余 + 队列中所有订单时长。"""
        with self._lock:
            return self.remaining_seconds() + sum(o.duration_seconds for o in self.store.queued())

    def is_running(self) -> bool:
        return self.clock.is_running()

    def status(self) -> Dict[str, Any]:
        """返回系统快照（订单均为拷贝）。"""
        with self._lock:
            snap = self.store.snapshot()
            return {
                "queued": snap["queued"],
                "preparing": snap["preparing"],
                "progress": snap["progress"],
                "remaining_seconds": self.remaining_seconds(),
                "estimated_wait_seconds": self.estimated_wait_seconds(),
                "ready": snap["ready"],
                "pending_count": len(snap["queued"]) + (1 if snap["preparing"] is not None else 0),
                "pickup_count": len(snap["ready"]),
                "picked_up_count": self.picked_up_count,
                "running": self.clock.is_running(),
                "tick_interval_ms": self.tick_interval_ms,
            }

    # -------------------- 内部逻辑 --------------------

    def _promote(self) -> bool:
        if not self.store.promote_next():
            return False
        order = self.store.preparing
        logger.info("Order %s is now preparing (%ss)", order.id, order.duration_seconds)
        return True

    def _on_tick(self, interval_ms: int) -> None:
        """时钟回调：推进进度，满 1.0 时在同一 tick 内完成并接续下一单。"""
        with self._lock:
            order = self.store.preparing
            if order is None:
                self._promote()
                return
            elapsed_ms = self.store.elapsed_ms + interval_ms
            progress = compute_progress(elapsed_ms, order.duration_seconds)
            self.store.set_progress(elapsed_ms, progress)
            if progress >= 1.0:
                self.store.complete_current()
                logger.info("Order %s is ready for pickup (%s)", order.id, order.name)
                self._promote()

    # -------------------- CLI / CMD I/O --------------------

    def handle_cmd(self, line: str) -> Dict[str, Any]:
        """解析并执行一条命令行，返回结构化结果（不直接打印）。

        认可指令（指令名统一转小写，参数保持原样）：
        - "menu" / "m"                 -> 菜单列表
        - "order <item-id>" / "o"      -> 下单
        - "pickup <order-id>" / "p"    -> 取餐
        - "status" / "s"               -> 系统快照
        - "start [interval-ms]"        -> 启动时钟
        - "stop"                       -> 暂停时钟
        - "clear" / "cls"              -> 清屏
        - "exit" / "quit"              -> 请求退出（由外层 CLI 决定是否终止进程）

        返回值格式：
          {"ok": bool, "cmd": str, "data": Any | None, "error": str | None}
        未知命令：ok=False，并附带 error 与 usage。
        """
        parts = (line or "").split()
        if not parts:
            return {"ok": False, "cmd": "", "error": "empty command", "usage": self.help_text()}
        cmd, args = parts[0].lower(), parts[1:]

        if cmd in ("help", "h", "?"):
            return {"ok": True, "cmd": cmd, "data": self.help_text()}
        if cmd in ("menu", "m"):
            return {"ok": True, "cmd": cmd, "data": {"menu": self.menu.items()}}
        if cmd in ("order", "o"):
            if len(args) != 1:
                return {"ok": False, "cmd": cmd, "error": "usage: order <item-id>", "usage": self.help_text()}
            try:
                order = self.place_order_by_id(args[0])
            except KeyError:
                return {"ok": False, "cmd": cmd, "error": f"unknown menu item: {args[0]}"}
            return {"ok": True, "cmd": cmd, "data": {"order": replace(order)}}
        if cmd in ("pickup", "p"):
            if len(args) != 1:
                return {"ok": False, "cmd": cmd, "error": "usage: pickup <order-id>", "usage": self.help_text()}
            result = self.pick_up(args[0])
            if not result["removed"]:
                return {"ok": False, "cmd": cmd, "error": f"order not ready for pickup: {args[0]}", "data": result}
            return {"ok": True, "cmd": cmd, "data": result}
        if cmd in ("status", "s"):
            return {"ok": True, "cmd": cmd, "data": self.status()}
        if cmd == "start":
            if len(args) > 1:
                return {"ok": False, "cmd": cmd, "error": "usage: start [interval-ms]", "usage": self.help_text()}
            interval = None
            if args:
                try:
                    interval = int(args[0])
                except ValueError:
                    interval = 0
                if interval <= 0:
                    return {"ok": False, "cmd": cmd, "error": f"invalid interval: {args[0]}"}
            self.start(interval)
            return {"ok": True, "cmd": cmd, "data": f"clock running ({self.tick_interval_ms}ms per tick)"}
        if cmd == "stop":
            self.stop()
            return {"ok": True, "cmd": cmd, "data": "clock stopped"}
        if cmd in ("clear", "cls"):
            return {"ok": True, "cmd": cmd, "data": {"clear": True}}
        if cmd in ("exit", "quit"):
            return {"ok": True, "cmd": cmd, "data": {"exit": True}}
        return {"ok": False, "cmd": cmd, "error": f"unknown command: {cmd}", "usage": self.help_text()}

    def help_text(self) -> str:
        """返回 CLI 帮助文本，供外层打印。"""
        return (
            "Commands:\n"
            "  menu   | m              - 查看菜单\n"
            "  order  | o <item-id>    - 下单\n"
            "  pickup | p <order-id>   - 取餐\n"
            "  status | s              - 查看队列 / 工位 / 取餐区\n"
            "  start [interval-ms]     - 启动时钟\n"
            "  stop                    - 暂停时钟（进度保留）\n"
            "  clear | cls             - 清屏\n"
            "  help|h|?                - 帮助\n"
            "  exit|quit               - 退出\n"
        )
