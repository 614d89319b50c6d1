"""
OrderStore: 订单三段式存储（queued / preparing / ready）

设计要点：
- queued: deque，FIFO，队头在 left
- preparing: 单一工位槽位，最多一个订单；只能经 promote_next / complete_current 修改
- ready: list，按完成顺序追加
- progress / elapsed_ms: 仅在 preparing 非空时有意义；每次 promote 或 complete 都归零
- 所有公有方法在内部加锁（RLock），每次修改后用 assert 检查不变量
"""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from typing import Any, Deque, Dict, List, Optional

from .domain import Order


class OrderStore:
    """订单存储与状态迁移规则。

    内部字段：
    - self._queued: Deque[Order]      # 待制作（队头在 left）
    - self._preparing: Optional[Order] # 工位上的订单
    - self._ready: List[Order]         # 待取餐，完成顺序
    - self._elapsed_ms / self._progress
    - self._lock: threading.RLock
    """

    def __init__(self) -> None:
        self._queued: Deque[Order] = deque()
        self._preparing: Optional[Order] = None
        self._ready: List[Order] = []
        self._elapsed_ms: float = 0.0
        self._progress: float = 0.0
        self._lock = threading.RLock()

    # -------------------- 状态迁移 --------------------

    def enqueue(self, order: Order) -> None:
        """追加到 queued 队尾，订单状态置为 QUEUED。"""
        with self._lock:
            order.state = "QUEUED"
            self._queued.append(order)
            self.check_invariants()

    def promote_next(self) -> bool:
        """工位空闲且队列非空时，把队头移入 preparing 并将进度归零。

        工位占用或队列为空时不做任何修改，返回 False。
        """
        with self._lock:
            if self._preparing is not None or not self._queued:
                return False
            order = self._queued.popleft()
            order.state = "PREPARING"
            self._preparing = order
            self._elapsed_ms = 0.0
            self._progress = 0.0
            self.check_invariants()
            return True

    def complete_current(self) -> Optional[Order]:
        """把 preparing 中的订单移到 ready 队尾，清空工位与进度。

        工位空闲时为 no-op，返回 None；调用方随后应立即 promote_next()。
        """
        with self._lock:
            order = self._preparing
            if order is None:
                return None
            order.state = "READY"
            self._ready.append(order)
            self._preparing = None
            self._elapsed_ms = 0.0
            self._progress = 0.0
            self.check_invariants()
            return order

    def pick_up(self, order_id: str) -> Optional[Order]:
        """从 ready 中移除指定订单；不在 ready 中时返回 None（由调用方决定如何处理）。"""
        with self._lock:
            for i, order in enumerate(self._ready):
                if order.id == order_id:
                    del self._ready[i]
                    self.check_invariants()
                    return order
            return None

    def set_progress(self, elapsed_ms: float, progress: float) -> None:
        """记录当前工位订单的已耗时与完成度；工位空闲时忽略。"""
        with self._lock:
            if self._preparing is None:
                return
            self._elapsed_ms = elapsed_ms
            self._progress = progress
            self.check_invariants()

    # -------------------- 查询 --------------------

    @property
    def preparing(self) -> Optional[Order]:
        with self._lock:
            return self._preparing

    @property
    def elapsed_ms(self) -> float:
        with self._lock:
            return self._elapsed_ms

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    def queued(self) -> List[Order]:
        with self._lock:
            return list(self._queued)

    def ready(self) -> List[Order]:
        with self._lock:
            return list(self._ready)

    def find(self, order_id: str) -> Optional[Order]:
        """在三段中查找订单（仅用于展示/调试）。"""
        with self._lock:
            if self._preparing is not None and self._preparing.id == order_id:
                return self._preparing
            for order in self._queued:
                if order.id == order_id:
                    return order
            for order in self._ready:
                if order.id == order_id:
                    return order
            return None

    def snapshot(self) -> Dict[str, Any]:
        """返回只读快照，订单为拷贝，可直接做相等比较。

        {
          "queued": [Order, ...],
          "preparing": Order | None,
          "elapsed_ms": float,
          "progress": float,
          "ready": [Order, ...],
        }
        """
        with self._lock:
            return {
                "queued": [replace(o) for o in self._queued],
                "preparing": None if self._preparing is None else replace(self._preparing),
                "elapsed_ms": self._elapsed_ms,
                "progress": self._progress,
                "ready": [replace(o) for o in self._ready],
            }

    # -------------------- 不变量 --------------------

    def check_invariants(self) -> None:
        """不变量被破坏说明是程序逻辑错误，直接断言失败。"""
        with self._lock:
            assert all(o.state == "QUEUED" for o in self._queued), "non-queued order in queue"
            assert all(o.state == "READY" for o in self._ready), "non-ready order in pickup pool"
            if self._preparing is None:
                assert self._progress == 0.0 and self._elapsed_ms == 0.0, "progress without an order"
            else:
                assert self._preparing.state == "PREPARING", "station holds a non-preparing order"
                assert 0.0 <= self._progress <= 1.0, f"progress out of range: {self._progress}"
            assert _all_unique(
                [o.id for o in self._queued]
                + [o.id for o in self._ready]
                + ([] if self._preparing is None else [self._preparing.id])
            ), "order present in more than one collection"


def _all_unique(ids: List[str]) -> bool:
    return len(ids) == len(set(ids))
