"""
Domain models: 统一的菜单项与订单定义

只在此处定义 MenuItem / Order，其他模块一律从这里导入，避免重复定义。
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real
from typing import Literal


OrderState = Literal["QUEUED", "PREPARING", "READY"]


class CatalogError(ValueError):
    """菜单配置错误（时长非正、字段缺失、重复 id 等），在加载菜单时即失败。"""


@dataclass(frozen=True)
class MenuItem:
    """菜单项（不可变，由菜单配置定义）

    - id: 菜单内唯一
    - name: 展示名称
    - duration_seconds: 制作时长（秒），必须 > 0
    """

    id: str
    name: str
    duration_seconds: float

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise CatalogError(f"menu item id must be a non-empty string, got {self.id!r}")
        if not isinstance(self.name, str) or not self.name:
            raise CatalogError(f"menu item {self.id!r} has no name")
        # bool 是 int 的子类，这里显式排除
        if isinstance(self.duration_seconds, bool) or not isinstance(self.duration_seconds, Real):
            raise CatalogError(
                f"menu item {self.id!r} duration must be a number, got {self.duration_seconds!r}"
            )
        if not math.isfinite(self.duration_seconds) or self.duration_seconds <= 0:
            raise CatalogError(
                f"menu item {self.id!r} duration must be a finite number > 0, got {self.duration_seconds!r}"
            )


@dataclass
class Order:
    """订单实体

    - id: 每次下单生成的唯一 token（不等于 menu_item_id，同一菜单项重复下单也不复用）
    - menu_item_id / name / duration_seconds: 下单时从菜单项拷贝
    - created_at: 下单时间（UTC）
    - state: 'QUEUED' | 'PREPARING' | 'READY'（默认 QUEUED），只由控制器的状态迁移修改
    """

    id: str
    menu_item_id: str
    name: str
    duration_seconds: float
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: OrderState = "QUEUED"
