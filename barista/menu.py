"""
Menu: 菜单目录（静态配置）

- 默认菜单与原应用一致：Café au lait 4s / Cappuccino 10s / Espresso 15s
- 所有校验在加载时完成：时长非正、重复 id、格式错误一律抛 CatalogError
- 引擎运行时不会再看到非法菜单项
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .domain import CatalogError, MenuItem

logger = logging.getLogger(__name__)


DEFAULT_MENU_ENTRIES: List[Dict[str, Any]] = [
    {"id": "c1", "name": "Café au lait", "duration_seconds": 4},
    {"id": "c2", "name": "Cappuccino", "duration_seconds": 10},
    {"id": "c3", "name": "Espresso", "duration_seconds": 15},
]


class Menu:
    """有序菜单目录，按配置顺序迭代。"""

    def __init__(self, items: Iterable[MenuItem] = ()) -> None:
        self._items: Dict[str, MenuItem] = {}
        for item in items:
            if item.id in self._items:
                raise CatalogError(f"duplicate menu item id: {item.id!r}")
            self._items[item.id] = item

    def get(self, item_id: str) -> MenuItem:
        """按 id 取菜单项；不存在时抛 KeyError。"""
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"unknown menu item: {item_id}") from None

    def find(self, item_id: str) -> Optional[MenuItem]:
        return self._items.get(item_id)

    def items(self) -> List[MenuItem]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[MenuItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items


def _item_from_entry(entry: Mapping[str, Any]) -> MenuItem:
    if not isinstance(entry, Mapping):
        raise CatalogError(f"menu entry must be a mapping, got {type(entry).__name__}")
    # 兼容原始配置中的 "duration" 字段名
    duration = entry.get("duration_seconds", entry.get("duration"))
    item_id = entry.get("id")
    if isinstance(item_id, int) and not isinstance(item_id, bool):
        item_id = str(item_id)
    return MenuItem(id=item_id, name=entry.get("name"), duration_seconds=duration)


def load_menu(entries: Iterable[Mapping[str, Any]]) -> Menu:
    """从字典序列构建菜单，任何一项非法都会让整个加载失败。"""
    menu = Menu(_item_from_entry(e) for e in entries)
    logger.debug("Loaded menu with %d item(s)", len(menu))
    return menu


def load_menu_file(path: Union[str, Path]) -> Menu:
    """从 JSON 文件加载菜单。

    支持两种结构：
      [ {"id": ..., "name": ..., "duration_seconds": ...}, ... ]
      { "items": [ ... ] }
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"cannot read menu file {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise CatalogError(f"menu file {path} must contain a list of items")
    logger.info("Loading menu from %s", path)
    return load_menu(data)


def default_menu() -> Menu:
    return load_menu(DEFAULT_MENU_ENTRIES)
