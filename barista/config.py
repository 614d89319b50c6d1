"""
Settings: 运行配置

从环境变量读取（启动时先加载 .env），在 __post_init__ 中校验，配置错误在启动时即失败。
- BARISTA_TICK_INTERVAL_MS: 时钟间隔（毫秒，> 0，默认 100）
- BARISTA_LOG_LEVEL: 日志级别（默认 INFO）
- BARISTA_MENU_PATH: 可选的 JSON 菜单文件
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_TICK_INTERVAL_MS = 100
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    log_level: str = DEFAULT_LOG_LEVEL
    menu_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if isinstance(self.tick_interval_ms, bool) or not isinstance(self.tick_interval_ms, int):
            raise ValueError(f"tick_interval_ms must be an integer, got {self.tick_interval_ms!r}")
        if self.tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be > 0, got {self.tick_interval_ms}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level: {self.log_level!r}")


def get_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """构建 Settings；environ 为 None 时读取进程环境（并加载 .env）。"""
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ

    raw_interval = environ.get("BARISTA_TICK_INTERVAL_MS", "").strip()
    try:
        tick_interval_ms = int(raw_interval) if raw_interval else DEFAULT_TICK_INTERVAL_MS
    except ValueError:
        raise ValueError(f"BARISTA_TICK_INTERVAL_MS must be an integer, got {raw_interval!r}") from None

    menu_path = environ.get("BARISTA_MENU_PATH", "").strip()
    return Settings(
        tick_interval_ms=tick_interval_ms,
        log_level=environ.get("BARISTA_LOG_LEVEL", "").strip() or DEFAULT_LOG_LEVEL,
        menu_path=Path(menu_path) if menu_path else None,
    )
