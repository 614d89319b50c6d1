"""
Progress: 纯函数，(已耗时毫秒, 制作时长秒) -> 完成度 [0, 1]
"""
from __future__ import annotations

import math


def compute_progress(elapsed_ms: float, duration_seconds: float) -> float:
    """完成度 = clamp(elapsed_ms / (duration_seconds * 1000), 0, 1)。

    对固定的 duration_seconds，关于 elapsed_ms 单调不减。
    duration_seconds 非有限或 <= 0 属于调用方违约（菜单加载时已校验），直接抛 ValueError。
    """
    if not math.isfinite(duration_seconds) or duration_seconds <= 0:
        raise ValueError(f"duration_seconds must be a finite number > 0, got {duration_seconds!r}")
    fraction = elapsed_ms / (duration_seconds * 1000.0)
    if fraction <= 0.0:
        return 0.0
    if fraction >= 1.0:
        return 1.0
    return fraction


def remaining_seconds(elapsed_ms: float, duration_seconds: float) -> float:
    """剩余秒数，不会为负。"""
    return max(0.0, duration_seconds - elapsed_ms / 1000.0)


def format_duration(seconds: float) -> str:
    """格式化为 'Xm Ys'。"""
    seconds = max(0, int(round(seconds)))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m {secs}s"
