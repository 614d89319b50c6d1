from __future__ import annotations

import logging
import sys
from typing import Any, Dict

from .config import Settings, get_settings
from .engine import Engine
from .menu import default_menu, load_menu_file
from .progress import format_duration

logger = logging.getLogger(__name__)

PROGRESS_BAR_WIDTH = 20


def _clear_screen() -> None:
    # ANSI 清屏 + 光标归位
    print("\033[2J\033[H", end="")


def _format_table(headers: list[str], rows: list[list[str]]) -> str:
    # 简单文本表格渲染（无依赖）
    widths = [len(h) for h in headers]
    for r in rows:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], len(cell))

    def fmt_row(cols: list[str]) -> str:
        return " | ".join(col.ljust(widths[i]) for i, col in enumerate(cols))

    sep = "-+-".join("-" * w for w in widths)
    lines = [fmt_row(headers), sep]
    for r in rows:
        lines.append(fmt_row(r))
    return "\n".join(lines)


def _progress_bar(fraction: float) -> str:
    filled = int(fraction * PROGRESS_BAR_WIDTH)
    return "[" + "#" * filled + "." * (PROGRESS_BAR_WIDTH - filled) + f"] {fraction * 100:3.0f}%"


def _render_menu(items: list) -> str:
    if not items:
        return "The menu has no orderable items."
    rows = [[item.id, item.name, f"{item.duration_seconds:g}s"] for item in items]
    return "== Menu ==\n" + _format_table(["ID", "Item", "Duration"], rows)


def _render_status(data: Dict[str, Any]) -> str:
    # Queued
    queued_rows = [[o.id, o.name, f"{o.duration_seconds:g}s"] for o in data.get("queued", [])]
    queued = _format_table(["OrderID", "Item", "Duration"], queued_rows) if queued_rows else "<empty>"

    # Preparing
    preparing = data.get("preparing")
    if preparing is None:
        station = "<idle>"
    else:
        station = (
            f"{preparing.id} {preparing.name}\n"
            f"{_progress_bar(data.get('progress', 0.0))} "
            f"{format_duration(data.get('remaining_seconds', 0.0))} left"
        )

    # Ready
    ready_rows = [[o.id, o.name] for o in data.get("ready", [])]
    ready = _format_table(["OrderID", "Item"], ready_rows) if ready_rows else "<none>"

    clock = f"running, {data.get('tick_interval_ms')}ms" if data.get("running") else "stopped"
    parts = [
        f"== Queue ({len(queued_rows)}) ==\n" + queued,
        "\n\n== Preparing ==\n" + station,
        f"\n\n== Pickup ({data.get('pickup_count', 0)}) ==\n" + ready,
        f"\n\npending: {data.get('pending_count', 0)} | "
        f"wait for new order: {format_duration(data.get('estimated_wait_seconds', 0.0))} | "
        f"clock: {clock}",
    ]
    return "\n".join(parts)


def print_result(res: Dict[str, Any]) -> None:
    if not isinstance(res, dict):
        print(res)
        return
    if res.get("ok") is False:
        print(f"ERR: {res.get('error')}")
        if "usage" in res:
            print(res["usage"])
        return
    data = res.get("data")
    if isinstance(data, str):
        print(data)
    elif isinstance(data, dict) and data.get("clear"):
        _clear_screen()
    elif isinstance(data, dict) and data.get("menu") is not None:
        print(_render_menu(data["menu"]))
    elif isinstance(data, dict) and data.get("order") is not None:
        order = data["order"]
        print(f"Order placed for {order.name}: {order.id} ({order.state})")
    elif isinstance(data, dict) and "removed" in data:
        print(f"Order {data['order_id']} picked up.")
    elif isinstance(data, dict) and data.get("queued") is not None:
        print(_render_status(data))
    else:
        print(res)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_engine(settings: Settings) -> Engine:
    menu = load_menu_file(settings.menu_path) if settings.menu_path else default_menu()
    logger.debug("Menu has %d item(s), tick interval %sms", len(menu), settings.tick_interval_ms)
    return Engine(menu=menu, tick_interval_ms=settings.tick_interval_ms)


def repl(engine: Engine) -> None:
    engine.start()
    print("Type 'help' to see commands. Type 'exit' to quit.")
    try:
        while True:
            try:
                line = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            res = engine.handle_cmd(line)
            data = res.get("data")
            if isinstance(data, dict) and data.get("exit"):
                break
            print_result(res)
    finally:
        engine.shutdown()


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    settings = get_settings()
    configure_logging(settings)
    engine = build_engine(settings)
    if not argv:
        repl(engine)
        return 0
    # one-shot mode: join argv to a single command
    res = engine.handle_cmd(" ".join(argv))
    print_result(res)
    engine.shutdown()
    return 0 if res.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
