"""
Tests for the engine controller.

The engine is driven by a ManualClock at 100ms per tick so that every
scenario is deterministic.
"""

import time
from datetime import timezone

import pytest

from barista.clock import ManualClock
from barista.domain import MenuItem, Order
from barista.engine import Engine
from barista.menu import load_menu


def preparing_count(engine):
    orders = engine.get_queued() + engine.get_ready()
    if engine.get_preparing() is not None:
        orders.append(engine.get_preparing())
    return sum(1 for o in orders if o.state == "PREPARING")


def test_place_order_while_idle_starts_preparing_immediately(engine, menu):
    order = engine.place_order(menu.get("c1"))

    assert engine.get_preparing().id == order.id
    assert order.state == "PREPARING"
    assert engine.get_progress() == 0.0
    assert engine.get_queued() == []


def test_order_identity(engine, menu):
    item = menu.get("c1")
    first = engine.place_order(item)
    second = engine.place_order(item)

    assert first.id != second.id
    assert first.id != item.id
    assert first.id.startswith("c1--")
    assert first.menu_item_id == "c1"
    assert first.name == item.name
    assert first.duration_seconds == item.duration_seconds
    assert first.created_at.tzinfo == timezone.utc


def test_end_to_end_single_order(clock):
    menu = load_menu([{"id": "c1", "name": "café au lait", "duration_seconds": 4}])
    engine = Engine(menu=menu, clock=clock, tick_interval_ms=100)
    engine.start(100)
    order = engine.place_order(menu.get("c1"))

    clock.advance(3900)
    assert engine.get_preparing().id == order.id
    assert engine.get_progress() == pytest.approx(0.975)

    clock.advance(100)
    assert [o.id for o in engine.get_ready()] == [order.id]
    assert engine.get_preparing() is None
    assert engine.get_progress() == 0.0

    assert engine.pick_up(order.id) == {"removed": True, "order_id": order.id}
    assert engine.get_ready() == []


def test_orders_complete_in_placement_order_despite_durations(engine, clock, menu):
    a = engine.place_order(menu.get("c1"))  # 4s
    b = engine.place_order(menu.get("c2"))  # 10s
    c = engine.place_order(menu.get("c3"))  # 15s

    clock.advance(4000)
    assert [o.id for o in engine.get_ready()] == [a.id]
    assert engine.get_preparing().id == b.id
    assert engine.get_progress() == 0.0

    clock.advance(25000)
    assert [o.id for o in engine.get_ready()] == [a.id, b.id, c.id]
    assert engine.get_preparing() is None
    assert engine.get_queued() == []


def test_at_most_one_order_preparing_on_every_tick(engine, clock, menu):
    for item_id in ("c3", "c1", "c2", "c1"):
        engine.place_order(menu.get(item_id))
    for _ in range(400):
        clock.tick()
        assert preparing_count(engine) <= 1
    assert len(engine.get_ready()) == 4


def test_completion_chain_has_no_intermediate_state(engine, clock, menu):
    a = engine.place_order(menu.get("c1"))
    b = engine.place_order(menu.get("c1"))
    clock.advance(3900)

    clock.tick()
    assert a.state == "READY"
    assert engine.get_preparing().id == b.id
    assert engine.get_progress() == 0.0


def test_pick_up_twice(engine, clock, menu):
    order = engine.place_order(menu.get("c1"))
    clock.advance(4000)

    assert engine.pick_up(order.id)["removed"] is True
    assert engine.pick_up(order.id)["removed"] is False
    assert engine.picked_up_count == 1


def test_pick_up_unknown_or_unready_is_not_an_error(engine, menu):
    order = engine.place_order(menu.get("c1"))
    assert engine.pick_up(order.id) == {"removed": False, "order_id": order.id}
    assert engine.pick_up("ghost") == {"removed": False, "order_id": "ghost"}
    assert engine.get_preparing().id == order.id


def test_stop_pauses_without_rollback(engine, clock, menu):
    order = engine.place_order(menu.get("c1"))
    clock.advance(2000)
    engine.stop()
    engine.stop()

    clock.advance(10_000)
    assert engine.get_preparing().id == order.id
    assert engine.get_progress() == pytest.approx(0.5)

    engine.start()
    clock.advance(2000)
    assert [o.id for o in engine.get_ready()] == [order.id]


def test_idle_station_promotes_on_tick(engine, clock):
    # enqueue behind the engine so nothing is promoted synchronously
    order = Order(id="late--1", menu_item_id="c1", name="Café au lait", duration_seconds=4)
    engine.store.enqueue(order)
    assert engine.get_preparing() is None

    clock.tick()
    assert engine.get_preparing().id == order.id
    assert engine.get_progress() == 0.0


def test_counts_and_estimates(engine, clock, menu):
    assert engine.pending_count() == 0
    assert engine.pickup_count() == 0
    assert engine.estimated_wait_seconds() == 0.0

    engine.place_order(menu.get("c1"))
    engine.place_order(menu.get("c2"))
    clock.advance(1000)
    assert engine.pending_count() == 2
    assert engine.remaining_seconds() == pytest.approx(3.0)
    assert engine.estimated_wait_seconds() == pytest.approx(13.0)

    clock.advance(3000)
    assert engine.pending_count() == 1
    assert engine.pickup_count() == 1


def test_status_snapshot_is_read_only(engine, menu):
    engine.place_order(menu.get("c1"))
    engine.place_order(menu.get("c2"))
    status = engine.status()

    assert status["pending_count"] == 2
    assert status["pickup_count"] == 0
    assert status["running"] is True
    assert status["tick_interval_ms"] == 100
    status["queued"][0].state = "READY"
    assert engine.get_queued()[0].state == "QUEUED"


def test_place_order_accepts_any_valid_item(engine):
    order = engine.place_order(MenuItem(id="tea", name="Tea", duration_seconds=0.3))
    assert order.state == "PREPARING"


def test_place_order_by_id_unknown(engine):
    with pytest.raises(KeyError):
        engine.place_order_by_id("nope")


def test_start_with_new_interval(engine, clock, menu):
    engine.start(250)
    order = engine.place_order(menu.get("c1"))
    clock.advance(250)
    assert engine.tick_interval_ms == 250
    assert engine.get_progress() == pytest.approx(250 / 4000)
    clock.advance(3750)
    assert engine.get_ready()[0].id == order.id


@pytest.mark.parametrize("interval", [0, -100])
def test_invalid_intervals_rejected(menu, interval):
    with pytest.raises(ValueError):
        Engine(menu=menu, clock=ManualClock(), tick_interval_ms=interval)
    engine = Engine(menu=menu, clock=ManualClock())
    with pytest.raises(ValueError):
        engine.start(interval)


def test_thread_clock_drives_orders_to_pickup():
    menu = load_menu([{"id": "shot", "name": "Ristretto", "duration_seconds": 0.05}])
    engine = Engine(menu=menu, tick_interval_ms=10)
    first = engine.place_order_by_id("shot")
    second = engine.place_order_by_id("shot")
    engine.start()
    try:
        deadline = time.monotonic() + 5.0
        while engine.pickup_count() < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        engine.stop()

    assert [o.id for o in engine.get_ready()] == [first.id, second.id]
    assert engine.get_preparing() is None
    assert not engine.is_running()


def test_leftover_tick_from_previous_subscription_uses_its_own_interval(engine, clock, menu):
    order = engine.place_order(menu.get("c1"))
    old_handler = clock._on_tick
    engine.start(250)

    # a tick from the replaced subscription still in flight
    old_handler()
    assert engine.get_progress() == pytest.approx(100 / 4000)

    clock.advance(250)
    assert engine.get_progress() == pytest.approx(350 / 4000)
    assert engine.get_preparing().id == order.id


def test_queries_return_copies(engine, clock, menu):
    engine.place_order(menu.get("c1"))
    engine.place_order(menu.get("c2"))

    engine.get_preparing().state = "READY"
    engine.get_queued()[0].state = "READY"
    engine.store.check_invariants()

    clock.advance(4000)
    engine.get_ready()[0].state = "QUEUED"
    engine.store.check_invariants()
    assert engine.get_ready()[0].state == "READY"
    assert engine.get_preparing().state == "PREPARING"
