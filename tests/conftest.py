"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import barista...' works, and
provides engines driven by a manual clock.
"""
import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from barista.clock import ManualClock  # noqa: E402
from barista.engine import Engine  # noqa: E402
from barista.menu import default_menu  # noqa: E402


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def menu():
    return default_menu()


@pytest.fixture
def engine(menu, clock):
    eng = Engine(menu=menu, clock=clock, tick_interval_ms=100)
    eng.start()
    yield eng
    eng.stop()
