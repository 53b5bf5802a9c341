"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Callable

import pytest

from src.automation.catalog import BotCatalog
from src.core.config import AutomatorSettings
from tests.fakes import FakeBoard


@pytest.fixture
def settings() -> AutomatorSettings:
    """Same settings as production, but with timeouts short enough for unit tests."""
    return AutomatorSettings(
        poll_interval=0.01,
        first_move_timeout=0.3,
        move_timeout=0.3,
        undo_timeout=0.3,
        catalog_timeout=2.0,
    )


@pytest.fixture
def catalog() -> BotCatalog:
    """Fresh catalog per test: the process-wide one would leak state between tests."""
    return BotCatalog()


@pytest.fixture
def board_factory() -> Callable[..., Callable[[], FakeBoard]]:
    """Returns a helper: board_factory(**kwargs) -> factory producing one FakeBoard (kept as `.board`)."""

    def make(**kwargs) -> Callable[[], FakeBoard]:
        board = FakeBoard(**kwargs)

        def factory() -> FakeBoard:
            return board

        factory.board = board  # type: ignore[attr-defined]
        return factory

    return make
