"""Unit tests for src/services/session_manager.py"""

import time
from dataclasses import replace
from typing import Generator
from unittest.mock import patch

import pytest

from src.automation.catalog import BotCatalog, CatalogState
from src.chess.square import Square
from src.core.config import AutomatorSettings
from src.core.shared_types import SessionState
from src.services.session_manager import SessionManager
from tests.fakes import FakeBoard


@pytest.fixture
def manager(catalog: BotCatalog, settings: AutomatorSettings) -> Generator[SessionManager, None, None]:
    """Every session gets a fresh FakeBoard, kept in `manager.boards` (in creation order)"""
    boards: list[FakeBoard] = []

    def factory() -> FakeBoard:
        board = FakeBoard(replies=["e7e5", "b8c6"])
        boards.append(board)
        return board

    manager = SessionManager(factory, catalog=catalog, settings=settings)
    manager.boards = boards  # type: ignore[attr-defined]
    try:
        yield manager
    finally:
        manager.close_all()


def test_full_exchange(manager: SessionManager) -> None:
    client = manager.open_session()
    init = manager.dispatch(client, {"action": "init", "side": "white"}, timeout=5)
    reply = manager.dispatch(client, {"action": "next_move", "opponent_move": "e2e4"}, timeout=5)

    assert init.is_ok
    assert reply.kind == "engine_move"
    assert reply.payload["move"]["to"] == "e5"
    assert manager.get_session(client).state == SessionState.READY


def test_requests_run_in_arrival_order(manager: SessionManager) -> None:
    """Submitted back to back without waiting: still applied one after the other"""
    client = manager.open_session("client-a")
    futures = [
        manager.submit(client, {"action": "init", "side": "white"}),
        manager.submit(client, {"action": "next_move", "opponent_move": "e2e4"}),
        manager.submit(client, {"action": "next_move", "opponent_move": "g1f3"}),
    ]
    responses = [future.result(timeout=5) for future in futures]

    assert [response.kind for response in responses] == ["init", "engine_move", "engine_move"]
    assert manager.boards[0].submitted == [
        (Square.from_algebraic("e2"), Square.from_algebraic("e4")),
        (Square.from_algebraic("g1"), Square.from_algebraic("f3")),
    ]


def test_sessions_are_independent(manager: SessionManager) -> None:
    first = manager.open_session()
    second = manager.open_session()
    manager.dispatch(first, {"action": "init", "side": "white"}, timeout=5)

    response = manager.dispatch(second, {"action": "next_move", "opponent_move": "e2e4"}, timeout=5)
    assert response.kind == "bot_not_initialized"
    assert len(manager.boards) == 1


class SlowMenuBoard(FakeBoard):
    """Scrolling the bot menu takes a while"""

    def load_catalog_page(self):
        time.sleep(0.3)
        return super().load_catalog_page()


def test_catalog_scan_does_not_hold_up_other_sessions(catalog: BotCatalog, settings: AutomatorSettings) -> None:
    manager = SessionManager(lambda: SlowMenuBoard(replies=["e7e5"]), catalog=catalog, settings=settings)
    try:
        first = manager.open_session("first")
        second = manager.open_session("second")
        manager.dispatch(first, {"action": "init", "side": "white"}, timeout=5)
        deadline = time.monotonic() + 2
        while catalog.state is not CatalogState.LOADING and time.monotonic() < deadline:
            time.sleep(0.01)
        assert catalog.state is CatalogState.LOADING

        manager.dispatch(second, {"action": "init", "side": "white"}, timeout=5)
        started = time.monotonic()
        reply = manager.dispatch(second, {"action": "next_move", "opponent_move": "e2e4"}, timeout=5)

        assert reply.kind == "engine_move"
        assert time.monotonic() - started < 0.5
        assert catalog.state is CatalogState.LOADING
        assert catalog.scans == 1
    finally:
        manager.close_all()


@pytest.mark.parametrize(
    "message, kind",
    [
        ({"action": "resign"}, "invalid_request"),
        ({}, "invalid_request"),
        ({"action": "next_move", "opponent_move": "e2"}, "invalid_move"),
        ({"action": "init", "side": "purple"}, "invalid_request"),
        ({"action": "select_bot"}, "invalid_request"),
    ],
)
def test_malformed_messages_are_rejected(manager: SessionManager, message: dict, kind: str) -> None:
    client = manager.open_session()
    response = manager.dispatch(client, message, timeout=5)
    assert response.status == "error"
    assert response.kind == kind
    assert manager.get_session(client).state == SessionState.UNINITIALIZED


def test_unknown_session(manager: SessionManager) -> None:
    response = manager.dispatch("nobody", {"action": "ping"}, timeout=5)
    assert response.kind == "session_closed"


def test_duplicate_session_id(manager: SessionManager) -> None:
    manager.open_session("client-a")
    with pytest.raises(ValueError):
        manager.open_session("client-a")


def test_unexpected_errors_become_internal_error(manager: SessionManager) -> None:
    client = manager.open_session()
    manager.dispatch(client, {"action": "init", "side": "white"}, timeout=5)

    with patch.object(FakeBoard, "get_snapshot", side_effect=RuntimeError("boom")):
        response = manager.dispatch(client, {"action": "next_move", "opponent_move": "e2e4"}, timeout=5)
    assert response.status == "error"
    assert response.kind == "internal_error"
    assert response.payload["message"] == "boom"

    # the session survives
    assert manager.dispatch(client, {"action": "ping"}, timeout=5).is_ok


def test_close_interrupts_running_wait(catalog: BotCatalog, settings: AutomatorSettings) -> None:
    boards: list[FakeBoard] = []

    def factory() -> FakeBoard:
        boards.append(FakeBoard())  # engine never answers
        return boards[-1]

    manager = SessionManager(factory, catalog=catalog, settings=replace(settings, move_timeout=30.0))
    client = manager.open_session()
    manager.dispatch(client, {"action": "init", "side": "white"}, timeout=5)

    waiting = manager.submit(client, {"action": "next_move", "opponent_move": "e2e4"})
    queued = manager.submit(client, {"action": "ping"})
    time.sleep(0.1)

    started = time.monotonic()
    manager.close_session(client)
    assert time.monotonic() - started < 5

    assert waiting.result(timeout=5).kind == "session_closed"
    assert queued.cancelled() or queued.result(timeout=5).kind == "session_closed"
    assert boards[0].close_calls == 1
    assert manager.get_session(client) is None
    assert manager.dispatch(client, {"action": "ping"}, timeout=5).kind == "session_closed"


def test_close_all(manager: SessionManager) -> None:
    for _ in range(3):
        client = manager.open_session()
        manager.dispatch(client, {"action": "init", "side": "white"}, timeout=5)

    manager.close_all()
    assert manager.session_ids == []
    assert all(board.close_calls == 1 for board in manager.boards)
