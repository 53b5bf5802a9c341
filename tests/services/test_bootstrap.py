"""Unit tests for src/services/bootstrap.py"""

from unittest.mock import MagicMock, patch

from src.automation.catalog import BotCatalog
from src.automation.selenium_board import SeleniumBoard
from src.core.config import AutomatorSettings
from src.services.bootstrap import build_session_manager


def test_sessions_get_selenium_boards(catalog: BotCatalog) -> None:
    """No browser is started until a session actually opens its board"""
    driver_factory = MagicMock()
    settings = AutomatorSettings(headless=False)
    with patch("src.services.bootstrap.configure_logging") as configure:
        manager = build_session_manager(settings, catalog=catalog, driver_factory=driver_factory)

    configure.assert_called_once_with("INFO")
    board = manager.board_factory()
    assert isinstance(board, SeleniumBoard)
    assert board.settings is settings
    assert manager.catalog is catalog
    driver_factory.assert_not_called()


def test_settings_default_to_environment(catalog: BotCatalog, monkeypatch) -> None:
    monkeypatch.setenv("CHESS_AUTOMATOR_MOVE_TIMEOUT", "20")
    monkeypatch.setenv("CHESS_AUTOMATOR_LOG_LEVEL", "debug")
    with patch("src.services.bootstrap.configure_logging") as configure:
        manager = build_session_manager(catalog=catalog)

    assert manager.settings.move_timeout == 20.0
    configure.assert_called_once_with("DEBUG")
