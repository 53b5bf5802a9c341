"""Wiring for a running process: settings from the environment, logging, one Selenium browser per session."""

import logging
from functools import partial
from typing import Optional

from src.automation.catalog import BOT_CATALOG, BotCatalog
from src.automation.selenium_board import DriverFactory, SeleniumBoard, chrome_driver
from src.core.config import AutomatorSettings, configure_logging
from src.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


def build_session_manager(
    settings: Optional[AutomatorSettings] = None,
    catalog: BotCatalog = BOT_CATALOG,
    driver_factory: DriverFactory = chrome_driver,
) -> SessionManager:
    """The transport layer calls this once at startup and then routes every client message through the manager."""
    settings = settings or AutomatorSettings.from_env()
    configure_logging(settings.log_level.upper())
    logger.info(
        "Session manager ready (browser: %s).",
        settings.remote_url or ("local headless Chrome" if settings.headless else "local Chrome"),
    )
    board_factory = partial(SeleniumBoard, settings, driver_factory=driver_factory)
    return SessionManager(board_factory, catalog=catalog, settings=settings)
