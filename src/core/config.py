"""
Settings for the automation server.

Defaults match what the chess.com practice board needs. Every value can be overridden through
`CHESS_AUTOMATOR_<NAME>` environment variables (see `AutomatorSettings.from_env`).
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional, Self

ENV_PREFIX = "CHESS_AUTOMATOR_"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class AutomatorSettings:
    # move-wait polling
    poll_interval: float = 0.5
    first_move_timeout: float = 15.0
    move_timeout: float = 35.0
    undo_timeout: float = 10.0

    # bot catalog
    catalog_timeout: float = 180.0
    catalog_max_pages: int = 200

    # engine strength slider
    engine_level_min: int = 1
    engine_level_max: int = 25

    # browser
    analysis_url: str = "https://www.chess.com/analysis?tab=analysis"
    element_wait: float = 30.0
    hint_wait: float = 3.0
    headless: bool = True
    window_size: str = "1920,1080"
    remote_url: Optional[str] = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Read overrides from the environment. Unknown or empty variables are ignored."""
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for field in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{field.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            overrides[field.name] = _parse_value(raw.strip(), field.default)

        # same variable the Selenium docs use
        remote_url = env.get("SELENIUM_REMOTE_URL")
        if remote_url and "remote_url" not in overrides:
            overrides["remote_url"] = remote_url
        return cls(**overrides)


def _parse_value(raw: str, default: object) -> object:
    """Convert the raw string to the type of the field's default."""
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach a single stream handler to the root logger (no-op when handlers already exist)."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
