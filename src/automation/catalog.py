"""
Process-wide bot catalog
-----

The list of bots on the practice page is the same for everybody, and scraping it means scrolling through the whole
selection menu. So it is loaded once per process, by whichever session asks first, and shared (read-only) by all
sessions afterwards.

Single-flight: while one session scans, every other session that needs the catalog waits on a condition variable
for that scan to finish instead of starting its own. All waits are bounded.
"""

import logging
import threading
import time
from enum import Enum, auto
from typing import Callable, Optional

from src.core.exceptions import CatalogLoadFailedError, SessionClosedError
from src.core.models import BotEntry, BotListing

logger = logging.getLogger(__name__)

PageLoader = Callable[[], tuple[list[BotListing], bool]]

# how long a waiter sleeps before re-checking its own cancellation
_WAIT_SLICE = 0.25


class CatalogState(Enum):
    EMPTY = auto()
    LOADING = auto()
    LOADED = auto()
    FAILED = auto()


class BotCatalog:
    """Append-only while loading, immutable once loaded."""

    def __init__(self, max_pages: int = 200) -> None:
        self.max_pages = max_pages
        self._cond = threading.Condition()
        self._state = CatalogState.EMPTY
        self._entries: tuple[BotEntry, ...] = ()
        self._attempt = 0
        self._error: Optional[BaseException] = None
        self.scans = 0

    @property
    def state(self) -> CatalogState:
        with self._cond:
            return self._state

    @property
    def is_loaded(self) -> bool:
        return self.state is CatalogState.LOADED

    @property
    def entries(self) -> tuple[BotEntry, ...]:
        """Empty until loaded."""
        with self._cond:
            return self._entries if self._state is CatalogState.LOADED else ()

    def ensure_loaded(
        self,
        load_page: PageLoader,
        timeout: float,
        cancelled: Optional[threading.Event] = None,
        max_pages: Optional[int] = None,
        wait: bool = True,
    ) -> tuple[BotEntry, ...]:
        """
        Return the catalog, loading it first if nobody did yet.
        ---
        * loaded: returns immediately
        * another caller is scanning: wait (at most `timeout`) for that scan, or return `()` at once with `wait=False`
        * nobody is scanning: scan with `load_page`

        Raises CatalogLoadFailedError when the scan this caller performed or waited for failed, or on timeout.
        Raises SessionClosedError when `cancelled` gets set while waiting.
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            waited_on: Optional[int] = None
            while True:
                if self._state is CatalogState.LOADED:
                    return self._entries
                if self._state is CatalogState.FAILED and waited_on == self._attempt:
                    raise CatalogLoadFailedError(
                        f"Failed to load bot list: {self._error}"
                    ) from self._error
                if self._state is not CatalogState.LOADING:
                    break
                if not wait:
                    return ()
                waited_on = self._attempt
                self._wait(deadline, cancelled)

            self._state = CatalogState.LOADING
            self._attempt += 1
            self._error = None
            self.scans += 1
            attempt = self._attempt

        logger.info("Loading bot list (attempt %d)...", attempt)
        try:
            entries = self._scan(load_page, deadline, cancelled, max_pages or self.max_pages)
        except SessionClosedError:
            # nobody failed: let the next waiter take over the scan
            self._finish(CatalogState.EMPTY)
            raise
        except Exception as exc:
            logger.warning("Bot list scan failed: %s", exc)
            self._finish(CatalogState.FAILED, error=exc)
            raise CatalogLoadFailedError(f"Failed to load bot list: {exc}") from exc

        self._finish(CatalogState.LOADED, entries=entries)
        logger.info("%d bots loaded.", len(entries))
        return entries

    def _scan(
        self,
        load_page: PageLoader,
        deadline: float,
        cancelled: Optional[threading.Event],
        max_pages: int,
    ) -> tuple[BotEntry, ...]:
        """Page through the list until the board says it was the last page. Bots are de-duplicated by name."""
        seen: set[str] = set()
        entries: list[BotEntry] = []
        for _ in range(max_pages):
            if cancelled is not None and cancelled.is_set():
                raise SessionClosedError("Session closed while loading the bot list.")
            if time.monotonic() > deadline:
                raise CatalogLoadFailedError("Timed out while scanning the bot list.")

            listings, is_last_page = load_page()
            for listing in listings:
                if listing.name in seen:
                    continue
                seen.add(listing.name)
                entries.append(BotEntry.from_listing(len(entries), listing))
            if is_last_page:
                return tuple(entries)

        raise CatalogLoadFailedError(
            f"Bot list did not end within {max_pages} pages."
        )

    def _finish(
        self,
        state: CatalogState,
        entries: tuple[BotEntry, ...] = (),
        error: Optional[BaseException] = None,
    ) -> None:
        with self._cond:
            self._state = state
            self._entries = entries
            self._error = error
            self._cond.notify_all()

    def _wait(self, deadline: float, cancelled: Optional[threading.Event]) -> None:
        """Wait one slice on the condition (lock must be held)."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise CatalogLoadFailedError("Timed out waiting for the bot list.")
        if cancelled is not None and cancelled.is_set():
            raise SessionClosedError("Session closed while waiting for the bot list.")
        self._cond.wait(timeout=min(remaining, _WAIT_SLICE))


# The one catalog shared by every session in this process
BOT_CATALOG = BotCatalog()
