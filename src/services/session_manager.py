"""
Session manager: one session (and one worker thread) per connected client.

Requests of the same client run strictly one after the other on that client's worker, in arrival order.
Different clients run in parallel; the only thing they share is the bot catalog.
"""

import logging
import threading
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from src.api.models import ActionRequest, ActionResponse, parse_request
from src.automation.catalog import BOT_CATALOG, BotCatalog
from src.core.config import AutomatorSettings
from src.core.exceptions import AutomatorError, SessionClosedError
from src.services.protocol import BoardFactory, SessionProtocol
from src.services.session import Session

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    protocol: SessionProtocol
    worker: ThreadPoolExecutor


class SessionManager:
    def __init__(
        self,
        board_factory: BoardFactory,
        catalog: BotCatalog = BOT_CATALOG,
        settings: Optional[AutomatorSettings] = None,
    ) -> None:
        self.board_factory = board_factory
        self.catalog = catalog
        self.settings = settings or AutomatorSettings()
        self._slots: dict[str, _Slot] = {}
        self._lock = threading.Lock()

    @property
    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._slots)

    def open_session(self, client_id: Optional[str] = None) -> str:
        """Register a new client. Returns its id."""
        client_id = client_id or uuid.uuid4().hex
        worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"session-{client_id[:8]}")

        def schedule(job: Callable[[], None]) -> Future:
            return worker.submit(job)

        protocol = SessionProtocol(
            Session(client_id),
            self.board_factory,
            catalog=self.catalog,
            settings=self.settings,
            schedule=schedule,
        )
        with self._lock:
            if client_id in self._slots:
                worker.shutdown(wait=False)
                raise ValueError(f"Session {client_id} already exists.")
            self._slots[client_id] = _Slot(protocol, worker)
        logger.info("Session %s opened.", client_id)
        return client_id

    def get_session(self, client_id: str) -> Optional[Session]:
        with self._lock:
            slot = self._slots.get(client_id)
        return slot.protocol.session if slot else None

    def submit(self, client_id: str, message: Mapping[str, Any]) -> "Future[ActionResponse]":
        """
        Queue a client message on its session's worker.
        ---
        Messages that cannot be parsed, or that target an unknown session, are answered right away
        (with an already completed future) without touching the session.
        """
        try:
            request = parse_request(message)
        except AutomatorError as exc:
            return _completed(ActionResponse.from_error(exc))

        with self._lock:
            slot = self._slots.get(client_id)
        if slot is None or slot.protocol.session.is_closed:
            return _completed(
                ActionResponse.from_error(SessionClosedError(f"No open session {client_id}."))
            )
        try:
            return slot.worker.submit(self._run, slot.protocol, request)
        except RuntimeError:
            # worker shut down between the lookup and the submit
            return _completed(ActionResponse.from_error(SessionClosedError("Session is closed.")))

    def dispatch(
        self, client_id: str, message: Mapping[str, Any], timeout: Optional[float] = None
    ) -> ActionResponse:
        """Submit and wait for the response."""
        future = self.submit(client_id, message)
        try:
            return future.result(timeout=timeout)
        except CancelledError:
            return ActionResponse.from_error(
                SessionClosedError("Session closed before the request ran.")
            )

    def close_session(self, client_id: str) -> None:
        """
        Close the session: pending requests are dropped, a running one is interrupted at its next poll
        (this waits for it to return), then the browser is released.
        """
        with self._lock:
            slot = self._slots.pop(client_id, None)
        if slot is None:
            return
        slot.protocol.session.cancelled.set()
        slot.worker.shutdown(wait=True, cancel_futures=True)
        slot.protocol.close()

    def close_all(self) -> None:
        for client_id in self.session_ids:
            self.close_session(client_id)

    @staticmethod
    def _run(protocol: SessionProtocol, request: ActionRequest) -> ActionResponse:
        try:
            return protocol.handle(request)
        except AutomatorError as exc:
            logger.info("Session %s: %s failed: %s", protocol.session.client_id, request.action, exc)
            return ActionResponse.from_error(exc)
        except Exception as exc:
            logger.exception("Session %s: unexpected error in %s", protocol.session.client_id, request.action)
            return ActionResponse(
                status="error", kind="internal_error", payload={"message": str(exc)}
            )


def _completed(response: ActionResponse) -> "Future[ActionResponse]":
    future: Future[ActionResponse] = Future()
    future.set_result(response)
    return future
