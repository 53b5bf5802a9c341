"""
Session protocol: the state machine behind the actions a client can send.

    uninitialized --init--> initializing --> ready <--> awaiting_opponent
                                               |  ^
                               (pawn reaches   v  | promote
                                the last rank) promotion_pending

    any state --close--> closed

Every action runs on the session's own worker (see `session_manager.py`), so actions of one session never overlap.
Errors are raised as the exceptions from `src.core.exceptions`; the session manager turns them into responses.
"""

import logging
import time
from typing import Any, Callable, Optional

from src.api.models import (
    ActionRequest,
    ActionResponse,
    InitRequest,
    ListBotsRequest,
    NextMoveRequest,
    PingRequest,
    PromoteRequest,
    SelectBotRequest,
    UndoRequest,
)
from src.automation.board import BoardDriver
from src.automation.catalog import BOT_CATALOG, BotCatalog
from src.chess.diff import classify
from src.chess.moves import InferredMove, MoveSpec
from src.chess.pieces import PROMOTION_LETTERS
from src.chess.simulator import simulate
from src.chess.snapshot import Snapshot
from src.core.config import AutomatorSettings
from src.core.exceptions import (
    AmbiguousDiffError,
    BoardDriverError,
    BotIdOutOfRangeError,
    BotNotInitializedError,
    CatalogLoadFailedError,
    CollaboratorError,
    EngineLevelOutOfRangeError,
    EngineMoveTimeoutError,
    EngineReplyOutstandingError,
    InitializationFailedError,
    InsufficientHistoryError,
    InvalidPromotionPieceError,
    NoOpponentMoveError,
    NoPendingPromotionError,
    PendingPromotionUnresolvedError,
    SessionAlreadyInitializedError,
    SessionClosedError,
)
from src.core.models import BotEntry, BotRef
from src.core.shared_types import Action, Color, SessionState
from src.services.session import PendingPromotion, Session

logger = logging.getLogger(__name__)

BoardFactory = Callable[[], BoardDriver]
Scheduler = Callable[[Callable[[], None]], Any]


class SessionProtocol:
    """Orchestration of one client's session: validates the session state, then drives board, classifier and catalog."""

    def __init__(
        self,
        session: Session,
        board_factory: BoardFactory,
        catalog: BotCatalog = BOT_CATALOG,
        settings: Optional[AutomatorSettings] = None,
        schedule: Optional[Scheduler] = None,
    ) -> None:
        self.session = session
        self.catalog = catalog
        self.settings = settings or AutomatorSettings()
        self._board_factory = board_factory
        # runs a job later on this session's worker (used to preload the bot list after init)
        self._schedule = schedule

    def handle(self, request: ActionRequest) -> ActionResponse:
        """Route a parsed request to its action."""
        handlers: dict[type, Callable[[Any], ActionResponse]] = {
            PingRequest: lambda _: self.ping(),
            InitRequest: self.init,
            NextMoveRequest: self.next_move,
            PromoteRequest: self.promote,
            SelectBotRequest: self.select_bot,
            UndoRequest: lambda _: self.undo(),
            ListBotsRequest: lambda _: self.list_bots(),
        }
        handler = handlers.get(type(request))
        if handler is None:
            raise TypeError(f"Unsupported request: {request!r}")
        return handler(request)

    # --- ACTIONS ---
    def ping(self) -> ActionResponse:
        self._assert_open()
        return ActionResponse.ok(Action.PING, state=str(self.session.state))

    def init(self, request: InitRequest) -> ActionResponse:
        """
        Open the board and start the game.
        ---
        1. open the practice board (fresh, or from the PGN) and remember the starting position
        2. queue loading the bot list, without making the client wait for it
        3. if the engine moves first: wait (briefly) for its first move and report it
        """
        session = self.session
        self._assert_open()
        if session.state != SessionState.UNINITIALIZED:
            raise SessionAlreadyInitializedError(
                f"Session already initialized (state: {session.state})."
            )

        side = request.resolved_side()
        session.state = SessionState.INITIALIZING
        session.side = side
        try:
            session.board = self._board_factory()
            initial = session.board.open(side, request.pgn, request.move_number)
        except Exception as exc:
            logger.warning("Session %s failed to initialize: %s", session.client_id, exc)
            self.close()
            raise InitializationFailedError(
                f"Failed to initialize the board: {exc}"
            ) from exc

        session.initial_snapshot = initial
        session.advance(initial)
        session.selected_bot = session.board.current_bot()
        session.state = SessionState.READY
        logger.info("Session %s initialized as %s.", session.client_id, side)

        if self._schedule is not None and not self.catalog.is_loaded:
            self._schedule(self._preload_catalog)

        engine_move: Optional[InferredMove] = None
        engine_active = False
        if request.pgn is None and side == Color.BLACK:
            try:
                engine_move = self._await_engine_move(self.settings.first_move_timeout)
                engine_active = True
            except EngineMoveTimeoutError:
                session.awaiting_engine_move = False
                logger.info("Engine did not open the game, waiting for the client to move.")
            except (AmbiguousDiffError, CollaboratorError) as exc:
                logger.warning("Session %s: could not read the engine's opening move: %s", session.client_id, exc)
                self.close()
                raise InitializationFailedError(
                    f"Failed to read the engine's first move: {exc}"
                ) from exc

        return ActionResponse.ok(
            Action.INIT,
            message=f"Initialized as {side.name}",
            side=str(side),
            state=initial.to_readable(),
            current_bot=_bot_ref_payload(session.selected_bot),
            bots=[_bot_payload(bot) for bot in self.catalog.entries],
            engine_active=engine_active,
            engine_move=engine_move.to_payload() if engine_move else None,
        )

    def next_move(self, request: NextMoveRequest) -> ActionResponse:
        """
        Play the client's move on the board, then wait for the engine's reply.
        ---
        If the previous call timed out while waiting for the engine, sending the same move again resumes that wait
        (the move is already on the board and must not be played twice).
        """
        session = self._assert_ready()
        move = request.move_spec()
        if move is None:
            raise NoOpponentMoveError("Opponent move cannot be null.")

        if session.awaiting_engine_move:
            if move != session.last_submitted_move:
                raise EngineReplyOutstandingError(
                    f"Still waiting for the engine to answer {session.last_submitted_move}."
                )
            logger.info("Resuming wait for the engine's answer to %s", move)
        else:
            self._play(session, move)
            if session.pending_promotion is not None:
                if move.promote_to is None:
                    return ActionResponse.ok(
                        "promotion_pending",
                        message=f"Promotion required at {move.to_square}",
                        **{"from": str(move.from_square), "to": str(move.to_square)},
                    )
                self._complete_promotion(move.promote_to)

        engine_move = self._await_engine_move(self.settings.move_timeout)
        return _engine_move_response(engine_move)

    def promote(self, request: PromoteRequest) -> ActionResponse:
        """Pick the promotion piece, then wait for the engine's reply to the promotion move."""
        session = self.session
        self._assert_open()
        if session.pending_promotion is None or session.state != SessionState.PROMOTION_PENDING:
            raise NoPendingPromotionError("No pending promotion to complete.")
        letter = request.promote_to.strip().lower()
        if letter not in PROMOTION_LETTERS:
            raise InvalidPromotionPieceError(
                f"Invalid piece for promotion: {request.promote_to!r}"
            )

        self._complete_promotion(letter)

        engine_move: Optional[InferredMove] = None
        try:
            engine_move = self._await_engine_move(self.settings.move_timeout)
        except EngineMoveTimeoutError:
            logger.warning("No engine reply after promotion within %.0fs", self.settings.move_timeout)

        return ActionResponse.ok(
            Action.PROMOTE,
            message=f"Promoted to {letter.upper()}",
            piece=letter,
            engine_move=engine_move.to_payload() if engine_move else None,
            engine_timeout=engine_move is None,
        )

    def select_bot(self, request: SelectBotRequest) -> ActionResponse:
        session = self._assert_ready()
        entries = self._load_catalog()
        if not 0 <= request.bot_id < len(entries):
            raise BotIdOutOfRangeError(
                f"Bot ID {request.bot_id} out of range (0-{len(entries) - 1})."
            )
        bot = entries[request.bot_id]

        level = request.engine_level
        if bot.is_engine and level is not None:
            low, high = self.settings.engine_level_min, self.settings.engine_level_max
            if not low <= level <= high:
                raise EngineLevelOutOfRangeError(
                    f"Engine level must be between {low} and {high}, got {level}."
                )
        elif level is not None:
            logger.info("Ignoring engine level for non-engine bot %s", bot.name)
            level = None

        session.board.choose_bot(bot, level)
        session.selected_bot = session.board.current_bot() or BotRef(
            name=bot.name, rating=bot.rating, avatar=bot.avatar
        )
        return ActionResponse.ok(
            Action.SELECT_BOT,
            message=f"Selected bot: {session.selected_bot.name}",
            bot=_bot_payload(bot),
            current_bot=session.selected_bot.describe(),
        )

    def undo(self) -> ActionResponse:
        """
        Take back one full move (the engine's reply and the client's move).
        ---
        Each step back is only considered done once the board position actually changed.
        """
        session = self._assert_ready()
        board = session.board
        if board.history_length() < 2:
            raise InsufficientHistoryError("Not enough moves to undo.")

        with session.move_wait_lock:
            for _ in range(2):
                previous = board.get_snapshot()
                board.step_back()
                self._wait_for_change(previous, self.settings.undo_timeout)
            current = board.get_snapshot()

        session.advance(current)
        session.last_submitted_move = None
        logger.info("Session %s: last move undone.", session.client_id)
        return ActionResponse.ok(
            Action.UNDO, message="Undid last move.", state=current.to_readable()
        )

    def list_bots(self) -> ActionResponse:
        session = self.session
        self._assert_open()
        if session.board is None or session.state in (
            SessionState.UNINITIALIZED,
            SessionState.INITIALIZING,
        ):
            raise BotNotInitializedError("Bot not initialized.")
        entries = self._load_catalog()
        return ActionResponse.ok(
            Action.LIST_BOTS,
            bots=[_bot_payload(bot) for bot in entries],
            current_bot=_bot_ref_payload(session.selected_bot),
        )

    def close(self) -> None:
        """Close the session and release the browser. Never raises."""
        board = self.session.close()
        if board is None:
            return
        try:
            board.close()
        except Exception:
            logger.exception("Failed to release board of session %s", self.session.client_id)
        logger.info("Session %s closed.", self.session.client_id)

    # --- STATE CHECKS ---
    def _assert_open(self) -> None:
        if self.session.is_closed:
            raise SessionClosedError("Session is closed.")

    def _assert_ready(self) -> Session:
        """Board open, no promotion outstanding."""
        self._assert_open()
        session = self.session
        if session.board is None or session.state in (
            SessionState.UNINITIALIZED,
            SessionState.INITIALIZING,
        ):
            raise BotNotInitializedError("Bot not initialized.")
        if session.pending_promotion is not None or session.state == SessionState.PROMOTION_PENDING:
            raise PendingPromotionUnresolvedError(
                "Pending promotion detected. Complete it before proceeding."
            )
        return session

    # --- MOVES ---
    def _play(self, session: Session, move: MoveSpec) -> None:
        """Predict the position after our move, then play it on the board."""
        current = session.board.get_snapshot()
        predicted = simulate(current, move)
        logger.info("Session %s plays %s", session.client_id, move)
        session.board.submit_move(move.from_square, move.to_square)

        session.last_known_snapshot = current
        session.baseline = predicted
        session.last_submitted_move = move
        session.awaiting_engine_move = True

        if session.board.promotion_pending():
            mover = current[move.from_square]
            session.pending_promotion = PendingPromotion(
                move.from_square, move.to_square, mover.color
            )
            session.state = SessionState.PROMOTION_PENDING
            logger.info("Promotion required at %s", move.to_square)

    def _complete_promotion(self, letter: str) -> None:
        """Resolve the board's promotion prompt and fold the new piece into the baseline."""
        session = self.session
        pending = session.pending_promotion
        session.board.resolve_promotion(letter)

        pawn = session.baseline.piece(pending.to_square)
        if pawn is not None:
            session.baseline = session.baseline.with_changes(
                place={pending.to_square: pawn.promoted_to(letter)}
            )
        session.pending_promotion = None
        session.state = SessionState.READY

    def _await_engine_move(self, timeout: float) -> InferredMove:
        """Poll the board until the engine's move shows up. Only one move-wait per session at a time."""
        session = self.session
        with session.move_wait_lock:
            session.awaiting_engine_move = True
            session.state = SessionState.AWAITING_OPPONENT
            try:
                move = self._poll_for_move(session.baseline, timeout)
            finally:
                if not session.is_closed:
                    session.state = SessionState.READY
            session.advance(move.resulting_snapshot)
        logger.info(
            "Engine move detected: %s from %s to %s",
            move.piece.letter.upper(),
            move.from_square,
            move.to_square,
        )
        return move

    def _poll_for_move(self, baseline: Snapshot, timeout: float) -> InferredMove:
        """
        Re-sample the board every `poll_interval` until the classifier sees a move.
        ---
        An unclassifiable board (e.g. castling half rendered) gets one more sample before giving up.
        """
        session = self.session
        deadline = time.monotonic() + timeout
        ambiguous = False
        while True:
            self._assert_open()
            current = session.board.get_snapshot()
            try:
                move = classify(baseline, current, session.engine_color)
                ambiguous = False
            except AmbiguousDiffError:
                if ambiguous:
                    raise
                logger.warning("Board change not classifiable yet, sampling once more.")
                ambiguous = True
                move = None

            if move is not None:
                return move

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Timeout waiting for engine move.")
                raise EngineMoveTimeoutError(
                    f"No move detected within {timeout:.0f} seconds."
                )
            self._sleep(min(self.settings.poll_interval, remaining))

    def _wait_for_change(self, previous: Snapshot, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while self.session.board.get_snapshot() == previous:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise BoardDriverError("Board did not update after undo.")
            self._sleep(min(self.settings.poll_interval, remaining))

    def _sleep(self, seconds: float) -> None:
        """Sleep, but wake up (and stop) as soon as the session gets closed."""
        if self.session.cancelled.wait(seconds):
            raise SessionClosedError("Session closed while waiting for the board.")

    # --- BOT CATALOG ---
    def _load_catalog(self, wait: bool = True) -> tuple[BotEntry, ...]:
        return self.catalog.ensure_loaded(
            self.session.board.load_catalog_page,
            timeout=self.settings.catalog_timeout,
            cancelled=self.session.cancelled,
            max_pages=self.settings.catalog_max_pages,
            wait=wait,
        )

    def _preload_catalog(self) -> None:
        """
        Background job queued by init. Failures are only logged: select_bot will try again.
        ---
        Returns at once while another session is scanning, so this session's queued actions never wait on it.
        """
        session = self.session
        if self.catalog.is_loaded or session.is_closed or session.board is None:
            return
        try:
            self._load_catalog(wait=False)
        except (CatalogLoadFailedError, SessionClosedError) as exc:
            logger.warning("Background bot list load failed: %s", exc)


# -- Internal helpers --
def _engine_move_response(move: InferredMove) -> ActionResponse:
    return ActionResponse.ok(
        "engine_move",
        message=f"{move.piece.letter} to {move.to_square}",
        move=move.to_payload(),
    )


def _bot_payload(bot: BotEntry) -> dict[str, Any]:
    return {
        "id": bot.id,
        "name": bot.name,
        "rating": bot.rating,
        "avatar": bot.avatar,
        "is_engine": bot.is_engine,
    }


def _bot_ref_payload(bot: Optional[BotRef]) -> Optional[dict[str, Any]]:
    if bot is None:
        return None
    return {"name": bot.name, "rating": bot.rating, "avatar": bot.avatar}

