"""
Per-client session context.

Everything the protocol needs to remember about one client lives here, typed, instead of loose attributes on the
transport's connection object. Only the session's own worker writes to it.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional

from src.automation.board import BoardDriver
from src.chess.moves import MoveSpec
from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.exceptions import SessionClosedError
from src.core.models import BotRef
from src.core.shared_types import Color, SessionState


@dataclass(frozen=True)
class PendingPromotion:
    """A pawn of ours reached the last rank and the board is asking which piece it should become."""

    from_square: Square
    to_square: Square
    color: Color


@dataclass
class Session:
    client_id: str
    state: SessionState = SessionState.UNINITIALIZED
    side: Optional[Color] = None
    board: Optional[BoardDriver] = None
    initial_snapshot: Optional[Snapshot] = None
    last_known_snapshot: Optional[Snapshot] = None
    # position the next engine move gets diffed against
    baseline: Optional[Snapshot] = None
    pending_promotion: Optional[PendingPromotion] = None
    selected_bot: Optional[BotRef] = None
    awaiting_engine_move: bool = False
    last_submitted_move: Optional[MoveSpec] = None
    cancelled: threading.Event = field(default_factory=threading.Event)
    # held for the whole duration of a move-wait
    move_wait_lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def engine_color(self) -> Color:
        if self.side is None:
            raise SessionClosedError("Session has no side yet.")
        return self.side.opponent

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def advance(self, snapshot: Snapshot) -> None:
        """A move was observed on the board: it becomes the new reference position."""
        self.last_known_snapshot = snapshot
        self.baseline = snapshot
        self.awaiting_engine_move = False

    def close(self) -> Optional[BoardDriver]:
        """
        Mark the session closed and wake up anything waiting on its behalf.
        Returns the board (if any) so the caller can release it; the session no longer owns it afterwards.
        """
        self.state = SessionState.CLOSED
        self.cancelled.set()
        board, self.board = self.board, None
        return board
