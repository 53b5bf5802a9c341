"""Test doubles shared by several test modules (the browser board is the only thing we fake)."""

from typing import Optional

from src.chess.moves import MoveSpec
from src.chess.simulator import simulate
from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.exceptions import BoardDriverError
from src.core.models import BotEntry, BotListing, BotRef
from src.core.shared_types import Color, PieceType

BOT_PAGES: list[list[BotListing]] = [
    [
        BotListing("Martin", "250", False),
        BotListing("Elani", "400", False),
    ],
    [
        BotListing("Elani", "400", False),  # lists overlap while scrolling
        BotListing("Nelson", "1300", False),
    ],
    [
        BotListing("Komodo", None, True),
    ],
]


class FakeBoard:
    """
    Scripted board.
    ---
    * every move we submit is applied right away
    * `replies`: engine answers (uci), one per submitted move; None means the engine stays silent
    * `opening_reply`: engine's first move, played right after `open` (engine has white)
    * an engine reply becomes visible only after `reply_delay` calls to `get_snapshot`
    """

    def __init__(
        self,
        start: Optional[Snapshot] = None,
        replies: Optional[list[Optional[str]]] = None,
        opening_reply: Optional[str] = None,
        reply_delay: int = 1,
        catalog_pages: Optional[list[list[BotListing]]] = None,
        ask_promotion: bool = True,
        fail_open: bool = False,
    ) -> None:
        self.position = start if start is not None else Snapshot.starting_position()
        self.replies = list(replies or [])
        self.opening_reply = opening_reply
        self.reply_delay = reply_delay
        self.catalog_pages = catalog_pages if catalog_pages is not None else BOT_PAGES
        self.ask_promotion = ask_promotion
        self.fail_open = fail_open

        self.submitted: list[tuple[Square, Square]] = []
        self.history: list[Snapshot] = []  # position before each half-move
        self.opened_with: Optional[tuple[Color, Optional[str], int]] = None
        self.chosen: Optional[tuple[BotEntry, Optional[int]]] = None
        self.pages_served = 0
        self.close_calls = 0
        self.snapshot_calls = 0

        self._pending_reply: Optional[MoveSpec] = None
        self._countdown = 0
        self._promotion_at: Optional[Square] = None

    # --- BoardDriver ---
    def open(self, side: Color, pgn: Optional[str] = None, move_number: int = -1) -> Snapshot:
        if self.fail_open:
            raise BoardDriverError("practice button never showed up")
        self.opened_with = (side, pgn, move_number)
        if self.opening_reply:
            self._schedule(self.opening_reply)
        return self.position

    def get_snapshot(self) -> Snapshot:
        self.snapshot_calls += 1
        if self._pending_reply is not None:
            self._countdown -= 1
            if self._countdown <= 0:
                reply, self._pending_reply = self._pending_reply, None
                self._apply(reply)
        return self.position

    def submit_move(self, from_square: Square, to_square: Square) -> None:
        self.submitted.append((from_square, to_square))
        piece = self.position.piece(from_square)
        self._apply(MoveSpec(from_square, to_square))
        last_rank = 8 if piece.color == Color.WHITE else 1
        if self.ask_promotion and piece.type == PieceType.PAWN and to_square.rank == last_rank:
            self._promotion_at = to_square
            return
        self._schedule_next_reply()

    def promotion_pending(self) -> bool:
        return self._promotion_at is not None

    def resolve_promotion(self, piece_letter: str) -> None:
        square, self._promotion_at = self._promotion_at, None
        pawn = self.position[square]
        self.position = self.position.with_changes(place={square: pawn.promoted_to(piece_letter)})
        self._schedule_next_reply()

    def load_catalog_page(self) -> tuple[list[BotListing], bool]:
        page = self.catalog_pages[self.pages_served]
        self.pages_served += 1
        return page, self.pages_served >= len(self.catalog_pages)

    def choose_bot(self, bot: BotEntry, engine_level: Optional[int] = None) -> None:
        self.chosen = (bot, engine_level)

    def current_bot(self) -> Optional[BotRef]:
        if self.chosen is None:
            return BotRef("Martin", "250")
        return BotRef(self.chosen[0].name, self.chosen[0].rating)

    def history_length(self) -> int:
        return len(self.history)

    def step_back(self) -> None:
        self.position = self.history.pop()

    def close(self) -> None:
        self.close_calls += 1

    # --- scripting helpers ---
    def _apply(self, move: MoveSpec) -> None:
        self.history.append(self.position)
        self.position = simulate(self.position, move)

    def _schedule(self, uci: str) -> None:
        self._pending_reply = MoveSpec.from_uci(uci)
        self._countdown = self.reply_delay

    def _schedule_next_reply(self) -> None:
        reply = self.replies.pop(0) if self.replies else None
        if reply is not None:
            self._schedule(reply)
