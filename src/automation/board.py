"""Protocol for the browser board (the session layer only talks to this; the Selenium version lives next door)"""

from typing import Optional, Protocol

from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.models import BotEntry, BotListing, BotRef
from src.core.shared_types import Color


class BoardDriver(Protocol):
    """
    One remote-controlled board, exclusively owned by one session.

    Implementations raise `BoardDriverError` (or a subclass) when the page does not cooperate.
    """

    def open(
        self, side: Color, pgn: Optional[str] = None, move_number: int = -1
    ) -> Snapshot:
        """Load the board (optionally from a PGN at a given ply), start the game vs the computer and return the starting position."""
        ...

    def get_snapshot(self) -> Snapshot:
        """Current position on the board. Side-effect free."""
        ...

    def submit_move(self, from_square: Square, to_square: Square) -> None:
        """Physically play the move. Success is only ever confirmed through later snapshots."""
        ...

    def promotion_pending(self) -> bool:
        """Is the board waiting for us to pick a promotion piece?"""
        ...

    def resolve_promotion(self, piece_letter: str) -> None:
        """Pick the promotion piece ('q', 'r', 'b' or 'n')."""
        ...

    def load_catalog_page(self) -> tuple[list[BotListing], bool]:
        """Next page of the bot list + whether this was the last page."""
        ...

    def choose_bot(self, bot: BotEntry, engine_level: Optional[int] = None) -> None:
        """Make `bot` the opponent (and set its strength, for engine bots)."""
        ...

    def current_bot(self) -> Optional[BotRef]:
        """The opponent shown next to the board, if it can be read."""
        ...

    def history_length(self) -> int:
        """Number of half-moves in the board's move list."""
        ...

    def step_back(self) -> None:
        """Take back the last half-move."""
        ...

    def close(self) -> None:
        """Release the browser. Must be safe to call more than once."""
        ...
