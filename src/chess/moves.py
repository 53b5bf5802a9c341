"""
Moves as they travel through the system.

* MoveSpec: what a client asks us to play on the browser board (UCI-like, e.g. "e2e4" or "e7e8q")
* InferredMove: what we concluded the engine played, after diffing two snapshots
"""

from dataclasses import dataclass
from typing import Any, Optional, Self

from src.chess.pieces import PROMOTION_LETTERS, Piece
from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.exceptions import InvalidMoveError, InvalidSquareError
from src.core.shared_types import Color, MoveKind


@dataclass(frozen=True)
class MoveSpec:
    """basic definition of a move to be made"""

    from_square: Square
    to_square: Square
    promote_to: Optional[str] = None

    @classmethod
    def from_uci(cls, uci: str) -> Self:
        """
        Universal Chess Interface:
        ---
        examples:
        * "e2e4": move the piece that was on e2 to e4
        * "e7e8q" : (pawn) moves from e7 to e8 and promotes to a queen (the q)
        * "e1g1": castling is written as the king's move

        NOTE: whether this is castling / en passant is only decided once it gets applied to a snapshot.
        """
        if not isinstance(uci, str) or len(uci) not in (4, 5):
            raise InvalidMoveError(f"Moves should look like 'e2e4', got: {uci!r}")
        try:
            from_sq = Square.from_algebraic(uci[:2])
            to_sq = Square.from_algebraic(uci[2:4])
        except InvalidSquareError as exc:
            raise InvalidMoveError(f"Cannot interpret move {uci!r}: {exc}") from exc

        promote_to = uci[4].lower() if len(uci) == 5 else None
        if promote_to is not None and promote_to not in PROMOTION_LETTERS:
            raise InvalidMoveError(f"Cannot promote to {uci[4]!r} in move {uci!r}")
        return cls(from_sq, to_sq, promote_to)

    def to_uci(self) -> str:
        """Convert into UCI notation"""
        return f"{self.from_square.to_algebraic()}{self.to_square.to_algebraic()}{self.promote_to or ''}"

    def __str__(self) -> str:
        return self.to_uci()


@dataclass(frozen=True)
class InferredMove:
    """
    A move recovered from the difference between two snapshots.

    For castling, `from_square`/`to_square` are the king's squares (the rook relocation is implied).
    For en passant, `to_square` is where the pawn landed, not the square of the captured pawn.
    `captured` is filled whenever a piece disappeared because of this move.
    """

    kind: MoveKind
    piece: Piece
    from_square: Square
    to_square: Square
    color: Color
    resulting_snapshot: Snapshot
    captured: Optional[Piece] = None

    @property
    def is_capture(self) -> bool:
        return self.captured is not None

    def to_uci(self) -> str:
        return f"{self.from_square.to_algebraic()}{self.to_square.to_algebraic()}"

    def to_payload(self) -> dict[str, Any]:
        """What the transport sends to the client for an engine move."""
        return {
            "piece": self.piece.letter,
            "from": self.from_square.to_algebraic(),
            "to": self.to_square.to_algebraic(),
            "color": str(self.color),
            "move_type": str(self.kind),
            "captured": self.captured.readable() if self.captured else None,
            "state": self.resulting_snapshot.to_readable(),
        }

    def __str__(self) -> str:
        return f"{self.piece} {self.from_square}->{self.to_square} ({self.kind})"
