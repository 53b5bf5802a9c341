"""
Castling geometry: which squares king and rook leave and land on.

Castling is the only move where two pieces of the same side move at once, so both the simulator (moving the rook
along) and the diff classifier (recognizing the 2-vacated / 2-occupied shape) depend on it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Self

from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.shared_types import Color

KING_HOME_FILE = 5


class CastlingDirection(Enum):
    """Values are the letters FEN uses for the castling rights."""

    WHITE_KING_SIDE = "K"
    WHITE_QUEEN_SIDE = "Q"
    BLACK_KING_SIDE = "k"
    BLACK_QUEEN_SIDE = "q"

    @property
    def color(self) -> Color:
        return Color.WHITE if self.value.isupper() else Color.BLACK

    @property
    def is_king_side(self) -> bool:
        return self.value.lower() == "k"


@dataclass(frozen=True)
class CastlingSquares:
    king_from: Square
    king_to: Square
    rook_from: Square
    rook_to: Square

    @classmethod
    def for_king_move(cls, king_from: Square, king_to: Square) -> Self:
        """The rook comes from the corner the king moves towards and lands on the square the king jumped over."""
        rook_file = BOARD_DIMENSIONS[0] if king_to.file > king_from.file else 1
        return cls(
            king_from=king_from,
            king_to=king_to,
            rook_from=Square(rook_file, king_from.rank),
            rook_to=Square((king_from.file + king_to.file) // 2, king_from.rank),
        )


def _classical(direction: CastlingDirection) -> CastlingSquares:
    rank = 1 if direction.color == Color.WHITE else BOARD_DIMENSIONS[1]
    king_to_file = KING_HOME_FILE + 2 if direction.is_king_side else KING_HOME_FILE - 2
    return CastlingSquares.for_king_move(Square(KING_HOME_FILE, rank), Square(king_to_file, rank))


# e1-g1 / h1-f1, e1-c1 / a1-d1, and the same on the 8th rank
CASTLING_RULES: dict[CastlingDirection, CastlingSquares] = {
    direction: _classical(direction) for direction in CastlingDirection
}


def castling_rule_for_king_move(
    king_from: Square, king_to: Square
) -> Optional[CastlingSquares]:
    """Find the classical castling rule whose king move matches. None if there is none."""
    for rule in CASTLING_RULES.values():
        if rule.king_from == king_from and rule.king_to == king_to:
            return rule
    return None


def is_castling_king_move(from_square: Square, to_square: Square) -> bool:
    """A king moving two files along its rank can only be castling"""
    return from_square.rank == to_square.rank and abs(to_square.file - from_square.file) == 2
