"""Defines the chess pieces as they show up on the browser board"""

from dataclasses import dataclass
from typing import Self

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import Color, PieceType

LETTER_TO_PIECE: dict[str, PieceType] = {
    "p": PieceType.PAWN,
    "n": PieceType.KNIGHT,
    "b": PieceType.BISHOP,
    "r": PieceType.ROOK,
    "q": PieceType.QUEEN,
    "k": PieceType.KING,
}

PIECE_TO_LETTER: dict[PieceType, str] = {
    value: key for key, value in LETTER_TO_PIECE.items()
}

COLOR_TO_LETTER: dict[Color, str] = {Color.WHITE: "w", Color.BLACK: "b"}
LETTER_TO_COLOR: dict[str, Color] = {
    value: key for key, value in COLOR_TO_LETTER.items()
}

# Pieces a pawn may turn into
PROMOTION_LETTERS: tuple[str, ...] = ("q", "r", "b", "n")


@dataclass(frozen=True)
class Piece:
    type: PieceType
    color: Color

    @classmethod
    def from_code(cls, code: str) -> Self:
        """
        Two letter code: color first, then the piece.
        ---
        'wp' (as the browser board writes it in its class names) and 'wP' (as we send it to clients) both work.
        """
        if len(code) != 2:
            raise InvalidRequestError(f"Cannot interpret {code!r} as a piece code.")
        color_letter, piece_letter = code[0].lower(), code[1].lower()
        if color_letter not in LETTER_TO_COLOR or piece_letter not in LETTER_TO_PIECE:
            raise InvalidRequestError(f"Cannot interpret {code!r} as a piece code.")
        return cls(LETTER_TO_PIECE[piece_letter], LETTER_TO_COLOR[color_letter])

    @classmethod
    def from_fen(cls, character: str) -> Self:
        # lower case: Black pieces, upper case: White pieces
        color = Color.WHITE if character.isupper() else Color.BLACK
        piece_type = LETTER_TO_PIECE[character.lower()]
        return cls(piece_type, color)

    def to_fen(self) -> str:
        letter = PIECE_TO_LETTER[self.type]
        return letter.upper() if self.color == Color.WHITE else letter

    @property
    def letter(self) -> str:
        return PIECE_TO_LETTER[self.type]

    def readable(self) -> str:
        """'wP', 'bK', ... : color letter + upper case piece letter"""
        return f"{COLOR_TO_LETTER[self.color]}{self.letter.upper()}"

    def promoted_to(self, letter: str) -> Self:
        """New piece of the same color. (Pieces are immutable, so promotion returns a new one)"""
        return type(self)(LETTER_TO_PIECE[letter], self.color)

    def __str__(self) -> str:
        return f"{self.color} {self.type}"
