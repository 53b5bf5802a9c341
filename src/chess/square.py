"""
A square on the board, and the codec between the two ways the outside world names squares.

(placed in its own module as multiple other modules need to import it)

* algebraic notation: 'a1' - 'h8' (what clients send and receive)
* internal id: '11' - '88', file digit followed by rank digit (what the browser board uses in its `square-52` classes)
"""

from __future__ import annotations

from dataclasses import dataclass

from src.core.exceptions import InvalidSquareError

# Chess board is always 8x8. Just in case we want to try some funky stuff, make it adjustable
BOARD_DIMENSIONS = (8, 8)
FILES = "abcdefgh"
RANKS = "12345678"


@dataclass(frozen=True, order=True)
class Square:
    file: int
    rank: int

    def __post_init__(self) -> None:
        if not self.is_within_bounds():
            raise InvalidSquareError(f"Square ({self.file}, {self.rank}) lies off the board.")

    @classmethod
    def from_algebraic(cls, sq: str) -> Square:
        """Algebraic notation: 'a1' - 'h8' get converted to (1,1) - (8,8)"""
        if not isinstance(sq, str) or len(sq) != 2 or sq[0] not in FILES or sq[1] not in RANKS:
            raise InvalidSquareError(f"Invalid algebraic notation: {sq!r}")
        file = FILES.index(sq[0]) + 1
        rank = int(sq[1])
        return cls(file, rank)

    @classmethod
    def from_internal(cls, internal_id: str) -> Square:
        """Internal id: '11' - '88' (file digit, then rank digit)"""
        if (
            not isinstance(internal_id, str)
            or len(internal_id) != 2
            or not internal_id.isdigit()
        ):
            raise InvalidSquareError(f"Invalid internal square id: {internal_id!r}")
        return cls(int(internal_id[0]), int(internal_id[1]))

    def to_algebraic(self) -> str:
        return f"{FILES[self.file - 1]}{self.rank}"

    def to_internal(self) -> str:
        return f"{self.file}{self.rank}"

    def is_within_bounds(self) -> bool:
        return (1 <= self.file <= BOARD_DIMENSIONS[0]) and (
            1 <= self.rank <= BOARD_DIMENSIONS[1]
        )

    def __str__(self) -> str:
        return self.to_algebraic()


def to_algebraic(internal_id: str) -> str:
    """'52' -> 'e2'"""
    return Square.from_internal(internal_id).to_algebraic()


def to_internal(algebraic: str) -> str:
    """'e2' -> '52'"""
    return Square.from_algebraic(algebraic).to_internal()

