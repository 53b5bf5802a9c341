"""
A snapshot is the configuration of pieces on the browser board at one instant.

Snapshots never change once created: every transition (simulated or observed) produces a new one.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Self

from src.chess.pieces import Piece
from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.exceptions import InvalidRequestError

STARTING_PLACEMENT = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"


class Snapshot(Mapping[Square, Piece]):
    """Read-only mapping of occupied squares to the piece standing on it. Empty squares are simply absent."""

    __slots__ = ("_pieces",)

    def __init__(self, pieces: Optional[Mapping[Square, Piece]] = None) -> None:
        self._pieces: Mapping[Square, Piece] = MappingProxyType(dict(pieces or {}))

    # --- Mapping protocol ---
    def __getitem__(self, square: Square) -> Piece:
        return self._pieces[square]

    def __iter__(self) -> Iterator[Square]:
        return iter(self._pieces)

    def __len__(self) -> int:
        return len(self._pieces)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snapshot):
            return dict(self._pieces) == dict(other._pieces)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._pieces.items()))

    def __repr__(self) -> str:
        return f"Snapshot({self.to_readable()!r})"

    # --- Construction ---
    @classmethod
    def from_readable(cls, readable: Mapping[str, str]) -> Self:
        """{'e2': 'wP', ...} -> Snapshot. Mostly convenient for tests and logs."""
        return cls(
            {
                Square.from_algebraic(square): Piece.from_code(code)
                for square, code in readable.items()
            }
        )

    @classmethod
    def from_internal(cls, pieces: Mapping[str, Piece]) -> Self:
        """Keys are the board's internal ids ('52' for e2)"""
        return cls(
            {Square.from_internal(square): piece for square, piece in pieces.items()}
        )

    @classmethod
    def from_fen(cls, placement: str) -> Self:
        """
        Construct a snapshot from the piece placement part of a FEN string.

        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        * ranks are separated by slashes, read from the 8th rank down to the 1st
        * within a rank the a-file comes first
        * a number denotes that many empty squares in a row
        """
        ranks = placement.split(" ")[0].split("/")
        if len(ranks) != BOARD_DIMENSIONS[1]:
            raise InvalidRequestError(
                f"FEN placement must contain {BOARD_DIMENSIONS[1]} ranks: {placement!r}"
            )

        pieces: dict[Square, Piece] = {}
        for rank_idx, fen_one_rank in enumerate(ranks):
            rank = BOARD_DIMENSIONS[1] - rank_idx
            file = 1
            for character in fen_one_rank:
                if character.isdigit():
                    file += int(character)
                    continue
                try:
                    pieces[Square(file, rank)] = Piece.from_fen(character)
                except (KeyError, ValueError) as exc:
                    raise InvalidRequestError(
                        f"Cannot read FEN placement {placement!r}: {exc}"
                    ) from exc
                file += 1
        return cls(pieces)

    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_PLACEMENT)

    # --- Queries / conversion ---
    def piece(self, square: Square) -> Optional[Piece]:
        return self._pieces.get(square)

    def is_empty(self, square: Square) -> bool:
        return square not in self._pieces

    def to_readable(self) -> dict[str, str]:
        """Square -> two-letter code, e.g. {'e2': 'wP'}. This is what clients receive."""
        return {
            square.to_algebraic(): piece.readable()
            for square, piece in sorted(self._pieces.items())
        }

    def to_fen(self) -> str:
        """Ranks are separated by slashes in FEN string."""
        return "/".join(
            self._rank_to_fen(rank) for rank in range(BOARD_DIMENSIONS[1], 0, -1)
        )

    def _rank_to_fen(self, rank: int) -> str:
        fen_characters: list[str] = []
        empty_count = 0
        for file in range(1, BOARD_DIMENSIONS[0] + 1):
            piece = self.piece(Square(file, rank))
            if piece is None:
                empty_count += 1
                continue
            if empty_count > 0:
                fen_characters.append(str(empty_count))
                empty_count = 0
            fen_characters.append(piece.to_fen())

        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    # --- Transitions ---
    def with_changes(
        self,
        remove: tuple[Square, ...] = (),
        place: Optional[Mapping[Square, Piece]] = None,
    ) -> "Snapshot":
        """New snapshot with `remove` cleared first, then `place` applied."""
        pieces = dict(self._pieces)
        for square in remove:
            pieces.pop(square, None)
        pieces.update(place or {})
        return Snapshot(pieces)

    def diff(self, after: "Snapshot") -> "SnapshotDiff":
        return SnapshotDiff.between(self, after)


@dataclass(frozen=True)
class SnapshotDiff:
    """
    Symmetric difference between two snapshots.
    ---
    * vacated: occupied before, empty after
    * occupied: empty before, occupied after
    * changed: occupied in both, but by a different piece
    """

    vacated: tuple[Square, ...]
    occupied: tuple[Square, ...]
    changed: tuple[Square, ...]

    @classmethod
    def between(cls, before: Snapshot, after: Snapshot) -> Self:
        vacated = tuple(sorted(sq for sq in before if sq not in after))
        occupied = tuple(sorted(sq for sq in after if sq not in before))
        changed = tuple(
            sorted(sq for sq in after if sq in before and before[sq] != after[sq])
        )
        return cls(vacated, occupied, changed)

    @property
    def is_empty(self) -> bool:
        return not (self.vacated or self.occupied or self.changed)

    @property
    def shape(self) -> tuple[int, int, int]:
        return len(self.vacated), len(self.occupied), len(self.changed)
