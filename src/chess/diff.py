"""
Move-diff classifier
-----

Turn two snapshots of the browser board into the single move that was played in between.

Key idea: on a correctly maintained board, any chess move changes the position in one of a handful of bounded
shapes (number of vacated / occupied / changed squares). Enumerating those shapes is enough to recover the move,
no move generation or legality check needed.

| vacated | occupied | changed | move                                              |
|---------|----------|---------|---------------------------------------------------|
| 0       | 0        | 0       | nothing happened (yet)                            |
| 2       | 2        | 0       | castling (king + rook of the mover)               |
| 2       | 1        | 0       | en passant                                        |
| 1       | 1        | 0       | quiet move or promotion (not a 2-file king jump)  |
| 1       | 0        | 1       | capture (or promotion with capture)               |

A king jumping two files on its own is castling caught before the rook was drawn. That, and anything else, is a
half-rendered board or several moves at once. We refuse to guess and raise `AmbiguousDiffError`.
"""

from typing import Optional

from src.chess.castling import is_castling_king_move
from src.chess.moves import InferredMove
from src.chess.snapshot import Snapshot, SnapshotDiff
from src.core.exceptions import AmbiguousDiffError
from src.core.shared_types import Color, MoveKind, PieceType


def classify(
    before: Snapshot, after: Snapshot, side_to_move: Color
) -> Optional[InferredMove]:
    """
    Classify the difference between two snapshots.
    ---
    Returns None when the snapshots hold the same position ("not yet moved").

    `side_to_move` is only used to attribute castling (and to break ties for en passant).
    """
    diff = before.diff(after)

    if diff.is_empty:
        return None

    castle = _as_castling(diff, before, after, side_to_move)
    if castle is not None:
        return castle

    en_passant = _as_en_passant(diff, before, after, side_to_move)
    if en_passant is not None:
        return en_passant

    single = _as_single_piece_move(diff, before, after)
    if single is not None:
        return single

    raise AmbiguousDiffError(
        f"Cannot classify board change (vacated={_names(diff.vacated)}, "
        f"occupied={_names(diff.occupied)}, changed={_names(diff.changed)})"
    )


def _as_castling(
    diff: SnapshotDiff, before: Snapshot, after: Snapshot, side_to_move: Color
) -> Optional[InferredMove]:
    """King and rook of the mover both left their squares and both reappeared somewhere else."""
    if diff.shape != (2, 2, 0):
        return None

    moved = [before[square] for square in diff.vacated]
    moved_types = {piece.type for piece in moved if piece.color == side_to_move}
    if not {PieceType.KING, PieceType.ROOK} <= moved_types:
        return None

    king_from = next(
        sq
        for sq in diff.vacated
        if before[sq].type == PieceType.KING and before[sq].color == side_to_move
    )
    king = before[king_from]
    king_to = next((sq for sq in diff.occupied if after[sq] == king), None)
    if king_to is None:
        return None

    return InferredMove(
        kind=MoveKind.CASTLE,
        piece=king,
        from_square=king_from,
        to_square=king_to,
        color=side_to_move,
        resulting_snapshot=after,
    )


def _as_en_passant(
    diff: SnapshotDiff, before: Snapshot, after: Snapshot, side_to_move: Color
) -> Optional[InferredMove]:
    """
    Two pawns disappeared, one pawn appeared diagonally in front of one of them.
    ---
    The pawn that appeared is the mover; its origin is the vacated square holding the same pawn.
    The other vacated square is the captured pawn (NOT a "to" square).
    """
    if diff.shape != (2, 1, 0):
        return None

    to_square = diff.occupied[0]
    arrived = after[to_square]
    if arrived.type != PieceType.PAWN:
        return None

    # prefer the side to move when both vacated squares could be the origin (should never happen on a real board)
    candidates = sorted(
        (sq for sq in diff.vacated if before[sq] == arrived),
        key=lambda sq: before[sq].color != side_to_move,
    )
    for from_square in candidates:
        captured_square = next(sq for sq in diff.vacated if sq != from_square)
        captured = before[captured_square]
        is_diagonal = (
            abs(to_square.file - from_square.file) == 1
            and abs(to_square.rank - from_square.rank) == 1
        )
        passed_pawn = (
            captured.type == PieceType.PAWN
            and captured.color != arrived.color
            and captured_square.rank == from_square.rank
            and captured_square.file == to_square.file
        )
        if is_diagonal and passed_pawn:
            return InferredMove(
                kind=MoveKind.EN_PASSANT,
                piece=arrived,
                from_square=from_square,
                to_square=to_square,
                color=arrived.color,
                resulting_snapshot=after,
                captured=captured,
            )
    return None


def _as_single_piece_move(
    diff: SnapshotDiff, before: Snapshot, after: Snapshot
) -> Optional[InferredMove]:
    """
    One piece left its square and exactly one square got a new occupant.
    ---
    Quiet moves and captures are both reported as NORMAL: whether a piece got taken can be read from `captured`.
    Piece type comes from the origin square, so a promoting pawn is still reported as a pawn move.
    """
    vacated, occupied, changed = diff.shape
    if vacated != 1 or occupied + changed != 1:
        return None

    from_square = diff.vacated[0]
    to_square = diff.occupied[0] if occupied else diff.changed[0]
    piece = before[from_square]
    if piece.type == PieceType.KING and is_castling_king_move(from_square, to_square):
        # rook not rendered yet
        return None
    return InferredMove(
        kind=MoveKind.NORMAL,
        piece=piece,
        from_square=from_square,
        to_square=to_square,
        color=piece.color,
        resulting_snapshot=after,
        captured=before.piece(to_square),
    )


def _names(squares: tuple) -> str:
    return ",".join(square.to_algebraic() for square in squares) or "-"
