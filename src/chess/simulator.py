"""
Position simulator
-----

Apply a move to a snapshot offline, without touching the browser board.

Right after we play the client's move on the board, the board is still animating and the engine may already be
replying. Diffing against a *simulated* "after our move" snapshot gives the classifier a stable baseline, so it only
ever has to explain the engine's move.

Mirrors the special cases the classifier recognizes:
* castling: king moves two files -> the rook jumps over it
* en passant: pawn moves diagonally onto an empty square -> the passed pawn disappears
* promotion (only when the move names a piece): the pawn is replaced on arrival
"""

from src.chess.castling import (
    CastlingSquares,
    castling_rule_for_king_move,
    is_castling_king_move,
)
from src.chess.moves import MoveSpec
from src.chess.pieces import Piece
from src.chess.snapshot import Snapshot
from src.chess.square import BOARD_DIMENSIONS, Square
from src.core.exceptions import NoPieceAtOriginError
from src.core.shared_types import Color, PieceType


def simulate(snapshot: Snapshot, move: MoveSpec) -> Snapshot:
    """Resulting snapshot after playing `move`. Raises NoPieceAtOriginError if there is nothing to move."""
    piece = snapshot.piece(move.from_square)
    if piece is None:
        raise NoPieceAtOriginError(
            f"No piece at {move.from_square.to_algebraic()} to play {move.to_uci()}"
        )

    removed: list[Square] = [move.from_square]
    placed: dict[Square, Piece] = {}

    if piece.type == PieceType.KING and is_castling_king_move(
        move.from_square, move.to_square
    ):
        rule = _castling_squares(move.from_square, move.to_square)
        rook = snapshot.piece(rule.rook_from)
        if rook is not None and rook.type == PieceType.ROOK:
            removed.append(rule.rook_from)
            placed[rule.rook_to] = rook

    if _is_en_passant(snapshot, piece, move):
        passed_square = Square(move.to_square.file, move.from_square.rank)
        passed = snapshot.piece(passed_square)
        if passed is not None and passed.type == PieceType.PAWN:
            removed.append(passed_square)

    arriving = piece.promoted_to(move.promote_to) if _promotes(piece, move) else piece
    placed[move.to_square] = arriving
    return snapshot.with_changes(remove=tuple(removed), place=placed)


def _is_en_passant(snapshot: Snapshot, piece: Piece, move: MoveSpec) -> bool:
    """Pawns only move diagonally when they capture, so a diagonal move to an empty square is en passant"""
    return (
        piece.type == PieceType.PAWN
        and move.from_square.file != move.to_square.file
        and snapshot.is_empty(move.to_square)
    )


def _promotes(piece: Piece, move: MoveSpec) -> bool:
    last_rank = BOARD_DIMENSIONS[1] if piece.color == Color.WHITE else 1
    return (
        move.promote_to is not None
        and piece.type == PieceType.PAWN
        and move.to_square.rank == last_rank
    )


def _castling_squares(king_from: Square, king_to: Square) -> CastlingSquares:
    """Classical squares when the king starts on the e-file, the generic rook jump otherwise."""
    return castling_rule_for_king_move(king_from, king_to) or CastlingSquares.for_king_move(
        king_from, king_to
    )
