"""Unit tests for /src/chess/simulator.py"""

import pytest

from src.chess.diff import classify
from src.chess.moves import MoveSpec
from src.chess.pieces import Piece
from src.chess.simulator import simulate
from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.exceptions import NoPieceAtOriginError
from src.core.shared_types import Color, MoveKind, PieceType


def sq(notation: str) -> Square:
    return Square.from_algebraic(notation)


def test_normal_move() -> None:
    after = simulate(Snapshot.starting_position(), MoveSpec.from_uci("g1f3"))
    assert after.is_empty(sq("g1"))
    assert after[sq("f3")] == Piece(PieceType.KNIGHT, Color.WHITE)
    assert len(after) == 32


def test_capture_replaces_piece() -> None:
    before = Snapshot.from_readable({"e4": "wP", "d5": "bP"})
    after = simulate(before, MoveSpec.from_uci("e4d5"))
    assert after.to_readable() == {"d5": "wP"}


@pytest.mark.parametrize(
    "uci, expected_fen",
    [
        ("e1g1", "r3k2r/8/8/8/8/8/8/R4RK1"),
        ("e1c1", "r3k2r/8/8/8/8/8/8/2KR3R"),
        ("e8g8", "r4rk1/8/8/8/8/8/8/R3K2R"),
        ("e8c8", "2kr3r/8/8/8/8/8/8/R3K2R"),
    ],
)
def test_castling_moves_the_rook(uci: str, expected_fen: str) -> None:
    before = Snapshot.from_fen("r3k2r/8/8/8/8/8/8/R3K2R")
    assert simulate(before, MoveSpec.from_uci(uci)).to_fen() == expected_fen


def test_en_passant_removes_passed_pawn() -> None:
    before = Snapshot.from_readable({"e5": "wP", "d5": "bP"})
    after = simulate(before, MoveSpec.from_uci("e5d6"))
    assert after.to_readable() == {"d6": "wP"}


def test_promotion_only_when_named() -> None:
    before = Snapshot.from_readable({"b7": "wP", "h8": "bK"})
    assert simulate(before, MoveSpec.from_uci("b7b8"))[sq("b8")] == Piece(PieceType.PAWN, Color.WHITE)
    assert simulate(before, MoveSpec.from_uci("b7b8n"))[sq("b8")] == Piece(PieceType.KNIGHT, Color.WHITE)


def test_no_piece_at_origin() -> None:
    with pytest.raises(NoPieceAtOriginError):
        simulate(Snapshot.starting_position(), MoveSpec.from_uci("e4e5"))


def test_input_snapshot_is_untouched() -> None:
    start = Snapshot.starting_position()
    simulate(start, MoveSpec.from_uci("e2e4"))
    assert start == Snapshot.starting_position()


@pytest.mark.parametrize(
    "placement, uci, side, kind",
    [
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR", "e2e4", Color.WHITE, MoveKind.NORMAL),
        ("4k3/8/8/3p4/4P3/8/8/4K3", "e4d5", Color.WHITE, MoveKind.NORMAL),
        ("r3k2r/8/8/8/8/8/8/R3K2R", "e1g1", Color.WHITE, MoveKind.CASTLE),
        ("r3k2r/8/8/8/8/8/8/R3K2R", "e8c8", Color.BLACK, MoveKind.CASTLE),
        ("4k3/8/8/3pP3/8/8/8/4K3", "e5d6", Color.WHITE, MoveKind.EN_PASSANT),
        ("4k3/8/8/8/3pP3/8/8/4K3", "d4e3", Color.BLACK, MoveKind.EN_PASSANT),
    ],
)
def test_classifier_recovers_simulated_move(placement: str, uci: str, side: Color, kind: MoveKind) -> None:
    """What the simulator plays, the classifier must read back as the same move"""
    before = Snapshot.from_fen(placement)
    move = MoveSpec.from_uci(uci)
    after = simulate(before, move)

    inferred = classify(before, after, side)
    assert inferred.kind == kind
    assert (inferred.from_square, inferred.to_square) == (move.from_square, move.to_square)
    assert inferred.resulting_snapshot == after
