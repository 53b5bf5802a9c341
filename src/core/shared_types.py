"""
Type definitions used across layers
"""

from enum import StrEnum


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


class MoveKind(StrEnum):
    """
    What kind of move the diff classifier recognized.

    NOTE: there is no capture kind. Captures are NORMAL moves with `InferredMove.captured` set.
    """

    NORMAL = "normal"
    CASTLE = "castle"
    EN_PASSANT = "en_passant"


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    AWAITING_OPPONENT = "awaiting_opponent"
    PROMOTION_PENDING = "promotion_pending"
    CLOSED = "closed"


class Action(StrEnum):
    """Actions a client can request on its session"""

    PING = "ping"
    INIT = "init"
    NEXT_MOVE = "next_move"
    PROMOTE = "promote"
    SELECT_BOT = "select_bot"
    UNDO = "undo"
    LIST_BOTS = "list_bots"
