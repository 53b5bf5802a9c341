"""Requests and Response models"""

from typing import Annotated, Any, Literal, Mapping, Optional, Self, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from src.chess.moves import MoveSpec
from src.core.exceptions import AutomatorError, InvalidRequestError
from src.core.shared_types import Action, Color


# --- REQUEST MODELS ---
class PingRequest(BaseModel):
    action: Literal["ping"] = "ping"


class InitRequest(BaseModel):
    """Either a side to play (fresh game), or a PGN + the ply to continue from."""

    action: Literal["init"] = "init"
    side: Optional[Color] = None
    pgn: Optional[str] = None
    move_no: Optional[int] = None

    @field_validator("side", mode="before")
    @classmethod
    def validate_side(cls, value: Any) -> Any:
        if value is None:
            return value
        if not isinstance(value, str) or value.lower() not in (c.value for c in Color):
            raise InvalidRequestError(
                f"Cannot play as {value!r}. Pick one from {','.join(c.value for c in Color)}."
            )
        return value.lower()

    @field_validator("pgn")
    @classmethod
    def validate_pgn(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.strip() == "":
            raise InvalidRequestError("PGN must not be empty.")
        return value

    def resolved_side(self) -> Color:
        """
        With a PGN, the side follows from the ply we continue from: an even ply index means white just moved,
        so the client plays black. Without one the client picks (white by default).
        """
        if self.pgn is not None:
            move_number = self.move_number
            return Color.BLACK if move_number >= 0 and move_number % 2 == 0 else Color.WHITE
        return self.side or Color.WHITE

    @property
    def move_number(self) -> int:
        """-1 means: continue from the last move of the game"""
        return self.move_no if self.move_no is not None else -1


class NextMoveRequest(BaseModel):
    action: Literal["next_move"] = "next_move"
    opponent_move: Optional[str] = None

    @field_validator("opponent_move")
    @classmethod
    def validate_move(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        # raises InvalidMoveError for anything that does not look like 'e2e4' / 'e7e8q'
        MoveSpec.from_uci(value.strip().lower())
        return value.strip().lower()

    def move_spec(self) -> Optional[MoveSpec]:
        return MoveSpec.from_uci(self.opponent_move) if self.opponent_move else None


class PromoteRequest(BaseModel):
    action: Literal["promote"] = "promote"
    promote_to: str = "q"


class SelectBotRequest(BaseModel):
    action: Literal["select_bot"] = "select_bot"
    bot_id: int
    engine_level: Optional[int] = None


class UndoRequest(BaseModel):
    action: Literal["undo"] = "undo"


class ListBotsRequest(BaseModel):
    action: Literal["list_bots"] = "list_bots"


ActionRequest = Annotated[
    Union[
        PingRequest,
        InitRequest,
        NextMoveRequest,
        PromoteRequest,
        SelectBotRequest,
        UndoRequest,
        ListBotsRequest,
    ],
    Field(discriminator="action"),
]
_REQUEST_ADAPTER: TypeAdapter[ActionRequest] = TypeAdapter(ActionRequest)


def parse_request(data: Mapping[str, Any]) -> ActionRequest:
    """Turn a decoded client message into the matching request model."""
    action = data.get("action")
    if not isinstance(action, str) or action not in {a.value for a in Action}:
        raise InvalidRequestError(f"Unknown action: {action!r}")
    try:
        return _REQUEST_ADAPTER.validate_python(dict(data))
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidRequestError(f"Invalid {action!r} request: {errors}") from exc


# --- RESPONSE MODELS ---
class ActionResponse(BaseModel):
    status: Literal["ok", "error"]
    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, kind: str, message: Optional[str] = None, **payload: Any) -> Self:
        if message is not None:
            payload["message"] = message
        return cls(status="ok", kind=str(kind), payload=payload)

    @classmethod
    def from_error(cls, exc: AutomatorError) -> Self:
        return cls(status="error", kind=exc.kind, payload={"message": str(exc)})

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"
