import pytest

from src.api.models import (
    ActionResponse,
    InitRequest,
    ListBotsRequest,
    NextMoveRequest,
    PingRequest,
    PromoteRequest,
    SelectBotRequest,
    UndoRequest,
    parse_request,
)
from src.chess.moves import MoveSpec
from src.core.exceptions import InvalidMoveError, InvalidRequestError, SessionClosedError
from src.core.shared_types import Color


# -- Parsing client messages --
@pytest.mark.parametrize(
    "message, request_type",
    [
        ({"action": "ping"}, PingRequest),
        ({"action": "init", "side": "black"}, InitRequest),
        ({"action": "next_move", "opponent_move": "e2e4"}, NextMoveRequest),
        ({"action": "promote", "promote_to": "n"}, PromoteRequest),
        ({"action": "select_bot", "bot_id": 3, "engine_level": 12}, SelectBotRequest),
        ({"action": "undo"}, UndoRequest),
        ({"action": "list_bots"}, ListBotsRequest),
    ],
)
def test_parse_request(message: dict, request_type: type) -> None:
    """The action field picks the request model"""
    assert isinstance(parse_request(message), request_type)


@pytest.mark.parametrize("action", [None, "resign", 42, ["init"]])
def test_unknown_action(action: object) -> None:
    with pytest.raises(InvalidRequestError):
        parse_request({"action": action})


def test_missing_required_field() -> None:
    with pytest.raises(InvalidRequestError, match="bot_id"):
        parse_request({"action": "select_bot"})


def test_promote_defaults_to_queen() -> None:
    assert parse_request({"action": "promote"}).promote_to == "q"


# -- Validation - InitRequest --
def test_side_is_case_insensitive() -> None:
    request = InitRequest(side="BLACK")
    assert request.side == Color.BLACK
    assert request.resolved_side() == Color.BLACK


def test_side_defaults_to_white() -> None:
    assert InitRequest().resolved_side() == Color.WHITE


@pytest.mark.parametrize("side", ["purple", 1])
def test_invalid_side(side: object) -> None:
    with pytest.raises(InvalidRequestError):
        InitRequest(side=side)


def test_empty_pgn() -> None:
    with pytest.raises(InvalidRequestError):
        InitRequest(pgn="   ")


@pytest.mark.parametrize(
    "move_no, side",
    [
        (None, Color.WHITE),  # continue from the last move
        (-1, Color.WHITE),
        (0, Color.BLACK),  # white just played the first move
        (1, Color.WHITE),
        (4, Color.BLACK),
    ],
)
def test_side_follows_from_pgn_ply(move_no: int | None, side: Color) -> None:
    """With a PGN the requested side is ignored"""
    request = InitRequest(side="white", pgn="1. e4 e5 2. Nf3 Nc6 3. Bb5", move_no=move_no)
    assert request.resolved_side() == side


# -- Validation - NextMoveRequest --
def test_move_is_normalized() -> None:
    request = NextMoveRequest(opponent_move=" E7E8Q ")
    assert request.opponent_move == "e7e8q"
    assert request.move_spec() == MoveSpec.from_uci("e7e8q")


def test_move_is_optional_at_parse_time() -> None:
    """A missing move is only rejected once the session looks at it"""
    assert NextMoveRequest().move_spec() is None


@pytest.mark.parametrize("uci", ["e2", "e2e9", "e7e8k", "hello"])
def test_invalid_move(uci: str) -> None:
    with pytest.raises(InvalidMoveError):
        NextMoveRequest(opponent_move=uci)


# -- Responses --
def test_ok_response() -> None:
    response = ActionResponse.ok("engine_move", message="p to e5", move={"to": "e5"})
    assert response.is_ok
    assert response.model_dump() == {
        "status": "ok",
        "kind": "engine_move",
        "payload": {"move": {"to": "e5"}, "message": "p to e5"},
    }


def test_error_response() -> None:
    response = ActionResponse.from_error(SessionClosedError("Session is closed."))
    assert not response.is_ok
    assert response.kind == "session_closed"
    assert response.payload == {"message": "Session is closed."}
