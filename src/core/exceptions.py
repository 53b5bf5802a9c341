"""
Custom exceptions.

Grouped by how the session layer reacts to them:
* ValidationError: bad input shape. Rejected, session untouched.
* StateError: action not allowed in the current session state. Rejected, session untouched.
* CollaboratorError: the browser board misbehaved. Recoverable, except for InitializationFailedError.
* EngineMoveTimeoutError / AmbiguousDiffError: transient, the caller may retry.

Every exception carries a `kind` that ends up in the error response sent back to the client.
"""


class AutomatorError(Exception):
    """Top-level exception for anything the automation server raises on purpose."""

    kind = "error"


# --- VALIDATION ---
class ValidationError(AutomatorError):
    kind = "validation_error"


class InvalidSquareError(ValidationError):
    kind = "invalid_square"


class InvalidRequestError(ValidationError):
    kind = "invalid_request"


class InvalidMoveError(ValidationError):
    kind = "invalid_move"


class NoOpponentMoveError(ValidationError):
    kind = "no_opponent_move"


class InvalidPromotionPieceError(ValidationError):
    kind = "invalid_promotion_piece"


class EngineLevelOutOfRangeError(ValidationError):
    kind = "engine_level_out_of_range"


class BotIdOutOfRangeError(ValidationError):
    kind = "bot_id_out_of_range"


class NoPieceAtOriginError(ValidationError):
    kind = "no_piece_at_origin"


# --- SESSION STATE ---
class StateError(AutomatorError):
    kind = "state_error"


class BotNotInitializedError(StateError):
    kind = "bot_not_initialized"


class SessionAlreadyInitializedError(StateError):
    kind = "session_already_initialized"


class PendingPromotionUnresolvedError(StateError):
    kind = "pending_promotion_unresolved"


class NoPendingPromotionError(StateError):
    kind = "no_pending_promotion"


class InsufficientHistoryError(StateError):
    kind = "insufficient_history"


class EngineReplyOutstandingError(StateError):
    kind = "engine_reply_outstanding"


class SessionClosedError(StateError):
    kind = "session_closed"


# --- EXTERNAL BOARD ---
class CollaboratorError(AutomatorError):
    kind = "collaborator_error"


class BoardDriverError(CollaboratorError):
    kind = "board_error"


class InitializationFailedError(CollaboratorError):
    kind = "initialization_failed"


class CatalogLoadFailedError(CollaboratorError):
    kind = "catalog_load_failed"


# --- TRANSIENT ---
class EngineMoveTimeoutError(AutomatorError):
    kind = "engine_move_timeout"


class AmbiguousDiffError(AutomatorError):
    kind = "ambiguous_diff"
