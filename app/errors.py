"""Exception hierarchy for match operations.

Three families, each handled differently by callers:

- ``MatchValidationError``: a precondition was violated (wrong turn, wrong
  phase, bad index...).  Never retried; surfaced to the player.  Subclasses
  ``ValueError`` so service code can keep raising and catching plain
  validation failures.
- ``MatchConflictError``: a concurrent write won the race and the retry budget
  ran out.  Safe for the caller to retry against a fresh read.
- ``ResourceError``: the deck or memory pool cannot support the operation.

Every error carries a stable ``code`` that routers return next to the message.
"""

from __future__ import annotations


class GameError(Exception):
    """Base exception for all match errors."""

    code = "game_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class MatchNotFoundError(GameError):
    """Match not found."""

    code = "match_not_found"

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match '{match_id}' not found")


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class MatchValidationError(GameError, ValueError):
    """Action is not legal in the current match state."""

    code = "validation_error"


class MatchNotPlayingError(MatchValidationError):
    """Match is not in progress."""

    code = "match_not_playing"


class InvalidPhaseError(MatchValidationError):
    code = "invalid_phase"

    def __init__(self, action: str, current: str):
        self.action = action
        self.current = current
        super().__init__(f"Cannot {action} right now, current turn state: {current}")


class InvalidStatusError(MatchValidationError):
    code = "invalid_status"

    def __init__(self, action: str, current: str):
        self.action = action
        self.current = current
        super().__init__(f"Cannot {action} while match is {current}")


class NotYourTurnError(MatchValidationError):
    """It is not your turn."""

    code = "not_your_turn"


class InvalidIndexError(MatchValidationError):
    code = "invalid_index"

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Card index {index} is out of range for a table of {size}")


class NotCardInitiatorError(MatchValidationError):
    """Only the player who selected the card can decide on it."""

    code = "not_card_initiator"


class InitiatorCannotRespondError(MatchValidationError):
    """The player who rejected the card cannot answer for the opponent."""

    code = "initiator_cannot_respond"


class NotInMatchError(MatchValidationError):
    """You are not part of this match."""

    code = "not_in_match"


class NoCurrentCardError(MatchValidationError):
    """No card is currently selected."""

    code = "no_current_card"


class NoInitiatorError(MatchValidationError):
    """The current card has no initiator, or its initiator has left the match."""

    code = "no_initiator"


class MatchFullError(MatchValidationError):
    """Match is full."""

    code = "match_full"


class AlreadyInMatchError(MatchValidationError):
    """Already joined this match."""

    code = "already_in_match"


class NotMatchCreatorError(MatchValidationError):
    """Only the match creator can start the match."""

    code = "not_match_creator"


class NotEnoughPlayersError(MatchValidationError):
    code = "not_enough_players"

    def __init__(self, required: int, present: int, action: str = "start"):
        self.required = required
        self.present = present
        super().__init__(f"Match needs exactly {required} players to {action}, has {present}")


class RuleViolationError(MatchValidationError):
    code = "rule_violation"

    def __init__(self, rule: str, detail: str):
        self.rule = rule
        self.detail = detail
        super().__init__(f"Write rejected by rule '{rule}': {detail}")


# ---------------------------------------------------------------------------
# Conflict errors
# ---------------------------------------------------------------------------


class MatchConflictError(GameError):
    code = "conflict"

    def __init__(self, match_id: str, attempts: int):
        self.match_id = match_id
        self.attempts = attempts
        super().__init__(
            f"Match '{match_id}' was modified concurrently; gave up after {attempts} attempts"
        )


# ---------------------------------------------------------------------------
# Resource errors
# ---------------------------------------------------------------------------


class ResourceError(GameError):
    """Not enough resources to complete the operation."""

    code = "resource_error"


class InsufficientPoolError(ResourceError):
    code = "insufficient_pool"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Memory pool needs at least {required} entries, currently has {available}"
        )


class EmptyPoolError(ResourceError):
    """Memory pool is empty. Seed it before starting matches."""

    code = "empty_pool"


class DistributionMismatchError(ResourceError):
    code = "distribution_mismatch"


class InsufficientDeckError(ResourceError):
    code = "insufficient_deck"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Deck needs at least {required} cards to set the table, has {available}"
        )


class RoomCodeExhaustedError(ResourceError):
    """Could not generate a unique room code. Try again."""

    code = "room_code_exhausted"
