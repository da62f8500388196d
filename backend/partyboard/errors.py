from __future__ import annotations


class GameError(Exception):
    """Base for every error that is reported back to the acting connection."""

    code = "game_error"
    message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)

    def to_payload(self) -> dict:
        return {"message": self.detail, "code": self.code}


class NotFound(GameError):
    code = "not_found"
    message = "Not found"


class RoomNotFound(NotFound):
    code = "room_not_found"
    message = "Room not found"


class PlayerNotFound(NotFound):
    code = "player_not_found"
    message = "Player not found"


class SessionNotFound(NotFound):
    code = "session_not_found"
    message = "Session not found"


class ChallengeNotFound(NotFound):
    code = "challenge_not_found"
    message = "Challenge not found"


class PreconditionFailed(GameError):
    code = "precondition_failed"
    message = "Action not allowed right now"


class GameAlreadyStarted(PreconditionFailed):
    code = "game_already_started"
    message = "Game has already started"


class RoomFull(PreconditionFailed):
    code = "room_full"
    message = "Room is full"


class NotEnoughPlayers(PreconditionFailed):
    code = "not_enough_players"
    message = "Need at least 2 players to start"


class NotYourTurn(PreconditionFailed):
    code = "not_your_turn"
    message = "Not your turn"


class GameNotInProgress(PreconditionFailed):
    code = "game_not_in_progress"
    message = "Game is not in progress"


class NotHost(PreconditionFailed):
    code = "only_host"
    message = "Only the host can do that"


class VoteNotAllowed(PreconditionFailed):
    code = "vote_not_allowed"
    message = "You cannot vote on this challenge"


class ChallengePending(PreconditionFailed):
    code = "challenge_pending"
    message = "Finish the current challenge first"


class NoChallengePending(PreconditionFailed):
    code = "no_challenge_pending"
    message = "No matching challenge in progress"


class InvalidPayload(PreconditionFailed):
    code = "invalid_payload"
    message = "Invalid payload"


class InvalidSettings(PreconditionFailed):
    code = "invalid_settings"
    message = "Invalid settings"


class RoomCodeExhausted(PreconditionFailed):
    code = "room_code_exhausted"
    message = "Could not allocate a room code, try again"


class StoreError(Exception):
    """The key-value store could not complete a read or write."""


class UpstreamUnavailable(Exception):
    """The primary challenge source is unreachable or misbehaving."""
