from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# Inbound
CREATE_ROOM = "create_room"
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
START_GAME = "game_started"
ROLL_DICE = "roll_dice"
MOVE_PLAYER = "move_player"
COMPLETE_CHALLENGE = "challenge_completed"
CAST_VOTE = "cast_vote"
FINISH_GAME = "finish_game"
RECONNECT_PLAYER = "reconnect_player"

# Outbound
ROOM_UPDATED = "room_updated"
GAME_STARTED = "game_started"
GAME_ENDED = "game_ended"
TURN_CHANGED = "turn_changed"
DICE_ROLLED = "dice_rolled"
PLAYER_MOVED = "player_moved"
PLAYER_FINISHED = "player_finished"
CHALLENGE_STARTED = "challenge_started"
CHALLENGE_COMPLETED = "challenge_completed"
VOTE_STARTED = "vote_started"
VOTE_UPDATED = "vote_updated"
PLAYER_DISCONNECTED = "player_disconnected"
PLAYER_RECONNECTED = "player_reconnected"
HOST_CHANGED = "host_changed"
ERROR = "error"

Audience = Literal["room", "connection", "others"]


@dataclass
class Outbound:
    event: str
    payload: dict
    to: Audience = "room"


@dataclass
class Dispatch:
    """What an inbound action produced: events to deliver and channel membership changes."""

    room_id: str | None = None
    events: list[Outbound] = field(default_factory=list)
    join: bool = False
    leave: bool = False

    def broadcast(self, event: str, payload: dict) -> None:
        self.events.append(Outbound(event, payload, "room"))

    def reply(self, event: str, payload: dict) -> None:
        self.events.append(Outbound(event, payload, "connection"))

    def others(self, event: str, payload: dict) -> None:
        self.events.append(Outbound(event, payload, "others"))

    @classmethod
    def error(cls, payload: dict) -> "Dispatch":
        return cls(events=[Outbound(ERROR, payload, "connection")])
