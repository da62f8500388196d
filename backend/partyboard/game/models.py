from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal


RoomStatus = Literal["WAITING", "PLAYING", "FINISHED"]
TileType = Literal["START", "NORMAL", "CHALLENGE", "BONUS", "PENALTY", "FINISH"]

SPECIAL_TILES: tuple[str, ...] = ("CHALLENGE", "BONUS", "PENALTY")


@dataclass
class Tile:
    id: int
    position: int
    type: TileType
    challenge_id: str | None = None
    custom_space_id: str | None = None


@dataclass
class Board:
    tiles: list[Tile]
    seed: str

    @property
    def last_index(self) -> int:
        return len(self.tiles) - 1


@dataclass
class Player:
    # `id` is the current connection id and changes on every reconnect.
    id: str
    player_session_id: str
    room_id: str
    name: str
    avatar: str | None = None
    position: int = 0
    is_host: bool = False
    is_connected: bool = True
    joined_at_ms: int = 0
    last_disconnected_at_ms: int | None = None


@dataclass
class PendingChallenge:
    # The challenger is identified by session, not by connection id.
    player_session_id: str
    challenge_id: str


@dataclass
class Room:
    id: str
    code: str
    host_id: str
    board: Board
    players: list[Player] = field(default_factory=list)
    max_players: int = 10
    status: RoomStatus = "WAITING"
    current_turn: int = 0
    created_at_ms: int = 0
    updated_at_ms: int = 0
    pending_challenge: PendingChallenge | None = None

    def find_player(self, connection_id: str) -> Player | None:
        return next((p for p in self.players if p.id == connection_id), None)

    def find_by_session(self, player_session_id: str) -> Player | None:
        return next((p for p in self.players if p.player_session_id == player_session_id), None)

    def current_player(self) -> Player | None:
        if not self.players or not 0 <= self.current_turn < len(self.players):
            return None
        return self.players[self.current_turn]

    def challenger(self) -> Player | None:
        if self.pending_challenge is None:
            return None
        return self.find_by_session(self.pending_challenge.player_session_id)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Room":
        board = data["board"]
        pending = data.get("pending_challenge")
        return cls(
            id=data["id"],
            code=data["code"],
            host_id=data["host_id"],
            board=Board(tiles=[Tile(**t) for t in board["tiles"]], seed=board["seed"]),
            players=[Player(**p) for p in data.get("players", [])],
            max_players=data.get("max_players", 10),
            status=data.get("status", "WAITING"),
            current_turn=data.get("current_turn", 0),
            created_at_ms=data.get("created_at_ms", 0),
            updated_at_ms=data.get("updated_at_ms", 0),
            pending_challenge=PendingChallenge(**pending) if pending else None,
        )


@dataclass
class SessionMapping:
    room_id: str
    player_id: str

    def to_dict(self) -> dict:
        return {"roomId": self.room_id, "playerId": self.player_id}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionMapping":
        return cls(room_id=data["roomId"], player_id=data["playerId"])
