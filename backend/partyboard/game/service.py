from __future__ import annotations

import json
import logging
import secrets
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Iterator

from ..errors import (
    GameAlreadyStarted,
    GameNotInProgress,
    NotEnoughPlayers,
    NotHost,
    PlayerNotFound,
    RoomCodeExhausted,
    RoomFull,
    RoomNotFound,
)
from ..store import KeyValueStore
from .board import generate_board, new_seed
from .clock import now_ms
from .models import PendingChallenge, Player, Room, SessionMapping, Tile
from .settings import SettingsService
from .spaces import CustomSpaceService

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def _room_key(room_id: str) -> str:
    return f"room:{room_id}"


def _code_key(code: str) -> str:
    return f"room:code:{code}"


def _session_key(player_session_id: str) -> str:
    return f"session:{player_session_id}"


def promote_new_host(room: Room, connected_only: bool = False) -> Player | None:
    """Make the longest-standing player host. Ties go to list order."""
    candidates = [p for p in room.players if p.is_connected] if connected_only else list(room.players)
    if not candidates:
        return None

    new_host = min(candidates, key=lambda p: p.joined_at_ms)
    for p in room.players:
        p.is_host = p is new_host
    room.host_id = new_host.id
    return new_host


@dataclass
class _RoomLock:
    lock: RLock
    users: int = 0


class RoomRegistry:
    """Room transitions over the key-value store.

    Every operation loads the whole room document, mutates it and writes it
    back. Operations on one room are serialized through `locked(room_id)`.
    A room's lock only lives while someone holds or waits on it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: SettingsService,
        spaces: CustomSpaceService,
        room_ttl_sec: int = 4 * 3600,
        min_players: int = 2,
        code_attempts: int = 10,
    ) -> None:
        self.store = store
        self.settings = settings
        self.spaces = spaces
        self.room_ttl_sec = room_ttl_sec
        self.min_players = min_players
        self.code_attempts = code_attempts
        self._locks: dict[str, _RoomLock] = {}
        self._locks_guard = RLock()

    # ---- locking / persistence ----

    @contextmanager
    def locked(self, room_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(room_id)
            if entry is None:
                entry = self._locks[room_id] = _RoomLock(RLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[room_id]

    def lock_count(self) -> int:
        with self._locks_guard:
            return len(self._locks)

    def _load(self, room_id: str) -> Room | None:
        raw = self.store.get(_room_key(room_id))
        if not raw:
            return None
        return Room.from_dict(json.loads(raw))

    def _require(self, room_id: str) -> Room:
        room = self._load(room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def save(self, room: Room) -> None:
        room.updated_at_ms = now_ms()
        self.store.setex(_room_key(room.id), self.room_ttl_sec, json.dumps(room.to_dict()))

    def _save_session(self, player: Player) -> None:
        mapping = SessionMapping(room_id=player.room_id, player_id=player.id)
        self.store.setex(
            _session_key(player.player_session_id), self.room_ttl_sec, json.dumps(mapping.to_dict())
        )

    def _allocate_code(self, room_id: str) -> str:
        for _ in range(self.code_attempts):
            code = generate_room_code()
            if self.store.get(_code_key(code)) is None:
                self.store.setex(_code_key(code), self.room_ttl_sec, room_id)
                return code
            logger.info("Room code collision on %s, regenerating", code)
        raise RoomCodeExhausted()

    # ---- lookups ----

    def get_room(self, room_id: str) -> Room | None:
        return self._load(room_id)

    def get_room_by_code(self, code: str) -> Room | None:
        room_id = self.store.get(_code_key((code or "").strip().upper()))
        if not room_id:
            return None
        return self._load(room_id)

    def get_session(self, player_session_id: str) -> SessionMapping | None:
        raw = self.store.get(_session_key(player_session_id))
        if not raw:
            return None
        return SessionMapping.from_dict(json.loads(raw))

    def list_rooms(self) -> list[Room]:
        rooms = []
        for key in self.store.keys("room:*"):
            if key.startswith("room:code:"):
                continue
            room = self._load(key[len("room:"):])
            if room is not None:
                rooms.append(room)
        return rooms

    # ---- transitions ----

    def create_room(self, connection_id: str, name: str, avatar: str | None = None) -> Room:
        settings = self.settings.get_settings()
        room_id = f"room_{uuid.uuid4().hex}"
        ts = now_ms()

        with self.locked(room_id):
            code = self._allocate_code(room_id)
            board = generate_board(new_seed(), settings.default_board_size, self.spaces.get_active_spaces())
            host = Player(
                id=connection_id,
                player_session_id=uuid.uuid4().hex,
                room_id=room_id,
                name=name,
                avatar=avatar,
                is_host=True,
                joined_at_ms=ts,
            )
            room = Room(
                id=room_id,
                code=code,
                host_id=connection_id,
                board=board,
                players=[host],
                max_players=settings.max_players_per_room,
                created_at_ms=ts,
            )
            self.save(room)
            self._save_session(host)

        logger.info("Room %s (%s) created by %s", code, room_id, name)
        return room

    def add_player(self, room_id: str, connection_id: str, name: str, avatar: str | None = None) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)

            if room.status != "WAITING":
                raise GameAlreadyStarted()
            if len(room.players) >= room.max_players:
                raise RoomFull()

            existing = room.find_player(connection_id)
            if existing is not None:
                existing.is_connected = True
                self.save(room)
                return room

            player = Player(
                id=connection_id,
                player_session_id=uuid.uuid4().hex,
                room_id=room_id,
                name=name,
                avatar=avatar,
                joined_at_ms=now_ms(),
            )
            room.players.append(player)
            self.save(room)
            self._save_session(player)

        logger.info("%s joined room %s", name, room.code)
        return room

    def start_game(self, room_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            if room.status != "WAITING":
                raise GameAlreadyStarted("Game already started or finished")
            if len(room.players) < self.min_players:
                raise NotEnoughPlayers(f"Need at least {self.min_players} players to start")

            room.status = "PLAYING"
            room.current_turn = 0
            self.save(room)

        logger.info("Room %s started with %d players", room.code, len(room.players))
        return room

    def move_player(self, room_id: str, connection_id: str, dice_roll: int) -> tuple[Room, Tile]:
        with self.locked(room_id):
            room = self._require(room_id)
            player = room.find_player(connection_id)
            if player is None:
                raise PlayerNotFound()

            player.position = min(player.position + dice_roll, room.board.last_index)
            landed = room.board.tiles[player.position]
            self.save(room)
            return room, landed

    def begin_challenge(self, room_id: str, connection_id: str, challenge_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            player = room.find_player(connection_id)
            if player is None:
                raise PlayerNotFound()

            room.pending_challenge = PendingChallenge(
                player_session_id=player.player_session_id, challenge_id=challenge_id
            )
            self.save(room)
            return room

    def next_turn(self, room_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            if room.players:
                room.current_turn = (room.current_turn + 1) % len(room.players)
            room.pending_challenge = None
            self.save(room)
            return room

    def mark_disconnected(self, room_id: str, connection_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            player = room.find_player(connection_id)
            if player is None:
                return room

            player.is_connected = False
            player.last_disconnected_at_ms = now_ms()
            self.save(room)

        logger.info("%s disconnected from room %s", player.name, room.code)
        return room

    def reconnect_player(self, player_session_id: str, new_connection_id: str) -> tuple[Room, Player] | None:
        mapping = self.get_session(player_session_id)
        if mapping is None:
            return None

        with self.locked(mapping.room_id):
            room = self._load(mapping.room_id)
            if room is None:
                return None
            player = room.find_by_session(player_session_id)
            if player is None:
                return None

            if room.host_id == player.id:
                room.host_id = new_connection_id
            player.id = new_connection_id
            player.is_connected = True
            player.last_disconnected_at_ms = None
            self.save(room)
            self._save_session(player)

        logger.info("%s reconnected to room %s", player.name, room.code)
        return room, player

    def remove_player(self, room_id: str, connection_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            idx = next((i for i, p in enumerate(room.players) if p.id == connection_id), None)
            if idx is None:
                return room

            removed = room.players.pop(idx)
            self.store.delete(_session_key(removed.player_session_id))
            pending = room.pending_challenge
            if pending is not None and pending.player_session_id == removed.player_session_id:
                room.pending_challenge = None

            if room.players:
                if removed.is_host:
                    new_host = promote_new_host(room)
                    logger.info("Host of room %s passed to %s", room.code, new_host.name)
                if room.status == "PLAYING":
                    # The index is re-clamped against the live list, which can shift the turn.
                    room.current_turn = room.current_turn % len(room.players)

            self.save(room)

        logger.info("%s left room %s", removed.name, room.code)
        return room

    def finish_game(self, room_id: str, connection_id: str) -> Room:
        with self.locked(room_id):
            room = self._require(room_id)
            if room.host_id != connection_id:
                raise NotHost()
            if room.status != "PLAYING":
                raise GameNotInProgress()
            room.status = "FINISHED"
            self.save(room)

        logger.info("Room %s finished", room.code)
        return room


def _player_public_state(p: Player, viewer_connection_id: str | None) -> dict:
    d = {
        "id": p.id,
        "roomId": p.room_id,
        "name": p.name,
        "avatar": p.avatar,
        "position": p.position,
        "isHost": p.is_host,
        "isConnected": p.is_connected,
        "joinedAt": p.joined_at_ms,
        "lastDisconnectedAt": p.last_disconnected_at_ms,
    }
    # The session id is a reconnect credential: only its owner sees it.
    if viewer_connection_id and viewer_connection_id == p.id:
        d["playerSessionId"] = p.player_session_id
    return d


def tile_public_state(tile: Tile) -> dict:
    return {
        "id": tile.id,
        "position": tile.position,
        "type": tile.type,
        "challengeId": tile.challenge_id,
        "customSpaceId": tile.custom_space_id,
    }


def player_public_state(p: Player) -> dict:
    return _player_public_state(p, None)


def room_public_state(room: Room, viewer_connection_id: str | None = None) -> dict:
    return {
        "id": room.id,
        "code": room.code,
        "hostId": room.host_id,
        "players": [_player_public_state(p, viewer_connection_id) for p in room.players],
        "maxPlayers": room.max_players,
        "status": room.status,
        "currentTurn": room.current_turn,
        "pendingChallengeId": room.pending_challenge.challenge_id if room.pending_challenge else None,
        "board": {
            "seed": room.board.seed,
            "tiles": [tile_public_state(t) for t in room.board.tiles],
        },
        "createdAt": room.created_at_ms,
        "updatedAt": room.updated_at_ms,
    }
