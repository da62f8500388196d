"""Turn and event state machine.

Every inbound action is handled by one method taking the acting connection id
and the raw payload. Methods never talk to the transport: they return a
`Dispatch` describing what to deliver and to whom. Failures become a single
`error` event addressed to the acting connection.
"""

from __future__ import annotations

import functools
import logging
import random

from ..challenges.models import TriviaChallenge
from ..challenges.service import ChallengeProvider
from ..challenges.voting import VotingService, VotingSession, calculate_vote_result, is_voting_complete
from ..errors import (
    ChallengeNotFound,
    ChallengePending,
    GameError,
    GameNotInProgress,
    InvalidPayload,
    NoChallengePending,
    NotHost,
    NotYourTurn,
    PlayerNotFound,
    RoomNotFound,
    SessionNotFound,
    StoreError,
    VoteNotAllowed,
)
from ..game.models import SPECIAL_TILES, Room
from ..game.service import RoomRegistry, player_public_state, promote_new_host, room_public_state, tile_public_state
from ..game.settings import SettingsService
from . import events as ev
from .events import Dispatch

logger = logging.getLogger(__name__)

STORE_FAILURE = {"message": "Storage unavailable, try again", "code": "store_unavailable"}

NAME_MAX_LENGTH = 16


def _guarded(fn):
    @functools.wraps(fn)
    def wrapper(self, connection_id: str, data=None) -> Dispatch:
        if data is None:
            data = {}
        try:
            if not isinstance(data, dict):
                raise InvalidPayload()
            return fn(self, connection_id, data)
        except GameError as exc:
            logger.info("%s from %s rejected: %s", fn.__name__, connection_id, exc.code)
            return Dispatch.error(exc.to_payload())
        except StoreError:
            logger.exception("Store failure handling %s from %s", fn.__name__, connection_id)
            return Dispatch.error(dict(STORE_FAILURE))

    return wrapper


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{key} is required")
    return value.strip()


def _player_name(data: dict) -> str:
    name = _text(data, "playerName")
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidPayload(f"playerName must be at most {NAME_MAX_LENGTH} characters")
    if "<" in name or ">" in name or any(ord(ch) < 32 for ch in name):
        raise InvalidPayload("playerName contains invalid characters")
    return name


def _optional_text(data: dict, key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _vote_payload(session: VotingSession) -> dict:
    return {
        "votes": [{"playerId": v.player_id, "vote": v.vote} for v in session.votes],
        "totalVoters": session.total_voters,
    }


def turn_payload(room: Room) -> dict:
    current = room.current_player()
    return {
        "currentTurn": room.current_turn,
        "currentPlayer": player_public_state(current) if current is not None else None,
    }


class GameOrchestrator:
    def __init__(
        self,
        registry: RoomRegistry,
        challenges: ChallengeProvider,
        voting: VotingService,
        settings: SettingsService,
        age_rating: str = "ALL",
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.challenges = challenges
        self.voting = voting
        self.settings = settings
        self.age_rating = age_rating
        self.rng = rng or random.Random()

    # ---- helpers ----

    def _require_room(self, room_id: str) -> Room:
        room = self.registry.get_room(room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def _require_playing(self, room_id: str) -> Room:
        room = self._require_room(room_id)
        if room.status != "PLAYING":
            raise GameNotInProgress()
        return room

    def _require_turn(self, room: Room, connection_id: str) -> None:
        current = room.current_player()
        if current is None or current.id != connection_id:
            raise NotYourTurn()

    def _advance(self, room_id: str, dispatch: Dispatch) -> None:
        room = self.registry.next_turn(room_id)
        dispatch.broadcast(ev.TURN_CHANGED, turn_payload(room))

    def _complete(self, room_id: str, player_id: str, player_name: str, challenge_id: str,
                  success: bool, dispatch: Dispatch) -> None:
        dispatch.broadcast(ev.CHALLENGE_COMPLETED, {
            "playerId": player_id,
            "playerName": player_name,
            "challengeId": challenge_id,
            "success": success,
        })
        self._advance(room_id, dispatch)

    def _resolve_vote(self, room: Room, session: VotingSession, dispatch: Dispatch) -> None:
        if not is_voting_complete(session):
            return
        self.voting.delete_voting_session(room.id)
        challenger = room.challenger()
        self._complete(
            room.id,
            challenger.id if challenger is not None else session.challenging_player_id,
            session.challenging_player_name,
            session.challenge_id,
            calculate_vote_result(session),
            dispatch,
        )

    def _recount_vote(self, room: Room, dispatch: Dispatch) -> None:
        """Shrink an open vote to the voters still able to take part."""
        session = self.voting.get_voting_session(room.id)
        if session is None:
            return

        challenger = room.challenger()
        if challenger is None:
            self.voting.delete_voting_session(room.id)
            logger.info("Vote in room %s dropped, challenger left", room.code)
            return

        eligible = {p.id for p in room.players if p.is_connected and p is not challenger}
        total = len(eligible | {v.player_id for v in session.votes})
        if total >= session.total_voters:
            return

        session.total_voters = total
        self.voting.update_voting_session(session)
        dispatch.broadcast(ev.VOTE_UPDATED, _vote_payload(session))
        self._resolve_vote(room, session, dispatch)

    def _room_joined(self, room: Room, connection_id: str) -> Dispatch:
        d = Dispatch(room.id, join=True)
        d.others(ev.ROOM_UPDATED, room_public_state(room))
        d.reply(ev.ROOM_UPDATED, room_public_state(room, viewer_connection_id=connection_id))
        return d

    # ---- lobby ----

    @_guarded
    def create_room(self, connection_id: str, data: dict) -> Dispatch:
        room = self.registry.create_room(connection_id, _player_name(data), _optional_text(data, "avatar"))
        d = Dispatch(room.id, join=True)
        d.reply(ev.ROOM_UPDATED, room_public_state(room, viewer_connection_id=connection_id))
        return d

    @_guarded
    def join_room(self, connection_id: str, data: dict) -> Dispatch:
        code = _text(data, "code")
        name = _player_name(data)

        room = self.registry.get_room_by_code(code)
        if room is None:
            raise RoomNotFound()

        room = self.registry.add_player(room.id, connection_id, name, _optional_text(data, "avatar"))
        return self._room_joined(room, connection_id)

    @_guarded
    def leave_room(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")

        with self.registry.locked(room_id):
            room = self._require_room(room_id)
            player = room.find_player(connection_id)
            if player is None:
                raise PlayerNotFound()
            was_host = player.is_host

            room = self.registry.remove_player(room_id, connection_id)

            d = Dispatch(room_id, leave=True)
            d.others(ev.ROOM_UPDATED, room_public_state(room))
            if was_host and room.players:
                host = room.find_player(room.host_id)
                d.others(ev.HOST_CHANGED, {"newHostId": host.id, "newHostName": host.name})
            if room.status == "PLAYING" and room.players:
                d.others(ev.TURN_CHANGED, turn_payload(room))
                self._recount_vote(room, d)
            return d

    @_guarded
    def start_game(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")

        with self.registry.locked(room_id):
            room = self._require_room(room_id)
            if room.find_player(connection_id) is None:
                raise PlayerNotFound()
            if room.host_id != connection_id:
                raise NotHost()

            room = self.registry.start_game(room_id)

        d = Dispatch(room_id)
        d.broadcast(ev.GAME_STARTED, room_public_state(room))
        d.broadcast(ev.TURN_CHANGED, turn_payload(room))
        return d

    @_guarded
    def finish_game(self, connection_id: str, data: dict) -> Dispatch:
        room = self.registry.finish_game(_text(data, "roomId"), connection_id)
        d = Dispatch(room.id)
        d.broadcast(ev.GAME_ENDED, room_public_state(room))
        return d

    # ---- turns ----

    @_guarded
    def roll_dice(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")

        with self.registry.locked(room_id):
            room = self._require_playing(room_id)
            self._require_turn(room, connection_id)
            if room.pending_challenge is not None:
                raise ChallengePending()
            player = room.current_player()

        roll = self.rng.randint(1, 6)
        d = Dispatch(room_id)
        d.broadcast(ev.DICE_ROLLED, {"playerId": player.id, "playerName": player.name, "diceRoll": roll})
        return d

    @_guarded
    def move_player(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")
        dice_roll = data.get("diceRoll")
        if isinstance(dice_roll, bool) or not isinstance(dice_roll, int) or dice_roll < 0:
            raise InvalidPayload("diceRoll must be a non-negative integer")

        with self.registry.locked(room_id):
            room = self._require_playing(room_id)
            self._require_turn(room, connection_id)
            if room.pending_challenge is not None:
                raise ChallengePending()

            room, tile = self.registry.move_player(room_id, connection_id, dice_roll)
            player = room.find_player(connection_id)

            d = Dispatch(room_id)
            d.broadcast(ev.PLAYER_MOVED, {
                "playerId": player.id,
                "playerName": player.name,
                "newPosition": player.position,
                "tile": tile_public_state(tile),
            })

            if tile.type in SPECIAL_TILES and self.settings.get_settings().enable_challenges:
                challenge = self.challenges.get_random_challenge(age_rating=self.age_rating)
                self.registry.begin_challenge(room_id, player.id, challenge.id)
                d.broadcast(ev.CHALLENGE_STARTED, {
                    "playerId": player.id,
                    "playerName": player.name,
                    "tile": tile_public_state(tile),
                    "challenge": challenge.to_public(),
                })
                return d

            if tile.type == "FINISH":
                d.broadcast(ev.PLAYER_FINISHED, {"playerId": player.id, "playerName": player.name})
            self._advance(room_id, d)
            return d

    @_guarded
    def complete_challenge(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")
        challenge_id = _text(data, "challengeId")

        with self.registry.locked(room_id):
            room = self._require_playing(room_id)
            player = room.find_player(connection_id)
            if player is None:
                raise PlayerNotFound()
            self._require_turn(room, connection_id)

            pending = room.pending_challenge
            if pending is None or pending.challenge_id != challenge_id or room.challenger() is not player:
                raise NoChallengePending()
            if self.voting.get_voting_session(room_id) is not None:
                raise VoteNotAllowed("The other players are still voting")

            challenge = self.challenges.get_challenge_by_id(challenge_id)
            d = Dispatch(room_id)

            if isinstance(challenge, TriviaChallenge) and "answer" in data:
                success = self.challenges.validate_trivia_answer(challenge_id, data["answer"])
            elif "success" in data:
                success = bool(data["success"])
            elif isinstance(challenge, TriviaChallenge):
                success = False
            elif challenge is None:
                raise ChallengeNotFound()
            else:
                voters = sum(1 for p in room.players if p.is_connected and p.id != connection_id)
                if voters == 0:
                    self._complete(room_id, player.id, player.name, challenge_id, False, d)
                    return d
                self.voting.create_voting_session(room_id, player.id, player.name, challenge_id, voters)
                d.broadcast(ev.VOTE_STARTED, {
                    "challengingPlayerId": player.id,
                    "challengingPlayerName": player.name,
                    "challengeId": challenge_id,
                    "totalVoters": voters,
                })
                return d

            self._complete(room_id, player.id, player.name, challenge_id, success, d)
            return d

    @_guarded
    def cast_vote(self, connection_id: str, data: dict) -> Dispatch:
        room_id = _text(data, "roomId")
        vote = data.get("vote")
        if not isinstance(vote, bool):
            raise InvalidPayload("vote must be true or false")

        with self.registry.locked(room_id):
            room = self._require_room(room_id)
            session = self.voting.get_voting_session(room_id)
            if session is None:
                raise VoteNotAllowed("No vote in progress")
            voter = room.find_player(connection_id)
            if voter is None or voter is room.challenger() or connection_id == session.challenging_player_id:
                raise VoteNotAllowed()

            session = self.voting.cast_vote(room_id, connection_id, vote)
            d = Dispatch(room_id)
            d.broadcast(ev.VOTE_UPDATED, _vote_payload(session))
            self._resolve_vote(room, session, d)
            return d

    # ---- connection lifecycle ----

    @_guarded
    def reconnect_player(self, connection_id: str, data: dict) -> Dispatch:
        result = self.registry.reconnect_player(_text(data, "playerSessionId"), connection_id)
        if result is None:
            raise SessionNotFound()

        room, player = result
        d = Dispatch(room.id, join=True)
        d.reply(ev.ROOM_UPDATED, room_public_state(room, viewer_connection_id=connection_id))
        d.others(ev.PLAYER_RECONNECTED, {"playerId": player.id, "playerName": player.name})
        return d

    def disconnect(self, connection_id: str, room_id: str) -> Dispatch:
        try:
            with self.registry.locked(room_id):
                room = self.registry.get_room(room_id)
                player = room.find_player(connection_id) if room is not None else None
                if player is None:
                    return Dispatch(room_id)

                room = self.registry.mark_disconnected(room_id, connection_id)
                d = Dispatch(room_id, leave=True)
                d.others(ev.PLAYER_DISCONNECTED, {"playerId": player.id, "playerName": player.name})

                if player.is_host:
                    new_host = promote_new_host(room, connected_only=True)
                    if new_host is not None:
                        self.registry.save(room)
                        logger.info("Host of room %s passed to %s", room.code, new_host.name)
                        d.others(ev.HOST_CHANGED, {"newHostId": new_host.id, "newHostName": new_host.name})

                if room.status == "PLAYING":
                    self._recount_vote(room, d)
                return d
        except (GameError, StoreError):
            logger.exception("Could not record disconnect of %s from room %s", connection_id, room_id)
            return Dispatch(room_id)
