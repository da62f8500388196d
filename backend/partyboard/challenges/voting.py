from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field

from ..store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class Vote:
    player_id: str
    vote: bool


@dataclass
class VotingSession:
    room_id: str
    challenging_player_id: str
    challenging_player_name: str
    challenge_id: str
    total_voters: int
    votes: list[Vote] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "VotingSession":
        return cls(
            room_id=data["room_id"],
            challenging_player_id=data["challenging_player_id"],
            challenging_player_name=data["challenging_player_name"],
            challenge_id=data["challenge_id"],
            total_voters=data["total_voters"],
            votes=[Vote(**v) for v in data.get("votes", [])],
        )

    def to_public(self) -> dict:
        return {
            "challengingPlayerId": self.challenging_player_id,
            "challengingPlayerName": self.challenging_player_name,
            "challengeId": self.challenge_id,
            "votes": [{"playerId": v.player_id, "vote": v.vote} for v in self.votes],
            "totalVoters": self.total_voters,
        }


def is_voting_complete(session: VotingSession) -> bool:
    return len(session.votes) >= session.total_voters


def calculate_vote_result(session: VotingSession) -> bool:
    """Strict majority of yes over no. Ties and empty ballots fail."""
    if not session.votes:
        return False
    yes = sum(1 for v in session.votes if v.vote)
    no = len(session.votes) - yes
    return yes > no


class VotingService:
    """One open vote per room, kept under `vote:<roomId>` until it expires or is consumed."""

    def __init__(self, store: KeyValueStore, ttl_sec: int = 300) -> None:
        self.store = store
        self.ttl_sec = ttl_sec

    @staticmethod
    def _key(room_id: str) -> str:
        return f"vote:{room_id}"

    def _save(self, session: VotingSession) -> None:
        self.store.setex(self._key(session.room_id), self.ttl_sec, json.dumps(asdict(session)))

    def create_voting_session(
        self,
        room_id: str,
        challenging_player_id: str,
        challenging_player_name: str,
        challenge_id: str,
        total_voters: int,
    ) -> VotingSession:
        session = VotingSession(
            room_id=room_id,
            challenging_player_id=challenging_player_id,
            challenging_player_name=challenging_player_name,
            challenge_id=challenge_id,
            total_voters=total_voters,
        )
        self._save(session)
        logger.info("Vote opened in room %s on %s (%d voters)", room_id, challenge_id, total_voters)
        return session

    def get_voting_session(self, room_id: str) -> VotingSession | None:
        raw = self.store.get(self._key(room_id))
        if not raw:
            return None
        return VotingSession.from_dict(json.loads(raw))

    def cast_vote(self, room_id: str, player_id: str, vote: bool) -> VotingSession | None:
        session = self.get_voting_session(room_id)
        if session is None:
            return None

        existing = next((v for v in session.votes if v.player_id == player_id), None)
        if existing is not None:
            existing.vote = vote
        else:
            session.votes.append(Vote(player_id=player_id, vote=vote))

        self._save(session)
        return session

    def update_voting_session(self, session: VotingSession) -> None:
        self._save(session)
        logger.info("Vote in room %s now expects %d voters", session.room_id, session.total_voters)

    def delete_voting_session(self, room_id: str) -> None:
        self.store.delete(self._key(room_id))
