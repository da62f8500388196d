from __future__ import annotations

import logging
import random

from ..errors import UpstreamUnavailable
from .catalog import BUILTIN_CHALLENGES
from .models import Challenge, TriviaChallenge
from .repository import ChallengeRepository

logger = logging.getLogger(__name__)


def _age_match(challenge: Challenge, age_rating: str) -> bool:
    return challenge.age_rating == "ALL" or challenge.age_rating == age_rating


class ChallengeProvider:
    """Picks challenges from the database when there is one, else from the built-in catalog."""

    def __init__(
        self,
        repository: ChallengeRepository | None = None,
        catalog: tuple[Challenge, ...] = BUILTIN_CHALLENGES,
        rng: random.Random | None = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.rng = rng or random.Random()

    def _from_repository(self, type: str | None, age_rating: str) -> list[Challenge]:
        if self.repository is None:
            return []
        try:
            candidates = self.repository.find(type, age_rating)
            if not candidates and type:
                candidates = self.repository.find(None, age_rating)
            return candidates
        except UpstreamUnavailable:
            logger.warning("Challenge database unavailable, using built-in challenges", exc_info=True)
            return []

    def get_random_challenge(self, type: str | None = None, age_rating: str = "ALL") -> Challenge:
        candidates = self._from_repository(type, age_rating)

        if not candidates:
            candidates = [
                c for c in self.catalog if _age_match(c, age_rating) and (not type or c.type == type)
            ]
        if not candidates:
            candidates = [c for c in self.catalog if c.age_rating == "ALL"]

        return self.rng.choice(candidates)

    def get_challenge_by_id(self, challenge_id: str) -> Challenge | None:
        if self.repository is not None:
            try:
                found = self.repository.get_by_id(challenge_id)
                if found is not None:
                    return found
            except UpstreamUnavailable:
                logger.warning("Challenge database unavailable looking up %s", challenge_id, exc_info=True)

        return next((c for c in self.catalog if c.id == challenge_id), None)

    def validate_trivia_answer(self, challenge_id: str, answer_index) -> bool:
        challenge = self.get_challenge_by_id(challenge_id)
        if not isinstance(challenge, TriviaChallenge) or isinstance(answer_index, bool):
            return False
        return challenge.correct_answer == answer_index
