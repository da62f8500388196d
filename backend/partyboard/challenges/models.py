from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


ChallengeType = Literal["TRIVIA", "ACTION", "DARE", "DRINKING"]
AgeRating = Literal["ALL", "TEEN", "ADULT"]

CHALLENGE_TYPES: tuple[str, ...] = ("TRIVIA", "ACTION", "DARE", "DRINKING")
AGE_RATINGS: tuple[str, ...] = ("ALL", "TEEN", "ADULT")


@dataclass(frozen=True)
class TriviaChallenge:
    id: str
    category: str
    age_rating: AgeRating
    points: int
    question: str
    answers: tuple[str, ...]
    correct_answer: int
    type: ChallengeType = field(default="TRIVIA", init=False)

    def to_public(self) -> dict:
        # correctAnswer stays server-side; answers are validated on completion.
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "ageRating": self.age_rating,
            "points": self.points,
            "question": self.question,
            "answers": list(self.answers),
        }


@dataclass(frozen=True)
class ActionChallenge:
    """ACTION, DARE and DRINKING prompts: something the player has to do."""

    id: str
    type: ChallengeType
    category: str
    age_rating: AgeRating
    points: int
    action: str

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "ageRating": self.age_rating,
            "points": self.points,
            "action": self.action,
        }


Challenge = Union[TriviaChallenge, ActionChallenge]
