from __future__ import annotations

import json
import logging

from sqlalchemy import Boolean, Column, Integer, String, Text, create_engine, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base

from ..errors import UpstreamUnavailable
from .models import ActionChallenge, Challenge, TriviaChallenge

logger = logging.getLogger(__name__)

Base = declarative_base()


class ChallengeRecord(Base):
    __tablename__ = "challenges"

    id = Column(String(64), primary_key=True)
    challenge_type = Column(String(16), nullable=False)  # TRIVIA, ACTION, DARE, DRINKING
    category = Column(String(100), nullable=False, default="")
    age_rating = Column(String(8), nullable=False, default="ALL")
    question = Column(Text, nullable=True)
    answers = Column(Text, nullable=True)  # JSON list
    correct_answer = Column(Integer, nullable=True)
    action = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)


def _trivia_answers(row: ChallengeRecord) -> tuple[str, ...] | None:
    try:
        answers = json.loads(row.answers or "")
    except ValueError:
        return None
    if not isinstance(answers, list) or not answers:
        return None
    return tuple(str(a) for a in answers)


def _to_challenge(row: ChallengeRecord) -> Challenge | None:
    """Map a row to its challenge variant, or None when a trivia row is incomplete."""
    if row.challenge_type == "TRIVIA":
        answers = _trivia_answers(row)
        if not row.question or answers is None or row.correct_answer is None:
            logger.warning("Skipping malformed trivia challenge %s", row.id)
            return None
        return TriviaChallenge(
            id=row.id,
            category=row.category,
            age_rating=row.age_rating,
            points=row.points,
            question=row.question,
            answers=answers,
            correct_answer=row.correct_answer,
        )
    return ActionChallenge(
        id=row.id,
        type=row.challenge_type,
        category=row.category,
        age_rating=row.age_rating,
        points=row.points,
        action=row.action or "",
    )


class ChallengeRepository:
    """Active challenges in a SQL database.

    Every database failure is re-raised as `UpstreamUnavailable`; callers are
    expected to fall back to the built-in catalog.
    """

    def __init__(self, database_url: str) -> None:
        self.engine = create_engine(database_url)

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(str(exc)) from exc

    def add(self, challenge: Challenge, is_active: bool = True) -> None:
        record = ChallengeRecord(
            id=challenge.id,
            challenge_type=challenge.type,
            category=challenge.category,
            age_rating=challenge.age_rating,
            points=challenge.points,
            is_active=is_active,
        )
        if isinstance(challenge, TriviaChallenge):
            record.question = challenge.question
            record.answers = json.dumps(list(challenge.answers))
            record.correct_answer = challenge.correct_answer
        else:
            record.action = challenge.action

        try:
            with Session(self.engine) as session:
                session.merge(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(str(exc)) from exc

    def get_by_id(self, challenge_id: str) -> Challenge | None:
        try:
            with Session(self.engine) as session:
                row = session.get(ChallengeRecord, challenge_id)
                return _to_challenge(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(str(exc)) from exc

    def find(self, type: str | None = None, age_rating: str = "ALL") -> list[Challenge]:
        stmt = select(ChallengeRecord).where(
            ChallengeRecord.is_active.is_(True),
            or_(ChallengeRecord.age_rating == age_rating, ChallengeRecord.age_rating == "ALL"),
        )
        if type:
            stmt = stmt.where(ChallengeRecord.challenge_type == type)

        try:
            with Session(self.engine) as session:
                challenges = (_to_challenge(row) for row in session.scalars(stmt))
                return [c for c in challenges if c is not None]
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(str(exc)) from exc

    def close(self) -> None:
        self.engine.dispose()
