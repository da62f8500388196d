from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from flask import current_app

from .challenges.repository import ChallengeRepository
from .challenges.service import ChallengeProvider
from .challenges.voting import VotingService
from .errors import UpstreamUnavailable
from .game.service import RoomRegistry
from .game.settings import SettingsService
from .game.spaces import CustomSpaceService
from .realtime.orchestrator import GameOrchestrator
from .store import KeyValueStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: KeyValueStore
    settings: SettingsService
    spaces: CustomSpaceService
    challenges: ChallengeProvider
    voting: VotingService
    registry: RoomRegistry
    orchestrator: GameOrchestrator
    repository: ChallengeRepository | None = None

    def close(self) -> None:
        if self.repository is not None:
            self.repository.close()
        self.store.close()


def build_services(config: dict, store: KeyValueStore | None = None, rng: random.Random | None = None) -> Services:
    """Wire every collaborator once per process from a Flask config mapping."""
    if store is None:
        store = create_store(config.get("REDIS_URL", ""))

    repository = None
    database_url = config.get("DATABASE_URL", "")
    if database_url:
        repository = ChallengeRepository(database_url)
        try:
            repository.create_schema()
        except UpstreamUnavailable:
            logger.warning("Challenge database unreachable at startup, built-in challenges will be used", exc_info=True)

    settings = SettingsService(store)
    spaces = CustomSpaceService(store)
    challenges = ChallengeProvider(repository, rng=rng)
    voting = VotingService(store, ttl_sec=config.get("VOTE_TTL_SEC", 300))
    registry = RoomRegistry(
        store,
        settings,
        spaces,
        room_ttl_sec=config.get("ROOM_TTL_SEC", 4 * 3600),
        min_players=config.get("MIN_PLAYERS", 2),
        code_attempts=config.get("ROOM_CODE_ATTEMPTS", 10),
    )
    orchestrator = GameOrchestrator(
        registry,
        challenges,
        voting,
        settings,
        age_rating=config.get("DEFAULT_AGE_RATING", "ALL"),
        rng=rng,
    )
    return Services(
        store=store,
        settings=settings,
        spaces=spaces,
        challenges=challenges,
        voting=voting,
        registry=registry,
        orchestrator=orchestrator,
        repository=repository,
    )


def services() -> Services:
    return current_app.extensions["partyboard"]
