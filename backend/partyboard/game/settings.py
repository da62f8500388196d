from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, replace

from ..errors import InvalidSettings, StoreError
from ..store import KeyValueStore
from .clock import now_ms

logger = logging.getLogger(__name__)

SETTINGS_KEY = "game:settings"


@dataclass
class GameSettings:
    max_players_per_room: int = 10
    default_board_size: int = 50
    enable_challenges: bool = True
    turn_timeout_seconds: int = 60
    updated_at_ms: int = 0

    def to_public(self) -> dict:
        return {
            "maxPlayersPerRoom": self.max_players_per_room,
            "defaultBoardSize": self.default_board_size,
            "enableChallenges": self.enable_challenges,
            "turnTimeoutSeconds": self.turn_timeout_seconds,
            "updatedAtMs": self.updated_at_ms,
        }


def _int_in_range(raw, low: int, high: int, message: str) -> int:
    if isinstance(raw, bool):
        raise InvalidSettings(message)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidSettings(message) from None
    if value < low or value > high:
        raise InvalidSettings(message)
    return value


class SettingsService:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def get_settings(self) -> GameSettings:
        try:
            raw = self.store.get(SETTINGS_KEY)
            if raw:
                return GameSettings(**json.loads(raw))
            defaults = GameSettings(updated_at_ms=now_ms())
            self._save(defaults)
            return defaults
        except StoreError:
            logger.warning("Settings unavailable, using defaults", exc_info=True)
            return GameSettings()

    def update_settings(self, updates: dict) -> GameSettings:
        """Apply camelCase `updates` on top of the current settings."""
        changes: dict = {}

        if "maxPlayersPerRoom" in updates:
            changes["max_players_per_room"] = _int_in_range(
                updates["maxPlayersPerRoom"], 2, 20, "Max players must be between 2 and 20"
            )
        if "defaultBoardSize" in updates:
            changes["default_board_size"] = _int_in_range(
                updates["defaultBoardSize"], 20, 100, "Board size must be between 20 and 100"
            )
        if "turnTimeoutSeconds" in updates:
            changes["turn_timeout_seconds"] = _int_in_range(
                updates["turnTimeoutSeconds"], 10, 300, "Turn timeout must be between 10 and 300 seconds"
            )
        if "enableChallenges" in updates:
            changes["enable_challenges"] = bool(updates["enableChallenges"])

        settings = replace(self.get_settings(), **changes, updated_at_ms=now_ms())
        self._save(settings)
        return settings

    def reset_settings(self) -> GameSettings:
        settings = GameSettings(updated_at_ms=now_ms())
        self._save(settings)
        return settings

    def _save(self, settings: GameSettings) -> None:
        self.store.set(SETTINGS_KEY, json.dumps(asdict(settings)))
