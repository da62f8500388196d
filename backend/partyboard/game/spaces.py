from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Literal

from ..errors import NotFound, StoreError
from ..store import KeyValueStore
from .clock import now_ms

logger = logging.getLogger(__name__)


CustomSpaceType = Literal[
    "CHALLENGE", "DRINKING", "QUIZ", "TRIVIA", "ACTION", "DARE", "BONUS", "PENALTY", "SPECIAL"
]
CUSTOM_SPACE_TYPES: tuple[str, ...] = (
    "CHALLENGE", "DRINKING", "QUIZ", "TRIVIA", "ACTION", "DARE", "BONUS", "PENALTY", "SPECIAL",
)

PACKS_KEY = "customspace:packs"
PACK_KEY_PREFIX = "customspace:pack:"


@dataclass
class CustomSpace:
    id: str
    pack_id: str
    name: str
    description: str
    type: CustomSpaceType


@dataclass
class CustomSpacePack:
    id: str
    name: str
    description: str
    is_active: bool = False
    spaces: list[CustomSpace] = field(default_factory=list)
    created_at_ms: int = 0
    updated_at_ms: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "CustomSpacePack":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            is_active=bool(data.get("is_active", False)),
            spaces=[CustomSpace(**s) for s in data.get("spaces", [])],
            created_at_ms=data.get("created_at_ms", 0),
            updated_at_ms=data.get("updated_at_ms", 0),
        )


class PackNotFound(NotFound):
    code = "pack_not_found"
    message = "Pack not found"


class CustomSpaceService:
    """Packs of admin-defined board spaces, persisted in the key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _save(self, pack: CustomSpacePack) -> None:
        self.store.set(f"{PACK_KEY_PREFIX}{pack.id}", json.dumps(asdict(pack)))

    def get_pack(self, pack_id: str) -> CustomSpacePack | None:
        raw = self.store.get(f"{PACK_KEY_PREFIX}{pack_id}")
        if raw is None:
            return None
        return CustomSpacePack.from_dict(json.loads(raw))

    def list_packs(self) -> list[CustomSpacePack]:
        packs = []
        for pack_id in self.store.smembers(PACKS_KEY):
            pack = self.get_pack(pack_id)
            if pack is not None:
                packs.append(pack)
        return sorted(packs, key=lambda p: p.created_at_ms, reverse=True)

    def create_pack(self, name: str, description: str = "", is_active: bool = False) -> CustomSpacePack:
        ts = now_ms()
        pack = CustomSpacePack(
            id=uuid.uuid4().hex,
            name=name,
            description=description,
            is_active=is_active,
            created_at_ms=ts,
            updated_at_ms=ts,
        )
        self.store.sadd(PACKS_KEY, pack.id)
        self._save(pack)
        return pack

    def create_space(self, pack_id: str, name: str, description: str, type: str) -> CustomSpace:
        if type not in CUSTOM_SPACE_TYPES:
            raise ValueError(f"unknown custom space type: {type}")
        pack = self.get_pack(pack_id)
        if pack is None:
            raise PackNotFound()
        space = CustomSpace(id=uuid.uuid4().hex, pack_id=pack_id, name=name, description=description, type=type)  # type: ignore[arg-type]
        pack.spaces.append(space)
        pack.updated_at_ms = now_ms()
        self._save(pack)
        return space

    def set_pack_active(self, pack_id: str, active: bool) -> CustomSpacePack:
        pack = self.get_pack(pack_id)
        if pack is None:
            raise PackNotFound()
        pack.is_active = active
        pack.updated_at_ms = now_ms()
        self._save(pack)
        return pack

    def get_active_spaces(self) -> list[CustomSpace]:
        try:
            packs = self.list_packs()
        except StoreError:
            logger.warning("Custom spaces unavailable, generating a plain board", exc_info=True)
            return []
        return [space for pack in packs if pack.is_active for space in pack.spaces]
