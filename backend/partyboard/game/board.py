"""Deterministic board generation.

The same ``(seed, tile_count, custom_spaces)`` always yields the same tiles,
across processes, because the hash only depends on character code points.
"""

from __future__ import annotations

import random
from typing import Sequence

from .clock import now_ms
from .models import SPECIAL_TILES, Board, Tile
from .spaces import CustomSpace

DEFAULT_TILE_COUNT = 50
MIN_TILE_COUNT = 20
MAX_TILE_COUNT = 100

_SPACE_TILE_TYPES = {
    "CHALLENGE": "CHALLENGE",
    "QUIZ": "CHALLENGE",
    "TRIVIA": "CHALLENGE",
    "BONUS": "BONUS",
    "PENALTY": "PENALTY",
}


def new_seed() -> str:
    return f"{now_ms()}_{random.random()}"


def position_hash(seed: str, index: int) -> int:
    return sum(ord(ch) * (index + 1) for ch in seed)


def bucket_tile_type(value: int) -> str:
    if value < 30:
        return "CHALLENGE"
    if value < 40:
        return "BONUS"
    if value < 50:
        return "PENALTY"
    return "NORMAL"


def generate_board(
    seed: str,
    tile_count: int = DEFAULT_TILE_COUNT,
    custom_spaces: Sequence[CustomSpace] | None = None,
) -> Board:
    if tile_count < 2:
        raise ValueError("a board needs at least START and FINISH")

    spaces = list(custom_spaces or [])
    tiles: list[Tile] = []
    last = tile_count - 1

    for i in range(tile_count):
        space_id = None
        if i == 0:
            tile_type = "START"
        elif i == last:
            tile_type = "FINISH"
        else:
            h = position_hash(seed, i)
            value = h % 100
            if spaces and value < 50:
                space = spaces[h % len(spaces)]
                space_id = space.id
                tile_type = _SPACE_TILE_TYPES.get(space.type, "CHALLENGE")
            else:
                tile_type = bucket_tile_type(value)

        tiles.append(
            Tile(
                id=i,
                position=i,
                type=tile_type,  # type: ignore[arg-type]
                challenge_id=f"challenge_{i}" if tile_type in SPECIAL_TILES else None,
                custom_space_id=space_id,
            )
        )

    return Board(tiles=tiles, seed=seed)
