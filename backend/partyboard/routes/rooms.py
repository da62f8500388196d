from __future__ import annotations

from flask import Blueprint, jsonify

from ..errors import StoreError
from ..extensions import services
from ..game.service import room_public_state

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<code>")
def get_room(code: str):
    try:
        room = services().registry.get_room_by_code(code)
    except StoreError:
        return jsonify({"error": "store_unavailable"}), 503
    if not room:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(room_public_state(room))
