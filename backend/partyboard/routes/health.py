from __future__ import annotations

from flask import Blueprint, jsonify

from ..game.clock import now_ms

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    return jsonify({"status": "ok", "timestamp": now_ms()})
