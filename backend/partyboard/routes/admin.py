from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidSettings
from ..extensions import services
from ..game.stats import game_statistics
from ..utils.ip import get_client_ip

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)


def _authorized() -> bool:
    token = current_app.config.get("ADMIN_TOKEN", "")
    if not token:
        return False
    return request.headers.get("X-Admin-Token", "") == token


@bp.before_request
def require_token():
    if not _authorized():
        logger.warning("Rejected admin request to %s from %s", request.path, get_client_ip(request))
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.get("/admin/settings")
def get_settings():
    return jsonify(services().settings.get_settings().to_public())


@bp.put("/admin/settings")
def update_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "invalid_payload"}), 400

    try:
        settings = services().settings.update_settings(data)
    except InvalidSettings as exc:
        return jsonify({"error": exc.code, "message": exc.detail}), 400

    logger.info("Settings updated from %s", get_client_ip(request))
    return jsonify(settings.to_public())


@bp.post("/admin/settings/reset")
def reset_settings():
    settings = services().settings.reset_settings()
    logger.info("Settings reset from %s", get_client_ip(request))
    return jsonify(settings.to_public())


@bp.get("/admin/stats")
def stats():
    return jsonify(game_statistics(services().registry))
