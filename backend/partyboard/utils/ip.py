from __future__ import annotations

from flask import Request

# Checked in order; the first non-empty one wins.
_SINGLE_IP_HEADERS = ("CF-Connecting-IP", "X-Real-IP")


def get_client_ip(request: Request) -> str | None:
    """Best-effort client address for audit logs. Never used for authorization."""
    for header in _SINGLE_IP_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value

    forwarded = [p.strip() for p in (request.headers.get("X-Forwarded-For") or "").split(",")]
    forwarded = [p for p in forwarded if p]
    if forwarded:
        return forwarded[0]

    return request.remote_addr or None
