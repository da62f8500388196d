from __future__ import annotations

import logging
from threading import Lock

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..store import KeyValueStore
from . import events as ev
from .events import Dispatch
from .orchestrator import GameOrchestrator

logger = logging.getLogger(__name__)


class ConnectionIndex:
    """Which room each live connection belongs to, for this process only."""

    def __init__(self) -> None:
        self._rooms: dict[str, str] = {}
        self._lock = Lock()

    def bind(self, connection_id: str, room_id: str) -> None:
        with self._lock:
            self._rooms[connection_id] = room_id

    def pop(self, connection_id: str) -> str | None:
        with self._lock:
            return self._rooms.pop(connection_id, None)

    def get(self, connection_id: str) -> str | None:
        with self._lock:
            return self._rooms.get(connection_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)


def deliver(dispatch: Dispatch, connections: ConnectionIndex) -> None:
    """Emit a dispatch from inside a Socket.IO handler on behalf of `request.sid`."""
    sid = request.sid

    if dispatch.join and dispatch.room_id:
        join_room(dispatch.room_id)
        connections.bind(sid, dispatch.room_id)

    for out in dispatch.events:
        if out.to == "connection" or not dispatch.room_id:
            emit(out.event, out.payload, to=sid)
        elif out.to == "others":
            emit(out.event, out.payload, to=dispatch.room_id, include_self=False)
        else:
            emit(out.event, out.payload, to=dispatch.room_id)

    if dispatch.leave and dispatch.room_id:
        leave_room(dispatch.room_id)
        connections.pop(sid)


def start_sweeper(socketio: SocketIO, store: KeyValueStore, interval_sec: int) -> None:
    if interval_sec <= 0:
        return

    def _runner() -> None:
        while True:
            socketio.sleep(interval_sec)
            try:
                store.sweep()
            except Exception:
                logger.exception("Store sweep failed")

    socketio.start_background_task(_runner)


def register_socketio_handlers(socketio: SocketIO, orchestrator: GameOrchestrator) -> ConnectionIndex:
    connections = ConnectionIndex()

    @socketio.on(ev.CREATE_ROOM)
    def on_create_room(data=None):
        deliver(orchestrator.create_room(request.sid, data), connections)

    @socketio.on(ev.JOIN_ROOM)
    def on_join_room(data=None):
        deliver(orchestrator.join_room(request.sid, data), connections)

    @socketio.on(ev.LEAVE_ROOM)
    def on_leave_room(data=None):
        deliver(orchestrator.leave_room(request.sid, data), connections)

    @socketio.on(ev.START_GAME)
    def on_start_game(data=None):
        deliver(orchestrator.start_game(request.sid, data), connections)

    @socketio.on(ev.ROLL_DICE)
    def on_roll_dice(data=None):
        deliver(orchestrator.roll_dice(request.sid, data), connections)

    @socketio.on(ev.MOVE_PLAYER)
    def on_move_player(data=None):
        deliver(orchestrator.move_player(request.sid, data), connections)

    @socketio.on(ev.COMPLETE_CHALLENGE)
    def on_challenge_completed(data=None):
        deliver(orchestrator.complete_challenge(request.sid, data), connections)

    @socketio.on(ev.CAST_VOTE)
    def on_cast_vote(data=None):
        deliver(orchestrator.cast_vote(request.sid, data), connections)

    @socketio.on(ev.FINISH_GAME)
    def on_finish_game(data=None):
        deliver(orchestrator.finish_game(request.sid, data), connections)

    @socketio.on(ev.RECONNECT_PLAYER)
    def on_reconnect_player(data=None):
        deliver(orchestrator.reconnect_player(request.sid, data), connections)

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        room_id = connections.get(request.sid)
        if not room_id:
            return
        deliver(orchestrator.disconnect(request.sid, room_id), connections)
        connections.pop(request.sid)

    return connections
