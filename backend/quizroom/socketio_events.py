from flask_socketio import join_room, leave_room, emit
from flask import request
from quizroom import socketio
from typing import Dict, Any
from quizroom.errors import NotFound
from quizroom.services.game.store import get_player, get_session

# Observers only receive "state changed" pings on these rooms and re-read
# state over HTTP; the store stays the single source of truth.
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _rooms_for(room_code: str, player_id=None):
    rooms = [f"session:{room_code}"]
    if player_id is not None:
        rooms.append(f"player:{player_id}")
    return rooms


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _sid_to_ctx.pop(_get_sid(), None)


def handle_join_session(data):
    room_code = (data or {}).get('room_code')
    player_id = (data or {}).get('player_id')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    room_code = room_code.upper()
    try:
        session = get_session(room_code)
        if player_id is not None:
            player_id = get_player(player_id, session).id
    except NotFound as exc:
        emit('error', {'message': exc.message})
        return
    rooms = _rooms_for(room_code, player_id)
    for room in rooms:
        join_room(room)
    _sid_to_ctx[_get_sid()] = {'room_code': room_code, 'player_id': player_id}
    emit('joined', {'rooms': rooms, 'status': session.status})


def handle_leave_session(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    ctx = _sid_to_ctx.pop(_get_sid(), None) or {}
    rooms = _rooms_for(room_code.upper(), ctx.get('player_id'))
    for room in rooms:
        leave_room(room)
    emit('left', {'rooms': rooms})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_session', handle_join_session, namespace='/ws')
    socketio.on_event('leave_session', handle_leave_session, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_session', handle_join_session, namespace='/')
        socketio.on_event('leave_session', handle_leave_session, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
