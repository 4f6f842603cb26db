from flask_socketio import emit
from flask import current_app, request
from flask_login import current_user, login_user
from arena import socketio, get_arena
import json


class SocketChannel:
    """Delivery handle for one Socket.IO connection."""

    def __init__(self, sid: str, namespace: str):
        self.sid = sid
        self.namespace = namespace
        self.closed = False

    def send(self, event: str, payload: dict) -> None:
        # socketio.emit works outside of a handler too (HTTP routes, other sockets)
        socketio.emit(event, payload, to=self.sid, namespace=self.namespace)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _protocol_error(message: str) -> None:
    current_app.logger.warning(f"[protocol-error] sid={_get_sid()} {message}")
    emit('error', {'type': 'error', 'message': message})


def _current_player():
    return get_arena().presence.player_for(_get_sid())


def handle_connect(auth=None):
    arena = get_arena()
    if current_user.is_authenticated:
        # Same player the browser is logged in as over HTTP
        user = current_user._get_current_object()
    else:
        user = arena.repo.create_session_user()
        arena.repo.commit()
        login_user(user)
    arena.presence.connect(_get_sid(), user.id, SocketChannel(_get_sid(), request.namespace))
    current_app.logger.info(f"[connect] sid={_get_sid()} player={user.id}")
    emit('user_session', {'type': 'user_session', 'user': user.to_dict()})


def handle_disconnect(reason=None):
    forfeit = bool(current_app.config.get('FORFEIT_ON_DISCONNECT', True))
    gone = get_arena().handle_disconnect(_get_sid(), forfeit=forfeit)
    if gone:
        current_app.logger.info(
            f"[disconnect] sid={_get_sid()} player={gone['player_id']} forfeited={gone['forfeited']}"
        )


def handle_join_match(data):
    if not isinstance(data, dict):
        _protocol_error('join_match expects an object')
        return
    match_id = data.get('matchId')
    if not match_id:
        _protocol_error('matchId is required')
        return
    player_id = _current_player()
    if not player_id:
        _protocol_error('no session for this connection')
        return
    get_arena().presence.join_match(player_id, match_id)
    emit('joined', {'matchId': match_id})


def handle_leave_match(data=None):
    player_id = _current_player()
    if not player_id:
        return
    match_id = get_arena().presence.leave_match(player_id)
    emit('left', {'matchId': match_id})


def handle_make_move(data):
    if not isinstance(data, dict):
        _protocol_error('make_move expects an object')
        return
    match_id = data.get('matchId')
    move = data.get('move')
    if not match_id or move is None:
        _protocol_error('matchId and move are required')
        return
    player_id = _current_player()
    if not player_id:
        _protocol_error('no session for this connection')
        return
    # Illegal moves are dropped without a reply; the outcome is the absence of a game_update
    get_arena().submit_move(match_id, player_id, move)


_DISPATCH = {
    'join_match': handle_join_match,
    'leave_match': handle_leave_match,
    'make_move': handle_make_move,
}


def handle_message(data):
    """Single-event framing: ``{"type": ..., ...}`` routed to the named handlers."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError:
            _protocol_error('message is not valid JSON')
            return
    if not isinstance(data, dict):
        _protocol_error('message must be a JSON object')
        return
    handler = _DISPATCH.get(data.get('type'))
    if handler is None:
        _protocol_error(f"unknown message type: {data.get('type')!r}")
        return
    handler(data)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_match', handle_join_match, namespace=namespace)
        socketio.on_event('leave_match', handle_leave_match, namespace=namespace)
        socketio.on_event('make_move', handle_make_move, namespace=namespace)
        socketio.on_event('message', handle_message, namespace=namespace)
