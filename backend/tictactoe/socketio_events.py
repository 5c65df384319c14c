from dataclasses import dataclass
from flask import current_app, request
from flask_socketio import emit
from tictactoe import broadcaster, registry, socketio
from tictactoe.services.broadcast import LOBBY, chat_event, game_channel, latest_state_event
from tictactoe.services.games.registry import NotFound

GAME_NAMESPACE = '/ws'
LOBBY_NAMESPACE = '/lobby'


@dataclass(frozen=True)
class SocketHandle:
    """One Socket.IO connection on one namespace, as a broadcast member."""
    sid: str
    namespace: str

    def send(self, data) -> None:
        socketio.emit('update', data, to=self.sid, namespace=self.namespace)


class SocketIORooms:
    """Mirrors channel membership into Socket.IO rooms named after the channel."""

    def enter(self, channel: str, handle) -> None:
        if isinstance(handle, SocketHandle):
            socketio.server.enter_room(handle.sid, channel, namespace=handle.namespace)

    def leave(self, channel: str, handle) -> None:
        if isinstance(handle, SocketHandle):
            socketio.server.leave_room(handle.sid, channel, namespace=handle.namespace)

    def emit(self, channel: str, data, members) -> bool:
        """Emit once per namespace to the room; False if a member is not a socket."""
        if not all(isinstance(h, SocketHandle) for h in members):
            return False
        for namespace in {h.namespace for h in members}:
            socketio.emit('update', data, to=channel, namespace=namespace)
        return True

    def close(self, channel: str, members) -> None:
        for namespace in {h.namespace for h in members if isinstance(h, SocketHandle)}:
            socketio.close_room(channel, namespace=namespace)


def _handle(namespace: str) -> SocketHandle:
    # type: ignore: request.sid exists in Socket.IO context
    return SocketHandle(request.sid, namespace)  # type: ignore


def _chat_limit() -> int:
    return int(current_app.config.get('CHAT_MAX_LENGTH', 500))


def _game_id(data):
    if not isinstance(data, dict):
        return None
    game_id = data.get('gameId')
    if isinstance(game_id, str) and game_id:
        return game_id
    return None


# ---- Game channels (/ws) ----

def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {GAME_NAMESPACE}'})


def handle_disconnect(reason=None):
    left = broadcaster.drop_handle(_handle(GAME_NAMESPACE))
    if left:
        current_app.logger.info(f"[disconnect] sid={request.sid} left={left}")


def handle_join_game(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    if game_id not in registry:
        emit('error', {'message': str(NotFound(game_id)), 'gameId': game_id})
        return
    handle = _handle(GAME_NAMESPACE)
    channel = game_channel(game_id)
    broadcaster.subscribe(channel, handle)
    # The game may have been reaped before we subscribed
    if game_id not in registry:
        broadcaster.unsubscribe(channel, handle)
        emit('error', {'message': str(NotFound(game_id)), 'gameId': game_id})
        return
    emit('joined', {'channel': channel})
    # Sent under the channel's send lock, so it cannot overtake a newer push
    broadcaster.publish_latest(channel, latest_state_event(registry, game_id), to=[handle])


def handle_leave_game(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    channel = game_channel(game_id)
    broadcaster.unsubscribe(channel, _handle(GAME_NAMESPACE))
    emit('left', {'channel': channel})


def handle_game_chat(data):
    if not isinstance(data, dict):
        return
    event = chat_event(data.get('playerName'), data.get('text'), max_length=_chat_limit())
    if event is None:
        return
    joined = broadcaster.channels_of(_handle(GAME_NAMESPACE))
    game_id = _game_id(data)
    if game_id is not None:
        joined = [c for c in joined if c == game_channel(game_id)]
    for channel in joined:
        broadcaster.publish(channel, event)


def handle_ping(data=None):
    emit('pong', data or {})


# ---- Lobby (/lobby) ----

def handle_lobby_connect(auth=None):
    broadcaster.subscribe(LOBBY, _handle(LOBBY_NAMESPACE))
    emit('connected', {'message': f'Connected to {LOBBY_NAMESPACE}'})


def handle_lobby_disconnect(reason=None):
    broadcaster.drop_handle(_handle(LOBBY_NAMESPACE))


def handle_lobby_chat(data):
    if not isinstance(data, dict):
        return
    if LOBBY not in broadcaster.channels_of(_handle(LOBBY_NAMESPACE)):
        return
    event = chat_event(data.get('playerName'), data.get('text'), max_length=_chat_limit())
    if event is not None:
        broadcaster.publish(LOBBY, event)


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game and lobby namespaces."""
    socketio.on_event('connect', handle_connect, namespace=GAME_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=GAME_NAMESPACE)
    socketio.on_event('join_game', handle_join_game, namespace=GAME_NAMESPACE)
    socketio.on_event('leave_game', handle_leave_game, namespace=GAME_NAMESPACE)
    socketio.on_event('chat', handle_game_chat, namespace=GAME_NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=GAME_NAMESPACE)

    socketio.on_event('connect', handle_lobby_connect, namespace=LOBBY_NAMESPACE)
    socketio.on_event('disconnect', handle_lobby_disconnect, namespace=LOBBY_NAMESPACE)
    socketio.on_event('chat', handle_lobby_chat, namespace=LOBBY_NAMESPACE)
