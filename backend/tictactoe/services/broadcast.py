"""Channel membership and fan-out for live connections.

A channel is either one game (`game:<id>`) or the lobby. Members are opaque
hashable handles exposing `send(data)`. The broadcaster never holds game
state; it is told what to publish after the registry has committed.

When `rooms` is set, membership is mirrored into the transport's rooms and a
publish to a whole channel goes out as one room emit. Without it, or when
the room emit fails, every member is sent to one by one and a member whose
send fails is dropped.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from .games.registry import NotFound

LOBBY = 'lobby'
CHAT_MAX_LENGTH = 500
ANONYMOUS = 'Anonymous'


def game_channel(game_id: str) -> str:
    return f"game:{game_id}"


@dataclass(frozen=True)
class Event:
    type: str
    payload: Dict[str, Any]

    def to_dict(self):
        return {'type': self.type, 'payload': self.payload}


def game_state_event(state) -> Event:
    return Event('gameState', state.to_dict())


def latest_state_event(registry, game_id: str) -> Callable[[], Optional[Event]]:
    """Builder for `publish_latest`: the game's current state, None once it is gone."""
    def build():
        try:
            return game_state_event(registry.get(game_id))
        except NotFound:
            return None
    return build


def game_created_event(state) -> Event:
    return Event('gameCreated', state.to_dict())


def game_closed_event(game_id: str, reason: str) -> Event:
    return Event('gameClosed', {'id': game_id, 'reason': reason})


def chat_event(player_name, text, now: Optional[float] = None, max_length: int = CHAT_MAX_LENGTH) -> Optional[Event]:
    """Build a chat event, or None when there is nothing to say."""
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text:
        return None
    if isinstance(player_name, str) and player_name.strip():
        name = player_name.strip()
    else:
        name = ANONYMOUS
    return Event('chat', {
        'playerName': name,
        'text': text[:max_length],
        'timestamp': time.time() if now is None else now,
    })


class _Channel:
    __slots__ = ('members', 'send_lock', 'pending')

    def __init__(self):
        self.members: Set[Any] = set()
        # Held for a whole publish so sends on one channel keep their order
        self.send_lock = threading.Lock()
        self.pending = 0


class Broadcaster:

    def __init__(self, logger: Optional[logging.Logger] = None, rooms=None):
        self._channels: Dict[str, _Channel] = {}
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)
        self.rooms = rooms

    def _forget_if_idle(self, name: str, channel: _Channel) -> None:
        # Caller holds self._lock
        if not channel.members and not channel.pending and self._channels.get(name) is channel:
            del self._channels[name]

    def channels(self) -> List[str]:
        with self._lock:
            return list(self._channels)

    def subscribe(self, channel: str, handle) -> None:
        with self._lock:
            self._channels.setdefault(channel, _Channel()).members.add(handle)
        if self.rooms is not None:
            self.rooms.enter(channel, handle)

    def unsubscribe(self, channel: str, handle) -> bool:
        with self._lock:
            state = self._channels.get(channel)
            if state is None or handle not in state.members:
                return False
            state.members.discard(handle)
            self._forget_if_idle(channel, state)
        if self.rooms is not None:
            self.rooms.leave(channel, handle)
        return True

    def drop_handle(self, handle) -> List[str]:
        """Remove a disconnected `handle` from every channel; returns the channels it left.

        The transport forgets a closed connection's rooms on its own.
        """
        left = []
        with self._lock:
            for name, state in list(self._channels.items()):
                if handle in state.members:
                    state.members.discard(handle)
                    left.append(name)
                    self._forget_if_idle(name, state)
        return left

    def members(self, channel: str) -> Set[Any]:
        with self._lock:
            state = self._channels.get(channel)
            return set(state.members) if state else set()

    def channels_of(self, handle) -> List[str]:
        with self._lock:
            return [name for name, state in self._channels.items() if handle in state.members]

    def publish(self, channel: str, event: Event, to: Optional[Iterable[Any]] = None) -> int:
        """Send `event` to every member of `channel` (or the members in `to`).

        Returns the number of members it was sent to.
        """
        return self._deliver(channel, lambda: event, to)

    def publish_latest(self, channel: str, build: Callable[[], Optional[Event]],
                       to: Optional[Iterable[Any]] = None) -> int:
        """Like `publish`, but the event is built under the channel's send lock.

        A publisher that lost a race still sends whatever is current at send
        time, so the last thing every member sees is the newest state.
        """
        return self._deliver(channel, build, to)

    def _deliver(self, channel: str, build, to) -> int:
        with self._lock:
            state = self._channels.get(channel)
            if state is None:
                return 0
            state.pending += 1
        try:
            with state.send_lock:
                event = build()
                if event is None:
                    return 0
                data = event.to_dict()
                with self._lock:
                    members = set(state.members)
                if to is not None:
                    members &= set(to)
                if not members:
                    return 0
                if to is None and self.rooms is not None:
                    try:
                        if self.rooms.emit(channel, data, members):
                            return len(members)
                    except Exception as exc:
                        self.logger.warning(f"[broadcast] room emit failed channel={channel} error={exc}")
                return self._send_each(channel, state, members, data)
        finally:
            with self._lock:
                state.pending -= 1
                self._forget_if_idle(channel, state)

    def _send_each(self, channel: str, state: _Channel, members, data) -> int:
        delivered = 0
        for handle in members:
            try:
                handle.send(data)
            except Exception as exc:
                self.logger.warning(f"[broadcast] dropping handle={handle} channel={channel} error={exc}")
                with self._lock:
                    state.members.discard(handle)
                continue
            delivered += 1
        return delivered

    def close_channel(self, channel: str, event: Optional[Event] = None) -> int:
        """Optionally notify members, then forget the channel entirely."""
        if event is not None:
            self.publish(channel, event)
        with self._lock:
            state = self._channels.pop(channel, None)
        if state is None:
            return 0
        if self.rooms is not None:
            self.rooms.close(channel, state.members)
        return len(state.members)
