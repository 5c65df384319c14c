"""In-memory store of live games.

The registry owns the committed GameState of every game. Callers only ever
see immutable snapshots; to change a game they go back through `mutate` or
`update`, both of which run under that game's own lock. The map lock only
guards the dict and lock table and is never held while caller code runs, so
work on different games does not contend.
"""
import threading
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

from tictactoe.models import GameState, PlayerSlots
from .rules import create_game


class RegistryError(Exception):
    pass


class NotFound(RegistryError):
    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__('Game not found')


class DuplicateId(RegistryError):
    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game id '{game_id}' already exists")


class Conflict(RegistryError):
    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game '{game_id}' changed concurrently, retry")


class SessionRegistry:

    def __init__(self):
        self._games: Dict[str, GameState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._map_lock = threading.Lock()

    def __len__(self):
        with self._map_lock:
            return len(self._games)

    def __contains__(self, game_id):
        return self.exists(game_id)

    def exists(self, game_id: str) -> bool:
        with self._map_lock:
            return game_id in self._games

    def create(self, game_id: str, players: Optional[PlayerSlots] = None) -> GameState:
        state = create_game(game_id, players=players)
        with self._map_lock:
            if game_id in self._games:
                raise DuplicateId(game_id)
            self._games[game_id] = state
            self._locks[game_id] = threading.Lock()
        return state

    def get(self, game_id: str) -> GameState:
        with self._map_lock:
            state = self._games.get(game_id)
        if state is None:
            raise NotFound(game_id)
        return state

    def list(self) -> List[GameState]:
        with self._map_lock:
            return list(self._games.values())

    @contextmanager
    def _exclusive(self, game_id: str):
        with self._map_lock:
            lock = self._locks.get(game_id)
        if lock is None:
            raise NotFound(game_id)
        with lock:
            # The game may have been removed (and the id reused) while we waited
            with self._map_lock:
                if self._locks.get(game_id) is not lock:
                    raise NotFound(game_id)
            yield lock

    def _store(self, game_id: str, state: GameState, lock) -> None:
        if state.id != game_id:
            raise ValueError(f"state for '{state.id}' cannot be stored under '{game_id}'")
        with self._map_lock:
            # A reset may have dropped the game and a create reused its id
            if self._locks.get(game_id) is not lock:
                raise NotFound(game_id)
            self._games[game_id] = state

    def mutate(self, game_id: str, fn: Callable[[GameState], GameState]) -> GameState:
        """Apply `fn` to the latest committed state and commit its result.

        Calls for the same id run one at a time. If `fn` raises, nothing is
        committed and the exception propagates.
        """
        with self._exclusive(game_id) as lock:
            new_state = fn(self.get(game_id))
            self._store(game_id, new_state, lock)
        return new_state

    def update(self, game_id: str, new_state: GameState, expected: Optional[GameState] = None) -> GameState:
        """Replace the stored state of an existing game.

        With `expected`, only succeeds if the stored state is still that exact
        snapshot; otherwise raises Conflict so the caller can retry.
        """
        with self._exclusive(game_id) as lock:
            if expected is not None and self.get(game_id) is not expected:
                raise Conflict(game_id)
            self._store(game_id, new_state, lock)
        return new_state

    def remove_if(self, game_id: str, predicate: Optional[Callable[[GameState], bool]] = None) -> Optional[GameState]:
        """Remove the game if `predicate` holds for its latest state.

        Returns the removed state, or None if the game is gone or was kept.
        """
        try:
            with self._exclusive(game_id) as lock:
                state = self.get(game_id)
                if predicate is not None and not predicate(state):
                    return None
                with self._map_lock:
                    if self._locks.get(game_id) is not lock:
                        return None
                    self._games.pop(game_id, None)
                    self._locks.pop(game_id, None)
                return state
        except NotFound:
            return None

    def remove(self, game_id: str) -> GameState:
        state = self.remove_if(game_id)
        if state is None:
            raise NotFound(game_id)
        return state

    def remove_all(self) -> List[str]:
        with self._map_lock:
            removed = list(self._games)
            self._games.clear()
            self._locks.clear()
        return removed
