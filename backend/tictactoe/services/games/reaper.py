import logging
import threading
import time
from typing import List, Optional

from tictactoe.services.broadcast import LOBBY, game_channel, game_closed_event
from .rules import is_finished

DEFAULT_INTERVAL_SEC = 60
DEFAULT_STALE_SEC = 30 * 60


class Reaper:
    """Periodically evicts finished and idle games.

    - Goes through the registry's public operations only
    - Removes under the same per-game lock moves use, so a sweep never races a move
    - Closes the game's channel after telling its members why
    - One failed teardown does not stop the rest of the sweep
    """

    def __init__(self, registry, broadcaster, interval_sec: int = DEFAULT_INTERVAL_SEC,
                 stale_after_sec: int = DEFAULT_STALE_SEC, logger: Optional[logging.Logger] = None):
        self.registry = registry
        self.broadcaster = broadcaster
        self.interval_sec = interval_sec
        self.stale_after_sec = stale_after_sec
        self.logger = logger or logging.getLogger(__name__)
        self._running = False
        self._state_lock = threading.Lock()

    def init_app(self, app) -> None:
        self.interval_sec = int(app.config.get('REAPER_INTERVAL_SEC', DEFAULT_INTERVAL_SEC))
        self.stale_after_sec = int(app.config.get('STALE_GAME_SEC', DEFAULT_STALE_SEC))
        self.logger = app.logger

    def reason_for(self, game, now: float) -> Optional[str]:
        if is_finished(game):
            return 'finished'
        if now - game.created_at > self.stale_after_sec:
            return 'stale'
        return None

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Run one pass over every game; returns the ids that were removed."""
        now = time.time() if now is None else now
        reaped = []
        for game in self.registry.list():
            try:
                removed = self.registry.remove_if(game.id, lambda g: self.reason_for(g, now) is not None)
                if removed is None:
                    continue
                reaped.append(removed.id)
                reason = self.reason_for(removed, now)
                self.logger.info(f"[reap] game={removed.id} reason={reason}")
                closed = game_closed_event(removed.id, reason)
                self.broadcaster.close_channel(game_channel(removed.id), closed)
                self.broadcaster.publish(LOBBY, closed)
            except Exception:
                self.logger.exception(f"[reap-error] game={game.id} teardown failed, continuing")
        if reaped:
            self.logger.info(f"[sweep] reaped={len(reaped)} remaining={len(self.registry)}")
        return reaped

    def start(self, app) -> bool:
        """Start the sweep loop as a Socket.IO background task.

        No-ops in TESTING mode unless ENABLE_REAPER_IN_TESTS is set, and when
        the loop is already running.
        """
        if app.config.get('TESTING') and not app.config.get('ENABLE_REAPER_IN_TESTS'):
            return False
        with self._state_lock:
            if self._running:
                return False
            self._running = True
        from tictactoe import socketio
        socketio.start_background_task(self._run, socketio)
        return True

    def stop(self) -> None:
        with self._state_lock:
            self._running = False

    def _run(self, socketio) -> None:
        self.logger.info(f"[reaper-start] interval={self.interval_sec}s stale_after={self.stale_after_sec}s")
        while self._running:
            socketio.sleep(self.interval_sec)
            if not self._running:
                break
            try:
                self.sweep()
            except Exception:
                self.logger.exception('[reaper-error] sweep failed')
        self.logger.info('[reaper-stop]')
