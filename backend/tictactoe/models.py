from dataclasses import dataclass, replace
from typing import Optional, Tuple

X = 'X'
O = 'O'
SPECTATOR = 'spectator'
BOARD_SIZE = 9

Board = Tuple[Optional[str], ...]


def other_player(symbol: str) -> str:
    return O if symbol == X else X


@dataclass(frozen=True)
class PlayerSlots:
    """Named claims on the X and O seats of one game."""
    x: Optional[str] = None
    o: Optional[str] = None

    def slot(self, symbol: str) -> Optional[str]:
        return self.x if symbol == X else self.o

    def claim(self, symbol: str, name: str) -> 'PlayerSlots':
        if symbol == X:
            return replace(self, x=name)
        return replace(self, o=name)

    def to_dict(self):
        return {X: self.x, O: self.o}


@dataclass(frozen=True)
class GameState:
    """One game as committed in the registry.

    Instances are immutable; every transition builds a new value so a snapshot
    handed out by the registry can never change under its holder.
    `players` is None until somebody supplies a name.
    """
    id: str
    board: Board
    current_player: str
    created_at: float
    players: Optional[PlayerSlots] = None

    def __post_init__(self):
        if len(self.board) != BOARD_SIZE:
            raise ValueError(f"board must have {BOARD_SIZE} cells, got {len(self.board)}")

    def to_dict(self):
        # Imported lazily: the rules module builds on these types
        from tictactoe.services.games.rules import evaluate, is_finished
        data = {
            'id': self.id,
            'board': list(self.board),
            'currentPlayer': self.current_player,
            'createdAt': self.created_at,
            'winner': evaluate(self),
            'finished': is_finished(self),
        }
        if self.players is not None:
            data['players'] = self.players.to_dict()
        return data
