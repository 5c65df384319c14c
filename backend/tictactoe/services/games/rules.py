import time
from typing import Optional

from tictactoe.models import BOARD_SIZE, GameState, PlayerSlots, X, other_player

# Rows, columns, diagonals. Scan order decides ties on impossible boards.
WINNING_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


class RuleError(Exception):
    """A move the rules do not allow. The message is shown to the caller."""


class InvalidPosition(RuleError):
    pass


class CellOccupied(RuleError):
    pass


class GameOver(RuleError):
    pass


def create_game(game_id: str, players: Optional[PlayerSlots] = None, now: Optional[float] = None) -> GameState:
    return GameState(
        id=game_id,
        board=(None,) * BOARD_SIZE,
        current_player=X,
        created_at=time.time() if now is None else now,
        players=players,
    )


def evaluate(state: GameState) -> Optional[str]:
    """Return the symbol holding a full line, or None."""
    board = state.board
    for a, b, c in WINNING_LINES:
        if board[a] is not None and board[a] == board[b] == board[c]:
            return board[a]
    return None


def is_full(state: GameState) -> bool:
    return all(cell is not None for cell in state.board)


def is_finished(state: GameState) -> bool:
    return evaluate(state) is not None or is_full(state)


def apply_move(state: GameState, position) -> GameState:
    """Place the current player's mark at `position` and pass the turn.

    Raises InvalidPosition, CellOccupied or GameOver. `state` is left as is.
    """
    # JSON clients may send 1.0 for 1; bool is an int subclass but never a board index
    if isinstance(position, float) and position.is_integer():
        position = int(position)
    if not isinstance(position, int) or isinstance(position, bool):
        raise InvalidPosition('Position must be an integer')
    if position < 0 or position >= BOARD_SIZE:
        raise InvalidPosition('Position must be between 0 and 8')
    if state.board[position] is not None:
        raise CellOccupied('Position is already occupied')
    if is_finished(state):
        raise GameOver('Game is already over')

    board = list(state.board)
    board[position] = state.current_player
    return GameState(
        id=state.id,
        board=tuple(board),
        current_player=other_player(state.current_player),
        created_at=state.created_at,
        players=state.players,
    )
