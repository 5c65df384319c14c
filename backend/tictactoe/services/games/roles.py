from typing import Optional, Tuple

from tictactoe.models import GameState, PlayerSlots, SPECTATOR, O, X


class Forbidden(Exception):
    """The caller is not the player whose turn it is."""


def resolve_join(game: GameState, player_name: str) -> Tuple[GameState, str]:
    """Return the (possibly updated) game and the role for `player_name`.

    A returning name gets its old seat back; a new name takes the first free
    seat (X before O); anyone else watches. Existing claims are never replaced.
    """
    slots = game.players or PlayerSlots()
    if slots.x == player_name:
        return game, X
    if slots.o == player_name:
        return game, O
    for symbol in (X, O):
        if slots.slot(symbol) is None:
            claimed = GameState(
                id=game.id,
                board=game.board,
                current_player=game.current_player,
                created_at=game.created_at,
                players=slots.claim(symbol, player_name),
            )
            return claimed, symbol
    return game, SPECTATOR


def authorize_move(game: GameState, player_name: Optional[str]) -> None:
    # Anonymous callers and games without names may always move
    if not player_name or game.players is None:
        return
    if game.players.slot(game.current_player) != player_name:
        raise Forbidden('Not your turn')
