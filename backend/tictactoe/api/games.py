from flask import Blueprint, jsonify, request, current_app
from tictactoe import broadcaster, registry
from tictactoe.models import PlayerSlots
from tictactoe.services.broadcast import LOBBY, game_channel, game_created_event, latest_state_event
from tictactoe.services.games.ids import generate_game_id
from tictactoe.services.games.roles import authorize_move, resolve_join
from tictactoe.services.games.rules import apply_move

MAX_NAME_LENGTH = 64

games = Blueprint('games', __name__)


def _clean_name(value):
    if not isinstance(value, str):
        return None
    name = value.strip()[:MAX_NAME_LENGTH]
    return name or None


def _publish_state(game_id):
    # Called after the commit, outside the game's lock. The event is built at
    # send time, so a publisher that lost a race still pushes the newest board
    broadcaster.publish_latest(game_channel(game_id), latest_state_event(registry, game_id))


@games.route('/create', methods=['POST'])
def create_game():
    """Create a game; a supplied playerName takes the X seat."""
    data = request.get_json(silent=True) or {}
    player_name = _clean_name(data.get('playerName'))
    length = int(current_app.config.get('GAME_ID_LENGTH', 6))
    game_id = generate_game_id(registry.exists, length=length)
    players = PlayerSlots(x=player_name) if player_name else None
    game = registry.create(game_id, players=players)
    current_app.logger.info(f"[create] game={game.id} x={player_name}")
    broadcaster.publish(LOBBY, game_created_event(game))
    return jsonify(game.to_dict())


@games.route('/join', methods=['POST'])
def join_game():
    data = request.get_json(silent=True) or {}
    game_id = data.get('gameId')
    player_name = _clean_name(data.get('playerName'))
    if not game_id or not player_name:
        return jsonify({'error': 'Game id and player name are required'}), 400

    outcome = {}

    def _join(current):
        updated, outcome['role'] = resolve_join(current, player_name)
        return updated

    game = registry.mutate(str(game_id), _join)
    role = outcome['role']
    current_app.logger.info(f"[join] game={game.id} player={player_name} role={role}")
    _publish_state(game.id)
    return jsonify({'gameState': game.to_dict(), 'role': role})


@games.route('/game/<string:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(registry.get(game_id).to_dict())


@games.route('/games', methods=['GET'])
def list_games():
    listed = sorted(registry.list(), key=lambda g: g.created_at)
    return jsonify([game.to_dict() for game in listed])


@games.route('/move', methods=['POST'])
def make_move():
    data = request.get_json(silent=True) or {}
    game_id = data.get('gameId')
    if not game_id:
        return jsonify({'error': 'Game id is required'}), 400
    position = data.get('position')
    player_name = _clean_name(data.get('playerName'))

    def _move(current):
        authorize_move(current, player_name)
        return apply_move(current, position)

    game = registry.mutate(str(game_id), _move)
    current_app.logger.info(f"[move] game={game.id} pos={position} player={player_name} next={game.current_player}")
    _publish_state(game.id)
    return jsonify(game.to_dict())
