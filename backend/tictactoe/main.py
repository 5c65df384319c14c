from flask import Blueprint, current_app, jsonify
from tictactoe import broadcaster, registry
from tictactoe.services.broadcast import game_channel, game_closed_event

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the tic-tac-toe server!', 'games': len(registry)})

@main.route('/reset-all', methods=['POST'])
def reset_all():
    """Administrative reset: forget every game and close its channel."""
    removed = registry.remove_all()
    for game_id in removed:
        broadcaster.close_channel(game_channel(game_id), game_closed_event(game_id, 'reset'))
    current_app.logger.info(f"[reset-all] removed={len(removed)}")
    return jsonify({'success': True})
