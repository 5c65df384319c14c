from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config
from tictactoe.services.broadcast import Broadcaster
from tictactoe.services.games.reaper import Reaper
from tictactoe.services.games.registry import Conflict, DuplicateId, NotFound, SessionRegistry
from tictactoe.services.games.roles import Forbidden
from tictactoe.services.games.rules import RuleError

socketio = SocketIO(async_mode=None)
registry = SessionRegistry()
broadcaster = Broadcaster()
reaper = Reaper(registry, broadcaster)


def _error(exc, status):
    return jsonify({'error': str(exc)}), status


def register_error_handlers(flask_app):
    flask_app.register_error_handler(NotFound, lambda exc: _error(exc, 404))
    flask_app.register_error_handler(Forbidden, lambda exc: _error(exc, 403))
    flask_app.register_error_handler(RuleError, lambda exc: _error(exc, 400))
    flask_app.register_error_handler(Conflict, lambda exc: _error(exc, 409))

    @flask_app.errorhandler(DuplicateId)
    def duplicate_id(exc):
        # Ids come from a generator that checks the registry; this is a bug
        flask_app.logger.error(f"[create] duplicate game id={exc.game_id}")
        return _error(exc, 500)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    broadcaster.logger = flask_app.logger
    reaper.init_app(flask_app)

    register_error_handlers(flask_app)

    # Import and register blueprints here
    from tictactoe.main import main
    flask_app.register_blueprint(main)

    from tictactoe.api.games import games
    flask_app.register_blueprint(games)

    # Importing here ensures the handlers bind to the initialized socketio instance
    from tictactoe.socketio_events import SocketIORooms, register_socketio_handlers
    register_socketio_handlers()
    broadcaster.rooms = SocketIORooms()

    reaper.start(flask_app)

    return flask_app
