import os
import sys
import pytest

# Ensure the backend root (containing the `tictactoe` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tictactoe import create_app, registry, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:5173']
    REAPER_INTERVAL_SEC = 60
    STALE_GAME_SEC = 30 * 60
    GAME_ID_LENGTH = 6
    CHAT_MAX_LENGTH = 500


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    registry.remove_all()
    yield application
    registry.remove_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def _connect(flask_app, namespace):
    return socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=namespace
    )


@pytest.fixture()
def sio_client(flask_app):
    test_client = _connect(flask_app, '/ws')
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def lobby_client(flask_app):
    test_client = _connect(flask_app, '/lobby')
    yield test_client
    if test_client.is_connected('/lobby'):
        test_client.disconnect(namespace='/lobby')


@pytest.fixture()
def connect(flask_app):
    """Factory for extra Socket.IO clients, disconnected after the test."""
    opened = []

    def _open(namespace='/ws'):
        test_client = _connect(flask_app, namespace)
        opened.append((test_client, namespace))
        return test_client

    yield _open
    for test_client, namespace in opened:
        if test_client.is_connected(namespace):
            test_client.disconnect(namespace=namespace)


def messages(test_client, namespace='/ws', type_=None):
    """Drain received 'update' pushes, optionally keeping one event type."""
    payloads = [pkt['args'][0] for pkt in test_client.get_received(namespace) if pkt['name'] == 'update']
    if type_ is not None:
        payloads = [p for p in payloads if p['type'] == type_]
    return payloads
