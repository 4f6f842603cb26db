import os
import sys
import random
from decimal import Decimal
import pytest
from flask import g

# Ensure the backend root (containing the `arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arena import create_app, db, socketio, get_arena


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ALLOWED_ORIGINS = '*'
    STARTING_BALANCE = Decimal('1337.50')
    HOUSE_FEE_RATE = Decimal('0.10')
    FORFEIT_ON_DISCONNECT = True


class RecordingChannel:
    """Stand-in for a socket: keeps everything sent to it."""

    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, event, payload):
        self.sent.append((event, payload))

    def events(self, name=None):
        return [p for e, p in self.sent if name is None or e == name]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    # HTTP and Socket.IO requests reuse the fixture's long-lived app context,
    # so clear Flask-Login's per-request user cache as a fresh context would.
    open_request_context = application.request_context

    def _request_context(environ):
        g.pop('_login_user', None)
        return open_request_context(environ)

    application.request_context = _request_context

    with application.app_context():
        # Ensure models are imported so tables are created
        import arena.models  # noqa: F401
        db.create_all()
        # Deterministic hangman words
        get_arena(application).registry.rng = random.Random(7)
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login(flask_app):
    """Give each player their own cookie jar: returns (client, user dict).

    With a username the player registers; without one they get a session identity.
    """
    def _login(username=None):
        http = flask_app.test_client()
        if username:
            res = http.post('/api/users', json={'username': username, 'nickname': username.title()})
            assert res.status_code == 201
            return http, res.get_json()
        res = http.post('/api/session')
        assert res.status_code == 201
        return http, res.get_json()['user']
    return _login


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def arena(flask_app):
    return get_arena(flask_app)


@pytest.fixture()
def make_player(arena):
    def _make(balance=None):
        user = arena.repo.create_user(
            username=f"p{len(created)}_{random.randint(0, 10**9)}",
            nickname=f"P{len(created)}",
        )
        if balance is not None:
            arena.repo.set_balance(user, Decimal(balance))
        arena.repo.commit()
        created.append(user)
        return user
    created = []
    return _make


@pytest.fixture()
def paired_match(arena, make_player):
    """Start a match between a creator and a joiner, both routed to recording channels.

    Returns (match, creator, joiner, channels) where channels maps player id -> RecordingChannel.
    """
    def _start(game_type, stake='10'):
        creator = make_player()
        joiner = make_player()
        channels = {}
        for player in (creator, joiner):
            channels[player.id] = RecordingChannel()
            arena.presence.connect(f"conn-{player.id}", player.id, channels[player.id])
        match, paired = arena.matchmake(game_type, stake, creator.id)
        assert not paired
        match, paired = arena.matchmake(game_type, stake, joiner.id)
        assert paired
        return match, creator, joiner, channels
    return _start
