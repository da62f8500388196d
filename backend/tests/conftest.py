import os
import random
import sys

import pytest

# Ensure the backend root (containing the `partyboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from partyboard.errors import StoreError
from partyboard.extensions import build_services
from partyboard.game.service import RoomRegistry
from partyboard.game.settings import SettingsService
from partyboard.game.spaces import CustomSpaceService
from partyboard.server import create_app
from partyboard.store import MemoryStore


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    CORS_ORIGINS = '*'
    ADMIN_TOKEN = 'test-admin-token'
    TRUST_PROXY_HEADERS = False
    REDIS_URL = ''
    DATABASE_URL = ''
    LOG_LEVEL = 'DEBUG'
    SOCKETIO_ASYNC_MODE = 'threading'
    ROOM_TTL_SEC = 4 * 3600
    VOTE_TTL_SEC = 300
    SWEEP_INTERVAL_SEC = 0
    MIN_PLAYERS = 2
    ROOM_CODE_ATTEMPTS = 10
    DEFAULT_AGE_RATING = 'ALL'


def config_dict(config_class=TestConfig) -> dict:
    return {k: getattr(config_class, k) for k in dir(config_class) if k.isupper()}


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyStore(MemoryStore):
    """MemoryStore that fails chosen operations once `failing` names them."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.failing:
            raise StoreError(f'{op} unavailable')

    def get(self, key):
        self._check('get')
        return super().get(key)

    def set(self, key, value):
        self._check('set')
        super().set(key, value)

    def setex(self, key, seconds, value):
        self._check('setex')
        super().setex(key, seconds, value)

    def smembers(self, key):
        self._check('smembers')
        return super().smembers(key)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture()
def settings_service(store):
    return SettingsService(store)


@pytest.fixture()
def spaces_service(store):
    return CustomSpaceService(store)


@pytest.fixture()
def registry(store, settings_service, spaces_service):
    return RoomRegistry(store, settings_service, spaces_service)


@pytest.fixture()
def services(store):
    return build_services(config_dict(), store=store, rng=random.Random(7))


@pytest.fixture()
def orchestrator(services):
    return services.orchestrator


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig, store=MemoryStore(), rng=random.Random(7))


@pytest.fixture()
def flask_app(app_and_socketio):
    application, _ = app_and_socketio
    yield application
    application.extensions['partyboard'].close()


@pytest.fixture()
def socketio(app_and_socketio):
    return app_and_socketio[1]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app, socketio):
    clients = []

    def make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield make

    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass
