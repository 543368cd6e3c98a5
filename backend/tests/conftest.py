import os
import sys
import pytest

# Ensure the backend root (containing the `liveclass` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from liveclass import create_app, db, socketio
from liveclass.config import Config
from liveclass.services.live import SessionController, RoomStore
from liveclass.services.live.broadcast import RecordingEmitter


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    SCORING_MODE = 'ranked'
    AUTO_ADVANCE = False


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start=1_000_000.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def tick(self, ms):
        self.now += ms
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def emitter():
    return RecordingEmitter()


@pytest.fixture()
def controller(clock, emitter):
    return SessionController(store=RoomStore(), emitter=emitter, clock=clock)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import liveclass.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def plan(n, **overrides):
    tasks = []
    for i in range(n):
        task = {'prompt': f'  Question {i + 1}?  ', 'correctAnswer': f' answer{i + 1} '}
        task.update(overrides)
        tasks.append(task)
    return tasks


@pytest.fixture()
def make_plan():
    return plan
