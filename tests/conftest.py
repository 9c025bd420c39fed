import pytest
from flask import Flask
from flask.sessions import SecureCookieSession

from sessionmemo.config import MemoSettings, init_app
from sessionmemo.store import ID_KEY, SessionStore

ENV_NAMES = (
    "SESSIONMEMO_BACKEND",
    "SESSIONMEMO_FILE_DIR",
    "SESSIONMEMO_FALLBACK_DIR",
    "SESSIONMEMO_FORCE_COMPUTE",
    "SESSIONMEMO_COOKIE_NAME",
)

class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def app(tmp_path):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config.update(SECRET_KEY="test-secret", TESTING=True)
    init_app(app)
    return app

@pytest.fixture
def session_dir(tmp_path):
    directory = tmp_path / "sessions"
    directory.mkdir()
    return directory

@pytest.fixture
def make_fs_app(tmp_path):
    def make(**config):
        app = Flask(__name__, root_path=str(tmp_path), instance_path=str(tmp_path / "instance"))
        app.config.update(SECRET_KEY="test-secret", TESTING=True, SESSIONMEMO_BACKEND="filesystem")
        app.config.update(config)
        init_app(app)
        return app
    return make

@pytest.fixture
def fs_app(make_fs_app, session_dir):
    return make_fs_app(SESSIONMEMO_FILE_DIR=str(session_dir))

#
# A store detached from any request: a plain cookie session dict with a fixed
# session id, so tests can switch ids to simulate a new session episode.
#
@pytest.fixture
def make_store(clock):
    def make(sid: str = "abc123", data: dict | None = None) -> SessionStore:
        session = SecureCookieSession(data or {})
        session[ID_KEY] = sid
        return SessionStore(session=session, settings=MemoSettings(), clock=clock)
    return make

@pytest.fixture
def store(make_store):
    return make_store()
