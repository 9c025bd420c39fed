import os

import pytest
from flask import Flask

from sessionmemo.backend import FileSystemSessionInterface
from sessionmemo.config import EXTENSION_NAME, MemoSettings, as_bool, current_settings, init_app
from sessionmemo.errors import ConfigurationError


def test_defaults(app):
    settings = app.extensions[EXTENSION_NAME]

    assert settings == MemoSettings()


def test_reads_app_config(tmp_path):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config.update(
        SESSIONMEMO_FALLBACK_DIR="/srv/sessions",
        SESSIONMEMO_FORCE_COMPUTE=True,
        SESSION_COOKIE_NAME="sid",
    )

    settings = MemoSettings.from_app(app)

    assert settings.fallback_dir == "/srv/sessions"
    assert settings.force_compute is True
    assert settings.cookie_name == "sid"


def test_cookie_name_from_app_config(tmp_path, monkeypatch):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config.update(SESSIONMEMO_COOKIE_NAME="memo", SESSION_COOKIE_NAME="sid")

    assert MemoSettings.from_app(app).cookie_name == "memo"

    monkeypatch.setenv("SESSIONMEMO_COOKIE_NAME", "from-env")
    assert MemoSettings.from_app(app).cookie_name == "from-env"


def test_environment_overrides_app_config(tmp_path, monkeypatch):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config["SESSIONMEMO_FORCE_COMPUTE"] = False
    monkeypatch.setenv("SESSIONMEMO_FORCE_COMPUTE", "true")

    assert MemoSettings.from_app(app).force_compute is True


@pytest.mark.parametrize("value, expected", [
    ("1", True), ("true", True), (" Yes ", True), ("on", True),
    ("0", False), ("false", False), ("", False), (True, True), (None, False),
])
def test_as_bool(value, expected):
    assert as_bool(value) is expected


def test_unknown_backend(tmp_path):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config["SESSIONMEMO_BACKEND"] = "redis"

    with pytest.raises(ConfigurationError):
        init_app(app)


def test_filesystem_backend_defaults_to_instance_folder(tmp_path):
    app = Flask(__name__, root_path=str(tmp_path), instance_path=str(tmp_path / "instance"))
    app.config["SESSIONMEMO_BACKEND"] = "filesystem"

    init_app(app)

    assert isinstance(app.session_interface, FileSystemSessionInterface)
    assert app.session_interface.directory == os.path.join(str(tmp_path / "instance"), "sessions")


def test_current_settings_outside_app_context():
    assert current_settings() == MemoSettings()


def test_current_settings_without_init_app(tmp_path):
    app = Flask(__name__, root_path=str(tmp_path))
    app.config["SESSIONMEMO_FORCE_COMPUTE"] = "yes"

    with app.app_context():
        assert current_settings().force_compute is True
