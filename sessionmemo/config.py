import logging
import os
from dataclasses import dataclass
from flask import Flask, current_app, has_app_context

from sessionmemo.backend import FileSystemSessionInterface
from sessionmemo.errors import ConfigurationError

logger = logging.getLogger(__name__)

EXTENSION_NAME = "sessionmemo"

DEFAULTS = {
    "SESSIONMEMO_BACKEND": "cookie",
    "SESSIONMEMO_FILE_DIR": None,
    "SESSIONMEMO_FALLBACK_DIR": None,
    "SESSIONMEMO_FORCE_COMPUTE": False,
}

TRUTHY = {"1", "true", "yes", "on"}

def as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return bool(value)

@dataclass(frozen=True)
class MemoSettings:
    backend: str = "cookie"
    file_dir: str | None = None
    fallback_dir: str | None = None
    force_compute: bool = False
    cookie_name: str = "session"

    #
    # Builds the settings for an app. Environment variables take precedence
    # over app.config.
    #
    @classmethod
    def from_app(cls, app: Flask) -> "MemoSettings":
        values = {}
        for name, default in DEFAULTS.items():
            value = os.environ.get(name, app.config.get(name, default))
            values[name] = value
        values["SESSIONMEMO_COOKIE_NAME"] = os.environ.get(
            "SESSIONMEMO_COOKIE_NAME",
            app.config.get("SESSIONMEMO_COOKIE_NAME", app.config.get("SESSION_COOKIE_NAME", "session")),
        )

        backend = str(values["SESSIONMEMO_BACKEND"]).lower()
        if backend not in ("cookie", "filesystem"):
            raise ConfigurationError(f"Unknown session backend {backend!r}")

        return cls(
            backend=backend,
            file_dir=values["SESSIONMEMO_FILE_DIR"],
            fallback_dir=values["SESSIONMEMO_FALLBACK_DIR"],
            force_compute=as_bool(values["SESSIONMEMO_FORCE_COMPUTE"]),
            cookie_name=str(values["SESSIONMEMO_COOKIE_NAME"]),
        )

def current_settings() -> MemoSettings:
    """Settings registered on the current app, or read fresh from its config."""
    if not has_app_context():
        return MemoSettings()
    settings = current_app.extensions.get(EXTENSION_NAME)
    if settings is None:
        settings = MemoSettings.from_app(current_app)
    return settings

def init_app(app: Flask) -> MemoSettings:
    settings = MemoSettings.from_app(app)

    if settings.backend == "filesystem":
        directory = settings.file_dir or os.path.join(app.instance_path, "sessions")
        app.session_interface = FileSystemSessionInterface(directory, cookie_name=settings.cookie_name)
        logger.info("Using filesystem sessions in %s", directory)

    app.extensions[EXTENSION_NAME] = settings
    return settings
