import logging
import os
import time
import uuid
from enum import Enum
from typing import Any, Callable
from flask import current_app, has_app_context, session as flask_session
from flask.sessions import NullSession, SessionInterface, SessionMixin

from sessionmemo.config import MemoSettings, current_settings
from sessionmemo.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Holds the session id for interfaces that do not carry one (Flask's cookie session).
ID_KEY = "_sessionmemo_id"
DURATION_SUFFIX = "__duration"

class SessionStatus(Enum):
    DISABLED = "disabled"
    NONE = "none"
    ACTIVE = "active"

def default_fallback_dir() -> str:
    root = current_app.root_path if has_app_context() else os.getcwd()
    return os.path.join(root, "tmp")

class SessionStore:
    """Facade over the session of the current request.

    Values may carry a time to live. The expiry timestamp is kept in a shadow
    key ``<key>__duration`` and checked lazily: an expired pair is removed the
    next time ``has`` or ``get`` looks at it.
    """

    def __init__(
        self,
        path: str | None = None,
        session: SessionMixin | None = None,
        interface: SessionInterface | None = None,
        settings: MemoSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session if session is not None else flask_session._get_current_object()
        if interface is None and has_app_context():
            interface = current_app.session_interface
        self._interface = interface
        self._settings = settings if settings is not None else current_settings()
        self._clock = clock

        status = self.get_status()
        if status is SessionStatus.DISABLED:
            raise ConfigurationError("Sessions are disabled for this app (is SECRET_KEY set?)")
        if status is SessionStatus.NONE:
            self.start(path)

    def has(self, key: str) -> bool:
        if self._expired(key):
            return False
        return key in self._session

    def get(self, key: str) -> Any:
        if self._expired(key):
            return None
        return self._session.get(key)

    def all(self) -> dict[str, Any]:
        return {key: value for key, value in self._session.items() if key != ID_KEY}

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._session[key] = value
        if ttl is not None:
            self._session[key + DURATION_SUFFIX] = self._clock() + ttl
        else:
            self.unset(key + DURATION_SUFFIX)

    def unset(self, key: str) -> None:
        if key in self._session:
            del self._session[key]

    def destroy(self) -> None:
        destroy = getattr(self._interface, "destroy_session", None)
        if destroy is not None:
            destroy(self._session)
        else:
            self._session.clear()
        logger.debug("Destroyed session")

    def get_status(self) -> SessionStatus:
        if isinstance(self._session, NullSession):
            return SessionStatus.DISABLED
        if self.get_id() is None:
            return SessionStatus.NONE
        return SessionStatus.ACTIVE

    def get_id(self) -> str | None:
        sid = getattr(self._session, "sid", None)
        if sid is None:
            sid = self._session.get(ID_KEY)
        return sid

    #
    # Starts a session on the host backend. When the backend cannot write to
    # its directory, the fallback directory (argument, SESSIONMEMO_FALLBACK_DIR,
    # then <app root>/tmp) is created and the start is retried exactly once.
    #
    def start(self, path: str | None = None) -> None:
        start = getattr(self._interface, "start_session", None)
        if start is None:
            self._session[ID_KEY] = uuid.uuid4().hex
            return

        try:
            start(self._session)
        except OSError as e:
            fallback = path or self._settings.fallback_dir or default_fallback_dir()
            logger.warning(
                "Session directory %s is not writable (%s), falling back to %s",
                getattr(self._interface, "directory", None), e, fallback,
            )
            try:
                os.makedirs(fallback, exist_ok=True)
                self._interface.directory = fallback
                start(self._session)
            except OSError as retry_error:
                raise ConfigurationError(f"Cannot store sessions in {fallback}") from retry_error

    def _expired(self, key: str) -> bool:
        expires_at = self._session.get(key + DURATION_SUFFIX)
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return False
        if self._clock() < expires_at:
            return False
        self.unset(key)
        self.unset(key + DURATION_SUFFIX)
        logger.debug("Session key %s expired", key)
        return True
