"""Server-side Flask sessions kept as one file per session id.

The cookie only carries the signed session id, the data itself lives in
``<directory>/<sid>`` encoded with the same tagged JSON Flask uses for its
cookie sessions.

Files are removed only when a session is destroyed. Files left behind by
abandoned or expired cookies stay in the directory until something outside
this module cleans it up.
"""
import logging
import os
import uuid
from flask import Flask, Request, Response
from flask.json.tag import TaggedJSONSerializer
from flask.sessions import SessionInterface, SessionMixin
from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.datastructures import CallbackDict

logger = logging.getLogger(__name__)

class FileSystemSession(CallbackDict, SessionMixin):
    def __init__(self, initial=None, sid: str | None = None) -> None:
        def on_update(self):
            self.modified = True

        super().__init__(initial, on_update)
        self.sid = sid
        self.new = False
        self.modified = False
        self.destroyed = False

class FileSystemSessionInterface(SessionInterface):
    serializer = TaggedJSONSerializer()
    session_class = FileSystemSession
    salt = "sessionmemo-sid"

    def __init__(self, directory: str, cookie_name: str | None = None) -> None:
        self.directory = directory
        self.cookie_name = cookie_name

    def get_cookie_name(self, app: Flask) -> str:
        return self.cookie_name or super().get_cookie_name(app)

    def get_signer(self, app: Flask) -> URLSafeTimedSerializer | None:
        if not app.secret_key:
            return None
        return URLSafeTimedSerializer(app.secret_key, salt=self.salt)

    def path_for(self, sid: str) -> str:
        return os.path.join(self.directory, sid)

    def load(self, sid: str) -> dict | None:
        if not sid.isalnum():
            return None
        try:
            with open(self.path_for(sid), encoding="utf-8") as f:
                return self.serializer.loads(f.read())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable session file for %s: %s", sid, e)
            return None

    def write(self, session: FileSystemSession) -> None:
        with open(self.path_for(session.sid), "w", encoding="utf-8") as f:
            f.write(self.serializer.dumps(dict(session)))
        session.modified = False

    #
    # Assigns a fresh id and writes the session file. Raises OSError when the
    # directory is missing or not writable; the session is left without an id
    # in that case so the caller can retry against another directory.
    #
    def start_session(self, session: FileSystemSession) -> None:
        session.sid = uuid.uuid4().hex
        try:
            self.write(session)
        except OSError:
            session.sid = None
            raise
        session.new = True
        session.modified = True
        session.destroyed = False
        logger.debug("Started session %s in %s", session.sid, self.directory)

    def destroy_session(self, session: FileSystemSession) -> None:
        if session.sid is not None:
            try:
                os.remove(self.path_for(session.sid))
            except FileNotFoundError:
                pass
        session.clear()
        session.sid = None
        session.destroyed = True

    def open_session(self, app: Flask, request: Request) -> FileSystemSession | None:
        signer = self.get_signer(app)
        if signer is None:
            return None

        cookie = request.cookies.get(self.get_cookie_name(app))
        if not cookie:
            return self.session_class()

        max_age = int(app.permanent_session_lifetime.total_seconds())
        try:
            sid = signer.loads(cookie, max_age=max_age)
        except BadSignature:
            return self.session_class()

        data = self.load(sid)
        if data is None:
            return self.session_class()
        return self.session_class(data, sid=sid)

    def save_session(self, app: Flask, session: FileSystemSession, response: Response) -> None:
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)
        secure = self.get_cookie_secure(app)
        samesite = self.get_cookie_samesite(app)
        httponly = self.get_cookie_httponly(app)

        if session.destroyed:
            response.delete_cookie(name, domain=domain, path=path, secure=secure, samesite=samesite, httponly=httponly)
            response.vary.add("Cookie")
            return

        if session.sid is None:
            if not session:
                return
            self.start_session(session)
        elif session.modified:
            self.write(session)

        if not (session.new or self.should_set_cookie(app, session)):
            return

        response.set_cookie(
            name,
            self.get_signer(app).dumps(session.sid),
            expires=self.get_expiration_time(app, session),
            httponly=httponly,
            domain=domain,
            path=path,
            secure=secure,
            samesite=samesite,
        )
        response.vary.add("Cookie")
