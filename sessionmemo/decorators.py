from functools import wraps
from typing import Callable

from sessionmemo.cache import MemoizedKeyCache
from sessionmemo.store import SessionStore

#
# Memoizes the wrapped function in the current session under
# "<prefix>:<session id>". Arguments are not part of the key, so only wrap
# functions whose result depends on the session alone (the current user's
# profile, their permissions, ...).
#
def session_memoized(prefix: str, allow_nulls: bool = False, invalidate_siblings: bool = True, ttl: float | None = None):
    def decorator(f: Callable):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            cache = MemoizedKeyCache(SessionStore()).with_prefix(prefix).allow_nulls(allow_nulls)
            return cache.get_or(lambda: f(*args, **kwargs), invalidate_siblings=invalidate_siblings, ttl=ttl)
        return decorated_function
    return decorator

#
# Fails the request with ConfigurationError before the view runs when the app
# cannot hold sessions, and starts one when the client has none yet.
#
def require_session(f: Callable):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        SessionStore()
        return f(*args, **kwargs)
    return decorated_function
