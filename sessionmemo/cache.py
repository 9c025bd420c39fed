import logging
from collections.abc import Collection
from dataclasses import asdict, dataclass, is_dataclass, replace
from typing import Any, Callable

from sessionmemo.config import MemoSettings, current_settings
from sessionmemo.errors import ConfigurationError
from sessionmemo.store import DURATION_SUFFIX, SessionStore

logger = logging.getLogger(__name__)

WAS_COMPUTED = "_was-computed"

KEEP_PREFIX = object()

#
# Falsy in the loose sense: None, "", empty collections, False and zero are
# empty, and so is an object whose attributes form an empty mapping.
#
def is_empty(value: Any) -> bool:
    if value is None or isinstance(value, (bool, int, float, complex, Collection)):
        return not value
    if is_dataclass(value) and not isinstance(value, type):
        return not asdict(value)
    if hasattr(value, "__dict__"):
        return not vars(value)
    return not value

@dataclass(frozen=True)
class CacheKeyPolicy:
    prefix: str | None
    session_id: Callable[[], str | None]

    def require_prefix(self) -> str:
        if self.prefix is None:
            raise ConfigurationError("Session cache prefix cannot be None")
        return self.prefix

    def key(self) -> str:
        return f"{self.require_prefix()}:{self.session_id()}"

    def marker(self) -> str:
        return f"{self.require_prefix()}:{WAS_COMPUTED}"

    def is_sibling(self, key: str) -> bool:
        # a TTL shadow key belongs to the key it shadows
        base = key.removesuffix(DURATION_SUFFIX)
        return (
            key.startswith(self.require_prefix())
            and base != self.key()
            and not base.endswith(":" + WAS_COMPUTED)
        )

@dataclass(frozen=True)
class MemoOptions:
    force_compute: bool = False
    force_refresh: bool = False
    allow_nulls: bool = False

class MemoizedKeyCache:
    """Memoizes a computation under ``<prefix>:<session id>``.

    The cache is immutable: ``with_prefix``, ``force_compute``,
    ``force_refresh_if`` and ``allow_nulls`` each return a configured copy,
    so a flag set for one call never leaks into the next one::

        cache = MemoizedKeyCache(SessionStore()).with_prefix("user:profile")
        profile = cache.get_or(load_profile)
        profile = cache.force_refresh_if(lambda: profile_changed).get_or(load_profile)

    Alongside the value, ``<prefix>:_was-computed`` records that the
    computation already ran in this session, which stops it from running
    again even when its result was not stored.
    """

    def __init__(
        self,
        store: SessionStore,
        prefix: str | None = None,
        options: MemoOptions | None = None,
        settings: MemoSettings | None = None,
    ) -> None:
        self.store = store
        self.options = options if options is not None else MemoOptions()
        self.settings = settings if settings is not None else current_settings()
        self.policy = CacheKeyPolicy(prefix, store.get_id)

    def _copy(self, prefix: Any = KEEP_PREFIX, **changes) -> "MemoizedKeyCache":
        return MemoizedKeyCache(
            self.store,
            self.policy.prefix if prefix is KEEP_PREFIX else prefix,
            replace(self.options, **changes),
            self.settings,
        )

    def with_prefix(self, prefix: str | None) -> "MemoizedKeyCache":
        return self._copy(prefix=prefix)

    def force_compute(self, force: bool = True) -> "MemoizedKeyCache":
        return self._copy(force_compute=force)

    def force_refresh_if(self, predicate: Callable[[], Any]) -> "MemoizedKeyCache":
        """Evaluates ``predicate`` now; a truthy answer forces the next ``get_or`` to recompute."""
        if predicate():
            return self._copy(force_refresh=True)
        return self

    def allow_nulls(self, allow: bool = True) -> "MemoizedKeyCache":
        return self._copy(allow_nulls=allow)

    def key(self) -> str:
        return self.policy.key()

    def session(self) -> Any:
        return self.store.get(self.key())

    def session_id(self) -> str | None:
        return self.store.get_id()

    def invalidate_siblings(self) -> list[str]:
        """Removes keys left under this prefix by earlier session ids."""
        stale = [key for key in self.store.all() if self.policy.is_sibling(key)]
        for key in stale:
            self.store.unset(key)
        if stale:
            logger.debug("Invalidated %d stale keys under %s", len(stale), self.policy.prefix)
        return stale

    def get_or(self, computation: Callable[[], Any], invalidate_siblings: bool = True, ttl: float | None = None) -> Any:
        key = self.key()
        marker = self.policy.marker()

        if invalidate_siblings:
            self.invalidate_siblings()

        forced = self.options.force_compute or self.options.force_refresh or self.settings.force_compute

        if self.store.has(key) and not forced:
            logger.debug("Session cache hit for %s", key)
            return self.store.get(key)

        # Computed earlier in this session, possibly with an empty result that was not kept.
        if self.store.has(marker) and not forced:
            return self.store.get(key)

        result = computation()

        if self.options.allow_nulls or not is_empty(result):
            self.store.set(key, result, ttl=ttl)
            self.store.set(marker, True, ttl=ttl)
            logger.debug("Stored computed value for %s", key)
        else:
            logger.debug("Computed empty value for %s, nothing stored", key)

        return result

    def persist(self, computation: Callable[[], Any]) -> Any:
        key = self.key()
        if not self.store.has(key):
            self.store.set(key, computation())
        return self.store.get(key)

    def obtain(self) -> Any:
        return self.store.get(self.key())

    def overwrite(self, computation: Callable[[], Any]) -> Any:
        key = self.key()
        result = computation()
        self.store.set(key, result)
        return result

    def invalidate_if(self, predicate: Callable[[], Any]) -> "MemoizedKeyCache":
        key = self.key()
        if predicate():
            self.store.unset(key)
        return self
