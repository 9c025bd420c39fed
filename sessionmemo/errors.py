class SessionMemoError(Exception):
    pass

#
# Raised when sessions cannot be used at all: the host reports them as
# disabled, the storage directory cannot be made writable, or a keyed cache
# operation runs without a prefix. Never caught internally.
#
class ConfigurationError(SessionMemoError):
    pass
