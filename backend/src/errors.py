class ProxyError(Exception):
    """Base class for everything the proxy raises on purpose."""


class FatalError(ProxyError):
    """The process cannot continue; the CLI reports it and exits with status 1."""


class ConfigError(FatalError):
    pass


class ResolveError(FatalError):
    pass


class BindError(FatalError):
    pass


class WaitError(FatalError):
    pass


class DispatchError(ProxyError):
    """A single query could not be sent upstream. The query is dropped."""


class RelayError(ProxyError):
    """A single reply could not be relayed. The session is dropped."""
