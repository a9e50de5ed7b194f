import os

from backend.src.errors import ConfigError
from shared.proto import DEFAULT_UPSTREAM, DNS_PORT, MAX_DATAGRAM, SESSION_TTL


def _number(name: str, default, cast, allow_zero=False, maximum=None):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0 or (value == 0 and not allow_zero) or (maximum is not None and value > maximum):
        raise ConfigError(f"{name} out of range: {raw!r}")
    return value


class Config:
    """Settings read from the environment when instantiated. CLI flags override HOST and UPSTREAM_DNS."""

    def __init__(self):
        self.HOST = os.getenv("HOST", "0.0.0.0")
        # 0 asks the OS for a free port
        self.PORT = _number("PORT", DNS_PORT, int, allow_zero=True, maximum=65535)
        self.UPSTREAM_DNS = os.getenv("UPSTREAM_DNS", DEFAULT_UPSTREAM)
        self.SESSION_TTL = _number("SESSION_TTL", SESSION_TTL, float)
        self.SELECT_TIMEOUT = _number("SELECT_TIMEOUT", 1.0, float)
        self.BUFFER_SIZE = _number("BUFFER_SIZE", MAX_DATAGRAM, int)
