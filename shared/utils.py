import socket
from typing import Tuple

from shared.proto import DEFAULT_UPSTREAM_PORT


def format_addr(addr) -> str:
    return f"{addr[0]}:{addr[1]}"


def parse_host_port(value: str, default_port: int = DEFAULT_UPSTREAM_PORT) -> Tuple[str, int]:
    """Split ``host[:port]``. A missing port means ``default_port``. Raises ValueError."""
    host, sep, port_s = value.rpartition(":")
    if not sep:
        host, port_s = value, ""
    if not host:
        raise ValueError(f"Invalid server address: {value!r}")
    if not port_s:
        return host, default_port
    try:
        port = int(port_s)
    except ValueError:
        raise ValueError(f"Invalid server port: {port_s!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Invalid server port: {port_s!r}")
    return host, port


def resolve_ipv4(host: str, port: int) -> Tuple[str, int]:
    """Resolve once and keep the first IPv4 address returned. Raises OSError."""
    infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM)
    if not infos:
        raise OSError(f"no IPv4 address for {host}")
    return infos[0][4][0], infos[0][4][1]


def local_ip_for(target: Tuple[str, int]) -> str:
    """Local address the OS would use to reach ``target``. Nothing is sent."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.connect(target)
        return s.getsockname()[0]
