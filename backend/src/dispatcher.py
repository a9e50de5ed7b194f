import socket
import time
from dataclasses import dataclass
from typing import Callable, Tuple

from backend.src.errors import DispatchError
from backend.src.logger import get_logger
from backend.src.sessions import Session
from shared.utils import format_addr

log = get_logger("dispatcher")


@dataclass(frozen=True)
class UpstreamTarget:
    host: str
    port: int

    @property
    def addr(self) -> Tuple[str, int]:
        return (self.host, self.port)

    def __str__(self):
        return format_addr(self.addr)


class UpstreamDispatcher:
    """
    Sends each client query to the upstream resolver from a fresh connected socket.
    The socket is handed to the returned Session, which owns it from then on.
    """
    def __init__(self, target: UpstreamTarget, clock: Callable[[], float] = time.monotonic):
        self.target = target
        self.clock = clock

    def dispatch(self, payload: bytes, client_addr) -> Session:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise DispatchError(f"Failed to create socket: {e}") from e
        try:
            sock.setblocking(False)
            sock.connect(self.target.addr)
            sock.send(payload)
        except OSError as e:
            sock.close()
            raise DispatchError(f"Failed to send data to {self.target}: {e}") from e
        log.debug("Sent %d bytes to %s", len(payload), self.target)
        return Session(sock, client_addr, self.clock())
