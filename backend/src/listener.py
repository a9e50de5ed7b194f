import socket
from typing import Optional, Tuple

from backend.src.errors import BindError
from backend.src.logger import get_logger
from shared.proto import DNS_PORT, MAX_DATAGRAM
from shared.utils import format_addr

log = get_logger("listener")


class Listener:
    """
    The device-facing UDP socket. Receives queries from clients and sends replies back to them.
    """
    def __init__(self, bind_host: str = "0.0.0.0", port: int = DNS_PORT, bufsize: int = MAX_DATAGRAM):
        self.bind_host = bind_host
        self.port = port
        self.bufsize = bufsize
        self.sock: Optional[socket.socket] = None

    def open(self):
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise BindError(f"Failed to create socket: {e}") from e
        try:
            sock.bind((self.bind_host, self.port))
        except (OSError, OverflowError) as e:
            sock.close()
            raise BindError(f"Failed to bind to {self.bind_host}: {e}") from e
        self.sock = sock
        log.info("Listening on %s", format_addr(self.address))
        return self

    @property
    def address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    def fileno(self) -> int:
        return self.sock.fileno()

    def receive(self) -> Tuple[bytes, Tuple[str, int]]:
        # Oversized datagrams are cut to bufsize by the OS
        return self.sock.recvfrom(self.bufsize)

    def send(self, payload: bytes, addr: Tuple[str, int]) -> int:
        return self.sock.sendto(payload, addr)

    def close(self):
        if self.sock is not None:
            self.sock.close()
            self.sock = None
