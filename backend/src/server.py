import logging
import selectors
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from backend.src.dispatcher import UpstreamDispatcher, UpstreamTarget
from backend.src.errors import DispatchError, RelayError, WaitError
from backend.src.listener import Listener
from backend.src.logger import get_logger
from backend.src.sessions import Session, SessionTable
from shared.proto import MAX_DATAGRAM, SESSION_TTL, describe_query
from shared.utils import format_addr

log = get_logger("server")


class ProxyState(Enum):
    STOPPED = auto()
    RUNNING = auto()


@dataclass
class ProxyStats:
    queries: int = 0
    replies: int = 0
    evicted: int = 0
    dropped: int = 0


class DNSProxy:
    """
    Single-threaded relay between the device-facing Listener and the upstream resolver.

    Every query gets its own upstream socket (a Session). Each iteration of the loop
    reaps stale sessions, waits for readiness, then services either one new query
    or one upstream reply. Nothing else runs between iterations, so the session
    table needs no locking.
    """
    def __init__(
        self,
        listener: Listener,
        target: UpstreamTarget,
        ttl: float = SESSION_TTL,
        select_timeout: Optional[float] = 1.0,
        bufsize: int = MAX_DATAGRAM,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.listener = listener
        self.target = target
        self.select_timeout = select_timeout
        self.bufsize = bufsize
        self.clock = clock
        self.selector = selectors.DefaultSelector()
        self.sessions = SessionTable(self.selector, ttl=ttl)
        self.dispatcher = UpstreamDispatcher(target, clock=clock)
        self.stats = ProxyStats()
        self.state = ProxyState.STOPPED
        self._stop_requested = False
        self.selector.register(listener.sock, selectors.EVENT_READ, None)

    def readiness_set(self):
        return [key.fileobj for key in self.selector.get_map().values()]

    def serve_forever(self):
        self.state = ProxyState.RUNNING
        self._stop_requested = False
        log.info("Relaying %s -> %s", format_addr(self.listener.address), self.target)
        try:
            while not self._stop_requested:
                self.run_once()
        finally:
            self.state = ProxyState.STOPPED

    def stop(self):
        self._stop_requested = True

    def close(self):
        self.sessions.close_all()
        self.selector.close()
        self.listener.close()
        self.state = ProxyState.STOPPED

    def run_once(self):
        evicted = self.sessions.reap(self.clock())
        self.stats.evicted += len(evicted)

        try:
            events = self.selector.select(timeout=self.select_timeout)
        except OSError as e:
            raise WaitError(f"Failed to select socket: {e}") from e
        if not events:
            return

        ready = [key.fileobj for key, _ in events]
        if self.listener.sock in ready:
            self._serve_client()
            return

        for sock in ready:
            session = self.sessions.find_by_socket(sock)
            if session is not None:
                self._serve_reply(session)
                return
        log.debug("Readable socket has no session, skipping")

    def _serve_client(self):
        try:
            payload, client_addr = self.listener.receive()
        except OSError as e:
            # e.g. ICMP unreachable from an earlier reply to this client
            log.debug("Listener receive failed: %s", e)
            return
        self.stats.queries += 1
        log.debug("Received %d bytes from %s", len(payload), format_addr(client_addr))
        if log.isEnabledFor(logging.DEBUG):
            log.debug("Query %s", describe_query(payload))

        try:
            session = self.dispatcher.dispatch(payload, client_addr)
        except DispatchError as e:
            self.stats.dropped += 1
            log.warning("Dropping query from %s: %s", format_addr(client_addr), e)
            return
        self.sessions.insert(session)

    def _serve_reply(self, session: Session):
        try:
            self._relay(session)
        except RelayError as e:
            self.stats.dropped += 1
            log.warning("%s", e)
        finally:
            self.sessions.remove(session)

    def _relay(self, session: Session):
        client = format_addr(session.client_addr)
        try:
            reply = session.sock.recv(self.bufsize)
        except OSError as e:
            raise RelayError(f"No reply for {client}: {e}") from e

        log.debug("Reply %d bytes to %s", len(reply), client)
        try:
            self.listener.send(reply, session.client_addr)
        except OSError as e:
            raise RelayError(f"Failed to send data to {client}: {e}") from e
        self.stats.replies += 1
