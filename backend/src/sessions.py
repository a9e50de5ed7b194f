import selectors
import socket
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from backend.src.logger import get_logger
from shared.proto import SESSION_TTL
from shared.utils import format_addr

log = get_logger("sessions")


@dataclass(eq=False)
class Session:
    """One client query waiting for its upstream reply."""
    sock: socket.socket
    client_addr: Tuple[str, int]
    created: float
    closed: bool = field(default=False, repr=False)

    def age(self, now: float) -> float:
        return now - self.created

    def close(self):
        if not self.closed:
            self.closed = True
            self.sock.close()


class SessionTable:
    """
    Live sessions keyed by their upstream socket.

    When a selector is given, every inserted socket is registered for reading and
    unregistered on removal, so the selector always watches exactly the live sessions.
    """
    def __init__(self, selector: Optional[selectors.BaseSelector] = None, ttl: float = SESSION_TTL):
        self.selector = selector
        self.ttl = ttl
        self._sessions: Dict[socket.socket, Session] = {}

    def __len__(self):
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __contains__(self, session: Session):
        return self._sessions.get(session.sock) is session

    def insert(self, session: Session):
        self._sessions[session.sock] = session
        if self.selector is not None:
            self.selector.register(session.sock, selectors.EVENT_READ, session)

    def find_by_socket(self, sock) -> Optional[Session]:
        return self._sessions.get(sock)

    def remove(self, session: Session) -> bool:
        """Drop the session and close its socket. Returns False if it was already gone."""
        if self._sessions.get(session.sock) is not session:
            return False
        del self._sessions[session.sock]
        if self.selector is not None:
            self.selector.unregister(session.sock)
        session.close()
        return True

    def reap(self, now: float) -> List[Session]:
        stale = [s for s in self._sessions.values() if s.age(now) > self.ttl]
        for session in stale:
            log.debug("Closing connection to %s", format_addr(session.client_addr))
            self.remove(session)
        return stale

    def close_all(self):
        for session in list(self._sessions.values()):
            self.remove(session)
