"""
Shared pytest fixtures for the proxy tests.

- FakeClock: deterministic time for session ageing
- upstream: a scripted UDP "resolver" on 127.0.0.1 that the test drives by hand
- proxy: a DNSProxy bound to an ephemeral port and pointed at ``upstream``
- make_client: UDP sockets playing the role of consoles
"""

import socket

import pytest
from dnslib import DNSRecord

from backend.src.dispatcher import UpstreamTarget
from backend.src.listener import Listener
from backend.src.server import DNSProxy

LOOPBACK = "127.0.0.1"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def udp_socket(timeout: float = 2.0) -> socket.socket:
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind((LOOPBACK, 0))
    s.settimeout(timeout)
    return s


def dns_query(name: str = "conntest.nintendowifi.net", qtype: str = "A") -> bytes:
    return DNSRecord.question(name, qtype).pack()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    s = udp_socket()
    yield s
    s.close()


@pytest.fixture
def make_client():
    sockets = []

    def factory(timeout: float = 2.0):
        s = udp_socket(timeout)
        sockets.append(s)
        return s

    yield factory
    for s in sockets:
        s.close()


@pytest.fixture
def proxy(upstream, clock):
    listener = Listener(LOOPBACK, 0).open()
    target = UpstreamTarget(*upstream.getsockname())
    p = DNSProxy(listener, target, select_timeout=0.5, clock=clock)
    yield p
    p.close()
