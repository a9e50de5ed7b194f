import argparse
import socket
import sys

from dnslib import DNSError, DNSRecord

from backend.src.logger import get_logger
from shared.proto import DNS_PORT, MAX_DATAGRAM

log = get_logger("probe")


def query(name: str, server: str, port: int = DNS_PORT, qtype: str = "A", timeout: float = 3.0) -> DNSRecord:
    """Send one question to ``server`` and return the parsed reply."""
    q = DNSRecord.question(name, qtype)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.settimeout(timeout)
        s.sendto(q.pack(), (server, port))
        data, _ = s.recvfrom(MAX_DATAGRAM)
    return DNSRecord.parse(data)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="wfc-dns-probe", description="Send a DNS query through a running proxy.")
    parser.add_argument("name", help="Name to look up, e.g. conntest.nintendowifi.net")
    parser.add_argument("--server", default="127.0.0.1", help="Proxy address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=DNS_PORT, help=f"Proxy port (default: {DNS_PORT})")
    parser.add_argument("--qtype", default="A", help="Record type (default: A)")
    parser.add_argument("--timeout", type=float, default=3.0, help="Seconds to wait for the reply")
    args = parser.parse_args(argv)

    try:
        resp = query(args.name, args.server, args.port, args.qtype, args.timeout)
    except socket.timeout:
        log.error("No response from %s:%s after %.1fs", args.server, args.port, args.timeout)
        return 1
    except OSError as e:
        log.error("Query failed: %s", e)
        return 1
    except DNSError as e:
        log.error("Malformed response: %s", e)
        return 1
    print(resp)
    return 0


if __name__ == "__main__":
    sys.exit(main())
