import argparse
import sys

from backend.src.config import Config
from backend.src.dispatcher import UpstreamTarget
from backend.src.errors import ConfigError, FatalError, ResolveError
from backend.src.listener import Listener
from backend.src.logger import get_logger, set_verbose
from backend.src.server import DNSProxy
from shared.proto import DEFAULT_UPSTREAM
from shared.utils import local_ip_for, parse_host_port, resolve_ipv4

log = get_logger("cli")

VERSION_BANNER = (
    "WiiLink WFC DNS Proxy 1.0\n"
    "Copyright (c) 2024 mkwcat\n"
    "Source code: https://github.com/mkwcat/wwfc-dns-proxy\n"
)

DEVICE_BANNER = (
    "Go into your DS or Wii's connection settings and enter the following:\n"
    "Auto-obtain DNS: No\n"
    "Primary DNS: {ip}\n"
    "Secondary DNS: 0.0.0.0 (or 1.1.1.1)\n"
    "\n"
    "Server is now running. Don't close this window."
)


class UsageParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad input; this tool exits with 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\nFor help, run {self.prog} --help\n")


def build_parser() -> argparse.ArgumentParser:
    # Env defaults are filled in after parsing so --help works with a broken environment
    parser = UsageParser(
        prog="wfc-dns-proxy",
        description="Relay DNS queries from a DS or Wii to the WiiLink WFC DNS server.",
        allow_abbrev=False,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument(
        "-a", "--address", metavar="serverAddress",
        help=f"Server address (default: $UPSTREAM_DNS or {DEFAULT_UPSTREAM})",
    )
    parser.add_argument(
        "-b", "--bind", metavar="bindAddress",
        help="Bind address (default: $HOST or 0.0.0.0)",
    )
    return parser


def apply_defaults(args, config: Config):
    if args.address is None:
        args.address = config.UPSTREAM_DNS
    if args.bind is None:
        args.bind = config.HOST
    return args


def print_local_ip(target: UpstreamTarget):
    try:
        ip = local_ip_for(target.addr)
    except OSError as e:
        log.warning("Failed to get local address: %s", e)
        return
    print(DEVICE_BANNER.format(ip=ip), flush=True)


def start(args, config: Config) -> DNSProxy:
    """Resolve the upstream, bind the listener and build the proxy. Raises FatalError."""
    try:
        host, port = parse_host_port(args.address)
    except ValueError as e:
        raise ConfigError(str(e)) from e
    try:
        target = UpstreamTarget(*resolve_ipv4(host, port))
    except (OSError, UnicodeError) as e:
        raise ResolveError(f"Failed to resolve server address {host}: {e}") from e
    log.debug("Resolved %s to %s", host, target)

    listener = Listener(args.bind, config.PORT, config.BUFFER_SIZE).open()
    return DNSProxy(
        listener,
        target,
        ttl=config.SESSION_TTL,
        select_timeout=config.SELECT_TIMEOUT,
        bufsize=config.BUFFER_SIZE,
    )


def main(argv=None) -> int:
    print(VERSION_BANNER, flush=True)
    args = build_parser().parse_args(argv)
    set_verbose(args.verbose)
    try:
        config = Config()
    except FatalError as e:
        log.error("%s", e)
        return 1
    apply_defaults(args, config)

    try:
        proxy = start(args, config)
    except FatalError as e:
        log.error("%s", e)
        return 1

    print_local_ip(proxy.target)
    try:
        proxy.serve_forever()
    except KeyboardInterrupt:
        log.info("Server shutdown")
    except FatalError as e:
        log.error("%s", e)
        return 1
    finally:
        proxy.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
