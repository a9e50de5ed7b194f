import socket
from unittest.mock import patch

import pytest

from backend.src import cli
from backend.src.config import Config
from backend.src.errors import ConfigError, ResolveError
from backend.src.server import DNSProxy


@pytest.fixture
def no_listener():
    with patch("backend.src.cli.Listener") as listener_cls:
        yield listener_cls


def test_help_exits_zero(capsys, no_listener):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "--address" in out and "--bind" in out
    no_listener.assert_not_called()


@pytest.mark.parametrize(
    "argv",
    [["-a"], ["--bind"], ["--nope"], ["extra"], ["--verb"], ["--add", "x:1"], ["--bin", "1.2.3.4"]],
)
def test_bad_arguments_print_usage_and_exit_one(argv, capsys, no_listener):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert err.startswith("usage: wfc-dns-proxy")
    no_listener.assert_not_called()


def test_unresolvable_upstream_exits_before_binding(no_listener):
    with patch("shared.utils.socket.getaddrinfo", side_effect=socket.gaierror(-2, "Name or service not known")):
        assert cli.main(["-a", "nowhere.invalid"]) == 1
    no_listener.assert_not_called()


def test_bad_upstream_port_exits_one(no_listener):
    assert cli.main(["-a", "example.com:dns"]) == 1
    no_listener.assert_not_called()


def test_bad_environment_exits_one(monkeypatch, no_listener):
    monkeypatch.setenv("SESSION_TTL", "soon")
    assert cli.main([]) == 1


def test_defaults_come_from_config(monkeypatch):
    monkeypatch.setenv("UPSTREAM_DNS", "dns.example.net:5353")
    monkeypatch.setenv("HOST", "127.0.0.1")
    args = cli.apply_defaults(cli.build_parser().parse_args([]), Config())
    assert args.address == "dns.example.net:5353"
    assert args.bind == "127.0.0.1"
    assert args.verbose is False


def test_start_builds_a_running_proxy(monkeypatch, upstream):
    monkeypatch.setenv("PORT", "0")
    monkeypatch.setenv("SESSION_TTL", "2.5")
    host, port = upstream.getsockname()
    args = cli.build_parser().parse_args(["-a", f"{host}:{port}", "-b", "127.0.0.1"])

    proxy = cli.start(args, Config())
    try:
        assert isinstance(proxy, DNSProxy)
        assert proxy.target.addr == (host, port)
        assert proxy.sessions.ttl == 2.5
        assert proxy.listener.address[0] == "127.0.0.1"
    finally:
        proxy.close()


def test_main_runs_until_interrupted(monkeypatch, upstream, capsys):
    monkeypatch.setenv("PORT", "0")
    host, port = upstream.getsockname()

    with patch.object(DNSProxy, "serve_forever", side_effect=KeyboardInterrupt):
        assert cli.main(["-a", f"{host}:{port}", "-b", "127.0.0.1"]) == 0

    out = capsys.readouterr().out
    assert "WiiLink WFC DNS Proxy 1.0" in out
    assert "Primary DNS: 127.0.0.1" in out


def test_banner_failure_is_not_fatal(capsys):
    with patch("backend.src.cli.local_ip_for", side_effect=OSError("unreachable")):
        cli.print_local_ip(cli.UpstreamTarget("192.0.2.1", 1053))
    assert "Primary DNS" not in capsys.readouterr().out


def test_help_works_with_broken_environment(monkeypatch, capsys):
    monkeypatch.setenv("BUFFER_SIZE", "lots")
    with pytest.raises(SystemExit) as exc:
        cli.main(["-h"])
    assert exc.value.code == 0
    assert "--verbose" in capsys.readouterr().out


def test_flags_override_environment(monkeypatch):
    monkeypatch.setenv("UPSTREAM_DNS", "dns.example.net:5353")
    args = cli.apply_defaults(cli.build_parser().parse_args(["-a", "10.1.1.1"]), Config())
    assert args.address == "10.1.1.1"


def test_start_wraps_bad_address_as_config_error(no_listener):
    args = cli.build_parser().parse_args(["-a", "host:99999"])
    with pytest.raises(ConfigError, match="Invalid server port"):
        cli.start(cli.apply_defaults(args, Config()), Config())


def test_start_wraps_lookup_failure_as_resolve_error(no_listener):
    args = cli.apply_defaults(cli.build_parser().parse_args(["-a", "nowhere.invalid"]), Config())
    with patch("shared.utils.socket.getaddrinfo", side_effect=socket.gaierror(-2, "Name or service not known")):
        with pytest.raises(ResolveError, match="nowhere.invalid"):
            cli.start(args, Config())
    no_listener.assert_not_called()
