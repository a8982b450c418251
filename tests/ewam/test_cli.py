"""Unit tests for argument parsing and settings assembly."""

from __future__ import annotations

import asyncio
import socket

import pytest

from ewam import __version__
from ewam.cli import build_settings, main, parse_args, run

pytestmark = pytest.mark.unit


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.host == "localhost"
        assert args.port == 12345
        assert args.scenario == "melbourne"
        assert args.interval == 1000
        assert args.reconnect_interval == 5
        assert not (args.server or args.test or args.no_reconnect or args.verbose)
        assert args.message == "Hello World"
        assert args.serve_scenario is None

    def test_short_flags(self):
        args = parse_args(["-H", "10.0.0.5", "-p", "4000", "-s", "combat",
                           "-i", "500", "-r", "2", "-V", "-m", "ping"])
        assert (args.host, args.port, args.scenario) == ("10.0.0.5", 4000, "combat")
        assert (args.interval, args.reconnect_interval) == (500, 2)
        assert args.verbose
        assert args.message == "ping"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestBuildSettings:
    def test_client(self):
        s = build_settings(parse_args(["-s", "convoy", "-r", "3", "--no-reconnect"]))
        assert s.scenario == "convoy"
        assert s.reconnect_interval_ms == 3000
        assert s.reconnect_enabled is False
        assert not s.server_mode

    def test_server_ignores_scenario(self):
        s = build_settings(parse_args(["--server", "-s", "atlantis"]))
        assert s.server_mode
        assert s.scenario == "melbourne"

    def test_server_with_broadcast_scenario(self):
        s = build_settings(parse_args(["--server", "--serve-scenario", "combat"]))
        assert s.serve_scenario == "combat"

    def test_test_mode(self):
        s = build_settings(parse_args(["--test", "-m", "ping", "-i", "2000"]))
        assert s.test_mode
        assert s.test_message == "ping"
        assert s.interval_ms == 2000


class TestMain:
    """Exit codes for configuration and startup failures."""

    def test_invalid_scenario_exits_1(self):
        assert main(["-s", "atlantis"]) == 1

    def test_invalid_port_exits_1(self):
        assert main(["-p", "0"]) == 1

    def test_invalid_serve_scenario_exits_1(self):
        assert main(["--server", "--serve-scenario", "atlantis"]) == 1

    def test_server_bind_failure_exits_1(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("0.0.0.0", 0))
            s.listen(1)
            busy = s.getsockname()[1]
            settings = build_settings(parse_args(["--server", "-p", str(busy)]))
            assert asyncio.run(run(settings)) == 1
