import pytest
from typer.testing import CliRunner

from socks4_relay import __version__
from socks4_relay.cmd import cli
from socks4_relay.core.config import ServerConfig

runner = CliRunner()


def test_version():
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


@pytest.mark.parametrize(
    "option",
    [
        ["--dial-timeout=0"],
        ["--handshake-timeout=-1"],
        ["--accept-retry-delay=-0.5"],
    ],
)
def test_invalid_option_exits_before_binding(monkeypatch, option):
    def fail_run_server(*_args, **_kwargs):
        raise AssertionError("server must not start")

    monkeypatch.setattr(cli, "run_server", fail_run_server)
    result = runner.invoke(cli.app, ["serve", *option, "--no-log-file"])
    assert result.exit_code == 2


def test_serve_maps_options_onto_config(monkeypatch):
    calls = []

    def fake_run_server(host, port, config, *, ui):
        calls.append((host, port, config, ui))

    monkeypatch.setattr(cli, "run_server", fake_run_server)
    result = runner.invoke(
        cli.app,
        [
            "serve",
            "--host",
            "127.0.0.1",
            "--port",
            "1081",
            "--dial-timeout",
            "2.5",
            "--handshake-timeout",
            "0",
            "--allow-loopback",
            "--strict-empty",
            "--no-log-file",
        ],
    )

    assert result.exit_code == 0, result.output
    host, port, config, ui = calls[0]
    assert (host, port, ui) == ("127.0.0.1", 1081, False)
    assert config == ServerConfig(
        dial_timeout=2.5,
        handshake_timeout=None,
        allow_loopback=True,
        allow_empty_sessions=False,
    )
