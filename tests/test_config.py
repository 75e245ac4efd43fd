import pytest

from socks4_relay.core.config import ServerConfig


@pytest.mark.parametrize(
    "settings",
    [
        {"dial_timeout": 0},
        {"accept_retry_delay": -1.0},
        {"handshake_timeout": -1.0},
        {"handshake_timeout": 0},
        {"max_accept_backoff": -0.1},
        {"max_accept_failures": 0},
        {"expected_concurrency": -1},
        {"buffer_size": 0},
        {"poll_interval": 0},
    ],
)
def test_rejects_out_of_range_values(settings):
    with pytest.raises(ValueError):
        ServerConfig(**settings)


def test_handshake_timeout_can_be_disabled():
    assert ServerConfig(handshake_timeout=None).handshake_timeout is None


def test_defaults_are_valid():
    config = ServerConfig()
    assert config.dial_timeout > 0
    assert not config.allow_loopback
    assert config.allow_empty_sessions
