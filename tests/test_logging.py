import socket

import pytest

from instance_channel.common import config
from instance_channel.common import log as console
from instance_channel.common.syslog import LOG_ERROR, LOG_WARN


@pytest.fixture
def syslog_listener(monkeypatch):
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind(("127.0.0.1", 0))
    s.settimeout(2.0)

    monkeypatch.setattr(config, "SYSLOG_ENABLED", True)
    monkeypatch.setattr(config, "SYSLOG_HOST", "127.0.0.1")
    monkeypatch.setattr(config, "SYSLOG_PORT", s.getsockname()[1])
    try:
        yield s
    finally:
        s.close()


def test_syslog_datagram(syslog_listener):
    LOG_WARN(
        "STALE_DESCRIPTOR",
        node_id="app-42-1",
        event="STALE_DESCRIPTOR",
        addr=("127.0.0.1", 5000),
        attempt=2,
    )

    data, _ = syslog_listener.recvfrom(65535)
    msg = data.decode("utf-8")

    # local0 * 8 + warning
    assert msg.startswith("<132>1 ")
    assert " app-42-1 instance-channel - - - " in msg
    assert "event=STALE_DESCRIPTOR" in msg
    assert "addr=127.0.0.1:5000" in msg
    assert "attempt=2" in msg


def test_syslog_error_severity(syslog_listener):
    LOG_ERROR("ELECTION_FAILED", node_id="n1", event="ELECTION_FAILED")

    data, _ = syslog_listener.recvfrom(65535)
    assert data.startswith(b"<131>1 ")


def test_syslog_disabled_sends_nothing(monkeypatch):
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind(("127.0.0.1", 0))
    s.settimeout(0.3)
    monkeypatch.setattr(config, "SYSLOG_ENABLED", False)
    monkeypatch.setattr(config, "SYSLOG_PORT", s.getsockname()[1])
    try:
        LOG_WARN("X", node_id="n1")
        with pytest.raises(socket.timeout):
            s.recvfrom(65535)
    finally:
        s.close()


def test_console_line_format(capsys, monkeypatch):
    monkeypatch.setattr(console, "LOG_LEVEL", "INFO")

    console.log("client", "app-42-1", "CONNECTION_LOST", level="WARN", addr=("127.0.0.1", 5000))

    out = capsys.readouterr().out
    assert "role=client id=app-42-1 lvl=WARN event=CONNECTION_LOST" in out
    assert "addr=127.0.0.1:5000" in out


def test_console_level_filter(capsys, monkeypatch):
    monkeypatch.setattr(console, "LOG_LEVEL", "WARN")

    console.log("server", "n1", "SESSION_MESSAGE", level="DEBUG")
    console.log("server", "n1", "LISTEN", level="OK")
    console.log("server", "n1", "ACCEPT_FAIL", level="ERROR")

    out = capsys.readouterr().out
    assert "SESSION_MESSAGE" not in out
    assert "LISTEN" not in out
    assert "ACCEPT_FAIL" in out
