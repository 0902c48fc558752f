import socket
import threading

import pytest

from instance_channel.common.config import ALIVE, CHECK, REQUEST
from instance_channel.common.events import PlainMessage, Request
from instance_channel.common.messages import FrameTooLarge, decode, encode, recv_frame, request_line
from instance_channel.server.session import Session


def run_session(payload: bytes, half_close=True, timeout=1.0):
    """Feed payload through a Session over a socketpair.

    Returns (emitted events, bytes replied).
    """
    events = []
    peer, conn = socket.socketpair()
    try:
        session = Session(conn, "peer", events.append, "test-node", timeout=timeout)
        t = threading.Thread(target=session.run)
        t.start()

        if payload:
            peer.sendall(payload)
        if half_close:
            peer.shutdown(socket.SHUT_WR)

        peer.settimeout(timeout + 1.0)
        reply = recv_frame(peer, timeout + 1.0)
        t.join(2.0)
        return events, reply
    finally:
        peer.close()


def test_decode_request_with_quoted_arguments():
    msg = decode(b"--request a 'b c' \"d e\"")
    assert msg.command == REQUEST
    assert msg.args == ["a", "b c", "d e"]


def test_decode_check():
    msg = decode(CHECK.encode())
    assert msg.command == CHECK
    assert msg.args == []


def test_decode_plain_text_keeps_raw():
    msg = decode(b"activate  window")
    assert msg.command is None
    assert msg.raw == "activate  window"
    assert msg.args == ["activate", "window"]


def test_decode_unbalanced_quotes_has_no_command():
    msg = decode(b"--request 'unterminated")
    assert msg.command is None
    assert msg.tokens == []


def test_request_line_quotes_paths():
    line = request_line(["/home/me/My Movie.avi", "it's"])
    assert decode(line.encode()).args == ["/home/me/My Movie.avi", "it's"]


def test_encode_variants():
    assert encode(None) == b""
    assert encode("zażółć") == "zażółć".encode("utf-8")
    assert encode(bytearray(b"x")) == b"x"


def test_recv_frame_rejects_oversize():
    a, b = socket.socketpair()
    try:
        a.sendall(b"x" * 64)
        a.shutdown(socket.SHUT_WR)
        with pytest.raises(FrameTooLarge):
            recv_frame(b, 1.0, limit=16)
    finally:
        a.close()
        b.close()


def test_session_answers_check():
    events, reply = run_session(b"--check")
    assert reply == ALIVE.encode()
    assert events == []


def test_session_emits_request():
    events, reply = run_session(b"--request a b c")
    assert reply == b""
    assert events == [Request(["a", "b", "c"])]


def test_session_emits_plain_message():
    events, _ = run_session(b"hello there")
    assert events == [PlainMessage("hello there")]


def test_session_ignores_empty_probe():
    events, reply = run_session(b"")
    assert events == []
    assert reply == b""


def test_session_drops_partial_frame():
    # sender never half-closes: the frame is never known to be complete
    events, _ = run_session(b"--request /movie.avi", half_close=False, timeout=0.3)
    assert events == []


def test_session_delivers_whitespace_only_text():
    events, _ = run_session(b"  \n")
    assert events == [PlainMessage("  \n")]
