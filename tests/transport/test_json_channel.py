from __future__ import annotations

import socket
import threading

import pytest

from autotest_kernel.transport.json_channel import (
    ChannelClosedError,
    ChannelError,
    ChannelProtocolError,
    JsonChannel,
    WirePayloadTooLargeError,
    build_channel_pair,
)


def test_request_blocks_until_peer_answers() -> None:
    parent, worker = build_channel_pair()
    seen: list[dict[str, object]] = []

    def _backend() -> None:
        message = parent.read_json()
        seen.append(message)
        parent.send_json({"ret": message["function"] == "snapshots"})

    thread = threading.Thread(target=_backend)
    thread.start()
    try:
        response = worker.request({"cmd": "backend_can_handle", "function": "snapshots"})
    finally:
        thread.join(timeout=2)
        parent.close()
        worker.close()

    assert response == {"ret": True}
    assert seen == [{"cmd": "backend_can_handle", "function": "snapshots"}]


def test_records_split_across_reads_are_reassembled() -> None:
    left, right = socket.socketpair()
    channel = JsonChannel(right)
    try:
        left.sendall(b'{"cmd":"a"}\n{"cm')
        assert channel.read_json() == {"cmd": "a"}
        left.sendall(b'd":"b"}\n')
        assert channel.read_json() == {"cmd": "b"}
    finally:
        left.close()
        channel.close()


def test_handshake_line_and_clean_eof() -> None:
    parent, worker = build_channel_pair()
    parent.send_line("start")
    parent.close()

    assert worker.read_line() == b"start"
    # Clean EOF between records is not an error for line reads.
    assert worker.read_line() is None
    with pytest.raises(ChannelClosedError):
        worker.read_json()
    worker.close()


def test_eof_inside_a_record_is_fatal() -> None:
    left, right = socket.socketpair()
    channel = JsonChannel(right)
    left.sendall(b'{"cmd":')
    left.close()
    with pytest.raises(ChannelClosedError):
        channel.read_json()
    channel.close()


def test_non_object_record_is_rejected() -> None:
    left, right = socket.socketpair()
    channel = JsonChannel(right)
    left.sendall(b"[1, 2]\nnot json\n")
    with pytest.raises(ChannelProtocolError):
        channel.read_json()
    with pytest.raises(ChannelProtocolError):
        channel.read_json()
    left.close()
    channel.close()


def test_oversized_records_are_rejected_both_ways() -> None:
    left, right = socket.socketpair()
    channel = JsonChannel(right, max_payload_bytes=16)
    with pytest.raises(WirePayloadTooLargeError):
        channel.send_json({"cmd": "x" * 64})
    left.sendall(b"x" * 64)
    with pytest.raises(WirePayloadTooLargeError):
        channel.read_line()
    left.close()
    channel.close()


def test_write_after_close_raises_channel_error() -> None:
    parent, worker = build_channel_pair()
    worker.close()
    with pytest.raises(ChannelError):
        worker.send_json({"cmd": "tests_done"})
    parent.close()


def test_write_to_vanished_peer_raises_channel_error() -> None:
    parent, worker = build_channel_pair()
    parent.close()
    with pytest.raises(ChannelError):
        # First write may still succeed on some kernels; the second hits EPIPE.
        for _ in range(2):
            worker.send_json({"cmd": "backend_stop_vm"})
    worker.close()
