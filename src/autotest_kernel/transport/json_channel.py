from __future__ import annotations

import json
import socket

DEFAULT_MAX_PAYLOAD_BYTES = 16 * 1024 * 1024
_READ_CHUNK = 65536


class ChannelError(ConnectionError):
    # I/O failure on the backend channel; the backend is considered lost, nothing is retried.
    pass


class ChannelClosedError(ChannelError):
    # Peer closed the channel while a record was expected.
    pass


class WirePayloadTooLargeError(ChannelError):
    # Record exceeds max_payload_bytes before decode.
    pass


class ChannelProtocolError(ChannelError):
    # Record is not a JSON object.
    pass


class JsonChannel:
    # Newline-delimited JSON records over one end of a connected stream socket pair.
    # At most one request is outstanding: request() blocks until the answer arrives.
    def __init__(self, sock: socket.socket, *, max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES) -> None:
        if not isinstance(max_payload_bytes, int) or max_payload_bytes <= 0:
            raise ValueError("max_payload_bytes must be > 0")
        self._sock = sock
        self._max_payload_bytes = max_payload_bytes
        self._buffer = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        return self._sock.fileno()

    def send_line(self, text: str) -> None:
        if "\n" in text:
            raise ValueError("channel line must not contain a newline")
        self._write(text.encode("utf-8") + b"\n")

    def send_json(self, message: dict[str, object]) -> None:
        self._write(self.encode_record(message))

    def read_line(self) -> bytes | None:
        # Returns None on a clean EOF between records.
        while True:
            index = self._buffer.find(b"\n")
            if index >= 0:
                line = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                return line
            if len(self._buffer) > self._max_payload_bytes:
                raise WirePayloadTooLargeError("record exceeds max_payload_bytes")
            chunk = self._recv()
            if not chunk:
                if self._buffer:
                    raise ChannelClosedError("unexpected EOF while reading a record")
                return None
            self._buffer.extend(chunk)

    def read_json(self) -> dict[str, object]:
        line = self.read_line()
        if line is None:
            raise ChannelClosedError("channel closed while waiting for a record")
        return self.decode_record(line)

    def request(self, message: dict[str, object]) -> dict[str, object]:
        self.send_json(message)
        return self.read_json()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._sock.close()

    def encode_record(self, message: dict[str, object]) -> bytes:
        if not isinstance(message, dict):
            raise ChannelProtocolError("channel records must be mappings")
        try:
            payload = json.dumps(message, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ChannelProtocolError("channel record is not JSON serializable") from exc
        if len(payload) > self._max_payload_bytes:
            raise WirePayloadTooLargeError("record exceeds max_payload_bytes")
        return payload + b"\n"

    def decode_record(self, line: bytes) -> dict[str, object]:
        if len(line) > self._max_payload_bytes:
            raise WirePayloadTooLargeError("record exceeds max_payload_bytes")
        try:
            parsed = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ChannelProtocolError("invalid record json") from exc
        if not isinstance(parsed, dict):
            raise ChannelProtocolError("record must be a json object")
        return parsed

    def _write(self, payload: bytes) -> None:
        if self._closed:
            raise ChannelClosedError("channel is closed")
        try:
            self._sock.sendall(payload)
        except OSError as exc:
            raise ChannelError("failed to write record to channel") from exc

    def _recv(self) -> bytes:
        if self._closed:
            raise ChannelClosedError("channel is closed")
        try:
            return self._sock.recv(_READ_CHUNK)
        except OSError as exc:
            raise ChannelError("failed to read record from channel") from exc


def build_channel_pair(
    *, max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
) -> tuple[JsonChannel, JsonChannel]:
    # (parent end, worker end) of one connected AF_UNIX stream pair.
    parent_sock, worker_sock = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    return (
        JsonChannel(parent_sock, max_payload_bytes=max_payload_bytes),
        JsonChannel(worker_sock, max_payload_bytes=max_payload_bytes),
    )
