from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from autotest_kernel.observability.domain.logging import LogMessage


class LogSink(Protocol):
    def emit(self, message: LogMessage) -> None: ...


class StdoutLogSink:
    # One compact JSON object per line on stdout.
    def emit(self, message: LogMessage) -> None:
        print(json.dumps(log_to_dict(message), separators=(",", ":"), ensure_ascii=False), flush=True)


class JsonlLogSink:
    # File-backed structured log sink; every record is flushed so a killed worker leaves a complete log.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, message: LogMessage) -> None:
        payload = json.dumps(log_to_dict(message), separators=(",", ":"), ensure_ascii=False)
        self._file.write(payload + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()


@dataclass(slots=True)
class MemoryLogSink:
    messages: list[LogMessage] = field(default_factory=list)

    def emit(self, message: LogMessage) -> None:
        self.messages.append(message)

    def texts(self) -> list[str]:
        return [message.message for message in self.messages]


@dataclass(slots=True)
class FanoutLogSink:
    sinks: list[object]

    def emit(self, message: LogMessage) -> None:
        for sink in list(self.sinks):
            emit = getattr(sink, "emit", None)
            if not callable(emit):
                continue
            try:
                emit(message)
            except Exception:
                continue

    def close(self) -> None:
        for sink in list(self.sinks):
            close = getattr(sink, "close", None)
            if not callable(close):
                continue
            try:
                close()
            except Exception:
                continue


def log_to_dict(message: LogMessage) -> dict[str, object]:
    return {
        "level": message.level,
        "message": message.message,
        "timestamp": message.timestamp.isoformat().replace("+00:00", "Z"),
        "fields": message.fields,
    }
