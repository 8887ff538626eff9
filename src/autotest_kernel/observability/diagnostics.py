from __future__ import annotations

import os
from pathlib import Path

from autotest_kernel.config.models import LoggingConfig
from autotest_kernel.observability.adapters.logging import (
    FanoutLogSink,
    JsonlLogSink,
    StdoutLogSink,
)
from autotest_kernel.observability.domain.logging import LEVELS, LogMessage


class Diagnostics:
    # Diagnostic log channel shared by the registry, the loop and the worker; every record carries the pid.
    def __init__(self, sink: object | None = None, *, level: str = "debug") -> None:
        if level not in LEVELS:
            raise ValueError(f"Diagnostics level must be one of {LEVELS}")
        self._sink = sink
        self._threshold = LEVELS.index(level)

    @property
    def sink(self) -> object | None:
        return self._sink

    def emit(self, level: str, message: str, **fields: object) -> LogMessage | None:
        if LEVELS.index(level) < self._threshold:
            return None
        record = LogMessage(level=level, message=message, fields={"pid": os.getpid(), **fields})
        emit = getattr(self._sink, "emit", None)
        if callable(emit):
            try:
                emit(record)
            except Exception:
                return record
        return record

    def diag(self, message: str, **fields: object) -> None:
        self.emit("debug", message, **fields)

    def info(self, message: str, **fields: object) -> None:
        self.emit("info", message, **fields)

    def warn(self, message: str, **fields: object) -> None:
        self.emit("warning", message, **fields)

    def modstart(self, message: str, **fields: object) -> None:
        self.emit("info", message, event="modstart", **fields)

    def close(self) -> None:
        close = getattr(self._sink, "close", None)
        if callable(close):
            close()


def build_diagnostics(config: LoggingConfig | None = None) -> Diagnostics:
    # Stdout is the default sink when no exporter is configured.
    config = config or LoggingConfig()
    sinks: list[object] = []
    for exporter in config.exporters:
        if exporter.kind == "stdout":
            sinks.append(StdoutLogSink())
            continue
        sinks.append(JsonlLogSink(Path(str(exporter.settings["path"]))))
    if not sinks:
        sinks.append(StdoutLogSink())
    sink: object = sinks[0] if len(sinks) == 1 else FanoutLogSink(sinks=sinks)
    return Diagnostics(sink, level=config.level)
