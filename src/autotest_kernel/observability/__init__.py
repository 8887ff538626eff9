from .adapters.logging import FanoutLogSink, JsonlLogSink, MemoryLogSink, StdoutLogSink
from .diagnostics import Diagnostics, build_diagnostics
from .domain.logging import LogMessage

__all__ = [
    "Diagnostics",
    "FanoutLogSink",
    "JsonlLogSink",
    "LogMessage",
    "MemoryLogSink",
    "StdoutLogSink",
    "build_diagnostics",
]
