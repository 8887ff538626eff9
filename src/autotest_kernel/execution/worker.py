from __future__ import annotations

import multiprocessing as mp
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass
from multiprocessing.process import BaseProcess
from types import FrameType

from pydantic import BaseModel, ConfigDict

from autotest_kernel.execution.context import SchedulerContext
from autotest_kernel.execution.runner import ExecutionLoop
from autotest_kernel.observability.diagnostics import Diagnostics
from autotest_kernel.transport.json_channel import (
    DEFAULT_MAX_PAYLOAD_BYTES,
    ChannelError,
    JsonChannel,
    build_channel_pair,
)

ContextFactory = Callable[[JsonChannel], SchedulerContext]

HANDSHAKE_LINE = "start"
PROCESS_NAME = "autotest"


class FinalStatus(BaseModel):
    # Final run status sent as the tests_done record.
    model_config = ConfigDict(extra="forbid", frozen=True)
    completed: bool
    died: bool


class ForcedStopHandler:
    # SIGTERM handler for the worker: saves the running unit as canceled and leaves with status 1
    # through os._exit, without unwinding unit code. The context is attached once the run starts.
    def __init__(self, *, exit_fn: Callable[[int], object] = os._exit) -> None:
        self.context: SchedulerContext | None = None
        self._exit_fn = exit_fn

    def __call__(self, signum: int, frame: FrameType | None) -> None:
        _ = frame
        ctx = self.context
        if ctx is not None:
            name = signal.Signals(signum).name
            ctx.cancel.cancel(f"received {name}")
            unit = ctx.current_test
            if unit is not None:
                ctx.diagnostics.diag(
                    f"autotest received signal {name}, saving results of current test before exiting"
                )
                unit.cancel()
                ctx.results.save_unit_result(unit)
        self._exit_fn(1)


def install_worker_signal_handlers(handler: ForcedStopHandler) -> None:
    # The worker behaves like a foreground process for everything but SIGTERM.
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    signal.signal(signal.SIGHUP, signal.SIG_DFL)
    signal.signal(signal.SIGCHLD, signal.SIG_DFL)
    signal.signal(signal.SIGTERM, handler)


def run_all(context: SchedulerContext) -> FinalStatus:
    # Runs the loop, reports tests_done and closes the channel; never raises for run errors.
    completed = False
    died = False
    try:
        completed = ExecutionLoop(context).run()
    except Exception as exc:
        context.diagnostics.warn(f"test execution died: {exc}", error_type=type(exc).__name__)
        died = True

    status = FinalStatus(completed=completed, died=died)
    try:
        context.results.save_vars(context.vars.public_vars())
        context.backend.tests_done(completed=status.completed, died=status.died)
    except (ChannelError, OSError) as exc:
        context.diagnostics.warn(f"could not report final status: {exc}", error_type=type(exc).__name__)
    finally:
        context.backend.close()
    return status


def _worker_main(
    channel: JsonChannel,
    parent_end: JsonChannel,
    build_context: ContextFactory,
    handler: ForcedStopHandler,
) -> None:
    parent_end.close()
    install_worker_signal_handlers(handler)

    handshake = channel.read_line()
    if not handshake:
        # Parent closed the channel before starting the run.
        os._exit(0)

    context = build_context(channel)
    handler.context = context
    context.diagnostics.diag(f"GOT {handshake.decode('utf-8', errors='replace')}")
    run_all(context)
    os._exit(0)


@dataclass(slots=True)
class WorkerHandle:
    process: BaseProcess
    channel: JsonChannel

    @property
    def pid(self) -> int | None:
        return self.process.pid

    @property
    def exit_status(self) -> int | None:
        return self.process.exitcode

    def is_alive(self) -> bool:
        return self.process.is_alive()

    def start_tests(self, line: str = HANDSHAKE_LINE) -> None:
        self.channel.send_line(line)


class WorkerSupervisor:
    # Starts, observes and terminates the worker; a dead worker is never restarted.
    # The default fork start method lets the worker inherit the schedule built before start().
    def __init__(
        self,
        build_context: ContextFactory,
        *,
        diagnostics: Diagnostics,
        start_method: str = "fork",
        stop_poll_seconds: float = 0.1,
        stop_timeout_seconds: float = 5.0,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ) -> None:
        if stop_poll_seconds <= 0 or stop_timeout_seconds <= 0:
            raise ValueError("stop_poll_seconds and stop_timeout_seconds must be > 0")
        self._build_context = build_context
        self._diag = diagnostics
        self._ctx = mp.get_context(start_method)
        self._stop_poll_seconds = stop_poll_seconds
        self._stop_timeout_seconds = stop_timeout_seconds
        self._max_payload_bytes = max_payload_bytes

    def start(self) -> WorkerHandle:
        parent_end, worker_end = build_channel_pair(max_payload_bytes=self._max_payload_bytes)
        process = self._ctx.Process(
            target=_worker_main,
            args=(worker_end, parent_end, self._build_context, ForcedStopHandler()),
            name=PROCESS_NAME,
            daemon=True,
        )
        try:
            process.start()
        finally:
            worker_end.close()
        self._diag.diag(f"[{PROCESS_NAME}] process started", worker_pid=process.pid)
        return WorkerHandle(process=process, channel=parent_end)

    def wait(self, handle: WorkerHandle, timeout: float | None = None) -> int | None:
        handle.process.join(timeout)
        if handle.process.is_alive():
            return None
        return self._collected(handle)

    def stop(self, handle: WorkerHandle) -> int | None:
        process = handle.process
        if process.is_alive():
            process.terminate()
            deadline = time.monotonic() + self._stop_timeout_seconds
            while process.is_alive() and time.monotonic() < deadline:
                process.join(self._stop_poll_seconds)
            if process.is_alive():
                self._diag.warn(f"[{PROCESS_NAME}] process did not stop, killing it", worker_pid=process.pid)
                process.kill()
                process.join()
        return self._collected(handle)

    def _collected(self, handle: WorkerHandle) -> int | None:
        status = handle.process.exitcode
        self._diag.diag(f"[{PROCESS_NAME}] process exited: {status}", worker_pid=handle.process.pid)
        return status
