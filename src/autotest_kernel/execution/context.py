from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from autotest_kernel.config.models import RunVars
from autotest_kernel.kernel.registry import UnitRegistry
from autotest_kernel.kernel.results import ResultStore
from autotest_kernel.kernel.unit import BaseUnit
from autotest_kernel.observability.diagnostics import Diagnostics
from autotest_kernel.platform.backend import BackendClient
from autotest_kernel.platform.checkpoints import CheckpointManager
from autotest_kernel.platform.consoles import ConsoleService
from autotest_kernel.transport.json_channel import JsonChannel


class CancellationToken:
    # Set from the terminate handler; the execution loop checks it between units.
    def __init__(self) -> None:
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str) -> None:
        if self._reason is None:
            self._reason = reason


@dataclass(slots=True)
class SchedulerContext:
    # Per-run scheduler state, built once in the worker and passed explicitly.
    vars: RunVars
    registry: UnitRegistry
    backend: BackendClient
    checkpoints: CheckpointManager
    consoles: ConsoleService
    results: ResultStore
    diagnostics: Diagnostics
    cancel: CancellationToken = field(default_factory=CancellationToken)
    current_test: BaseUnit | None = None
    last_milestone: BaseUnit | None = None
    last_milestone_console: str | None = None

    def set_current_test(self, unit: BaseUnit | None) -> None:
        # Unit bodies reach the console service only while they are current.
        previous = self.current_test
        if previous is not None:
            previous.consoles = None
        self.current_test = unit
        if unit is None:
            self.backend.set_current_test()
        else:
            unit.consoles = self.consoles
            self.backend.set_current_test(unit.name, unit.fullname)


def build_scheduler_context(
    *,
    run_vars: RunVars,
    registry: UnitRegistry,
    channel: JsonChannel,
    results: ResultStore,
    diagnostics: Diagnostics,
) -> SchedulerContext:
    backend = BackendClient(channel)
    consoles = ConsoleService(backend)
    return SchedulerContext(
        vars=run_vars,
        registry=registry,
        backend=backend,
        checkpoints=CheckpointManager(backend, consoles, diagnostics),
        consoles=consoles,
        results=results,
        diagnostics=diagnostics,
    )


def reloading_context_factory(
    load_vars: Callable[[], RunVars],
    *,
    registry: UnitRegistry,
    results: ResultStore,
    diagnostics: Diagnostics,
) -> Callable[[JsonChannel], SchedulerContext]:
    # Vars are read when the worker builds its context, after the handshake:
    # the backend may add defaults to the vars file before starting the run.
    def _build(channel: JsonChannel) -> SchedulerContext:
        return build_scheduler_context(
            run_vars=load_vars(),
            registry=registry,
            channel=channel,
            results=results,
            diagnostics=diagnostics,
        )

    return _build
