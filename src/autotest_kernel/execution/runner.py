from __future__ import annotations

from autotest_kernel.execution.context import SchedulerContext
from autotest_kernel.kernel.outcome import FatalFailure, Ok, UnitOutcome, execute_unit
from autotest_kernel.kernel.unit import BaseUnit, UnitFlags
from autotest_kernel.platform.checkpoints import LAST_GOOD


class ScheduleEmptyError(RuntimeError):
    # Raised when a run starts with no applicable unit scheduled.
    pass


def is_fatal_failure(
    outcome: UnitOutcome,
    flags: UnitFlags,
    *,
    snapshots_supported: bool,
    testdebug: bool,
) -> bool:
    # Without checkpoint support only an explicit fatal=False keeps the run going.
    return (
        isinstance(outcome, FatalFailure)
        or flags.fatal is True
        or (flags.fatal is None and not snapshots_supported)
        or testdebug
    )


class ExecutionLoop:
    """Walks the registry order once, running units and managing checkpoints.

    Units before the resume point are skipped. A failed unit is either rolled
    back to the last milestone checkpoint or ends the run, see
    ``is_fatal_failure``. A passing milestone refreshes the "last known good"
    checkpoint unless the next unit is a fatal milestone itself.
    """

    def __init__(self, context: SchedulerContext) -> None:
        self._ctx = context
        self._snapshots_supported = False

    @property
    def snapshots_supported(self) -> bool:
        return self._snapshots_supported

    def run(self) -> bool:
        ctx = self._ctx
        registry = ctx.registry
        if len(registry) == 0:
            raise ScheduleEmptyError("ERROR: no tests loaded")

        first = ctx.vars.skipto or registry.at(0).fullname
        loaded = False
        self._snapshots_supported = ctx.checkpoints.probe()
        registry.running = True
        registry.persist()

        index = 0
        # len() is re-read every pass: units scheduled while running are picked up.
        while index < len(registry):
            if ctx.cancel.cancelled:
                ctx.diagnostics.warn(f"run canceled: {ctx.cancel.reason}")
                return False
            unit = registry.at(index)

            if not loaded and unit.fullname == first:
                if ctx.vars.skipto:
                    ctx.checkpoints.restore(LAST_GOOD if ctx.vars.testdebug else first)
                loaded = True
            if not loaded:
                ctx.diagnostics.diag(f"skipping {unit.fullname}")
                unit.skip_if_not_running()
                ctx.results.save_unit_result(unit)
                index += 1
                continue

            if not self._run_unit(index, unit):
                return False
            index += 1
        return True

    def _run_unit(self, index: int, unit: BaseUnit) -> bool:
        ctx = self._ctx
        flags = unit.test_flags()

        ctx.diagnostics.modstart(f"starting {unit.name} {unit.script}", fullname=unit.fullname)
        ctx.set_current_test(unit)
        unit.start()

        # Never overwrite the checkpoint the run was resumed from.
        if (
            self._snapshots_supported
            and (ctx.vars.skipto or "") != unit.fullname
            and ctx.vars.maketestsnapshots
        ):
            ctx.checkpoints.save(unit.fullname)

        try:
            outcome = execute_unit(unit)
        finally:
            ctx.results.save_unit_result(unit)
        ctx.set_current_test(None)

        if isinstance(outcome, Ok):
            self._after_pass(index, unit, flags)
            return True
        return self._after_failure(unit, flags, outcome)

    def _after_failure(self, unit: BaseUnit, flags: UnitFlags, outcome: UnitOutcome) -> bool:
        ctx = self._ctx
        details = getattr(outcome, "details", "")
        ctx.diagnostics.diag(details, fullname=unit.fullname)
        if ctx.vars.dump_memory_on_fail:
            ctx.backend.save_memory_dump(unit.fullname)

        if is_fatal_failure(
            outcome,
            flags,
            snapshots_supported=self._snapshots_supported,
            testdebug=ctx.vars.testdebug,
        ):
            ctx.diagnostics.warn(f"fatal failure in {unit.fullname}, stopping the run")
            ctx.backend.stop_vm()
            return False
        if not flags.no_rollback and ctx.last_milestone is not None:
            self._rollback()
        return True

    def _after_pass(self, index: int, unit: BaseUnit, flags: UnitFlags) -> None:
        ctx = self._ctx
        if not flags.no_rollback and ctx.last_milestone is not None and flags.always_rollback:
            self._rollback()

        make_snapshot = ctx.vars.testdebug
        # A checkpoint right before a fatal milestone would never be resumed from.
        if index < len(ctx.registry) - 1:
            next_flags = ctx.registry.at(index + 1).test_flags()
            make_snapshot = make_snapshot or (
                flags.milestone and not (next_flags.milestone and next_flags.fatal is True)
            )
        if self._snapshots_supported and make_snapshot:
            ctx.checkpoints.save(LAST_GOOD)
            ctx.last_milestone = unit
            ctx.last_milestone_console = ctx.consoles.selected_console
            ctx.consoles.milestone = unit

    def _rollback(self) -> None:
        ctx = self._ctx
        milestone = ctx.last_milestone
        ctx.checkpoints.restore(LAST_GOOD)
        if milestone is not None:
            ctx.consoles.rollback_activated_consoles(milestone, ctx.last_milestone_console)
