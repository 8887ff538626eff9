from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from autotest_kernel.kernel.unit import BaseUnit, FatalUnitError


@dataclass(frozen=True, slots=True)
class Ok:
    pass


@dataclass(frozen=True, slots=True)
class RecoverableFailure:
    details: str
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class FatalFailure:
    details: str
    error: BaseException | None = None


UnitOutcome = Ok | RecoverableFailure | FatalFailure


def execute_unit(unit: BaseUnit, *, clock: Callable[[], float] = time.monotonic) -> UnitOutcome:
    # Runs the unit body and folds the result into unit state; errors never escape.
    started = clock()
    outcome: UnitOutcome
    try:
        unit.run(unit.run_args)
    except FatalUnitError as exc:
        outcome = FatalFailure(details=_describe(unit, exc), error=exc)
    except (Exception, SystemExit) as exc:
        # sys.exit() in a unit body fails the unit, not the worker.
        details = _describe(unit, exc)
        outcome = FatalFailure(details, exc) if unit.fatal_failure else RecoverableFailure(details, exc)
    else:
        outcome = Ok()
    finally:
        unit.execution_time = round(clock() - started, 3)

    if isinstance(outcome, Ok):
        unit.mark_passed()
    else:
        unit.mark_failed(outcome.details)
    return outcome


def _describe(unit: BaseUnit, exc: BaseException) -> str:
    text = str(exc) or type(exc).__name__
    return f"test {unit.name} died: {text}"
