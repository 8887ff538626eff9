from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar

T = TypeVar("T")


class UnitRuntimeError(RuntimeError):
    # Raised by a unit body; recoverable through rollback unless the run classifies it fatal.
    pass


class FatalUnitError(UnitRuntimeError):
    # Raised by a unit body that declares its own failure fatal to the run.
    pass


class UnitState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELED = "canceled"


# Verdict strings written to result files.
RESULT_OK = "ok"
RESULT_FAIL = "fail"
RESULT_SKIP = "skip"
RESULT_CANCELED = "canceled"

_FLAG_NAMES = ("fatal", "milestone", "always_rollback", "no_rollback")


@dataclass(frozen=True, slots=True)
class UnitFlags:
    # fatal is tri-state: None means "not set", which matters without checkpoint support.
    fatal: bool | None = None
    milestone: bool = False
    always_rollback: bool = False
    no_rollback: bool = False

    def to_dict(self) -> dict[str, bool]:
        data: dict[str, bool] = {}
        if self.fatal is not None:
            data["fatal"] = self.fatal
        for name in _FLAG_NAMES[1:]:
            if getattr(self, name):
                data[name] = True
        return data

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> UnitFlags:
        unknown = set(raw) - set(_FLAG_NAMES)
        if unknown:
            raise ValueError(f"Unknown unit flags: {sorted(unknown)}")
        fatal = raw.get("fatal")
        return cls(
            fatal=None if fatal is None else bool(fatal),
            milestone=bool(raw.get("milestone", False)),
            always_rollback=bool(raw.get("always_rollback", False)),
            no_rollback=bool(raw.get("no_rollback", False)),
        )


class RunArgs:
    # Per-schedule payload handed to BaseUnit.run; the scheduler only checks the type.
    pass


@dataclass(frozen=True, slots=True)
class UnitMeta:
    # Registration marker attached by @register_unit; name defaults to the class name.
    name: str | None = None

    def __post_init__(self) -> None:
        if self.name is not None and not self.name:
            raise ValueError("UnitMeta.name must be a non-empty string when provided")


def register_unit(target: T | None = None, *, name: str | None = None) -> T | Callable[[T], T]:
    # Marks a unit class (or a factory taking the category) for discovery by the loader.
    meta = UnitMeta(name=name)

    def _decorate(value: T) -> T:
        setattr(value, "__unit_meta__", meta)
        return value

    if target is not None:
        return _decorate(target)
    return _decorate


class UnitScheduler(Protocol):
    def schedule(self, locator: str, *, name: str | None = None, run_args: object | None = None) -> BaseUnit: ...


class ConsoleSelector(Protocol):
    def select_console(self, console: str) -> object: ...


class BaseUnit:
    # Subclasses implement run(); is_applicable() and test_flags() may be overridden.
    # The registry fills name, fullname, script and scheduler after construction; consoles
    # is bound by the execution loop while the unit is current.
    def __init__(self, category: str) -> None:
        self.category = category
        self.name = ""
        self.fullname = ""
        self.script = ""
        self.run_args: RunArgs | None = None
        self.state = UnitState.PENDING
        self.result: str | None = None
        self.details: list[dict[str, object]] = []
        self.fatal_failure = False
        self.activated_consoles: list[str] = []
        self.execution_time: float | None = None
        self.scheduler: UnitScheduler | None = None
        self.consoles: ConsoleSelector | None = None

    def is_applicable(self) -> bool:
        return True

    def test_flags(self) -> UnitFlags:
        return UnitFlags()

    def run(self, run_args: RunArgs | None) -> None:
        raise NotImplementedError(f"{type(self).__name__}.run must be implemented")

    def start(self) -> None:
        self.state = UnitState.RUNNING

    def skip_if_not_running(self) -> None:
        if self.state is UnitState.PENDING:
            self.state = UnitState.SKIPPED
            self.result = RESULT_SKIP

    def mark_passed(self) -> None:
        self.state = UnitState.PASSED
        self.result = RESULT_OK

    def mark_failed(self, text: str) -> None:
        self.state = UnitState.FAILED
        self.result = RESULT_FAIL
        self.details.append({"result": RESULT_FAIL, "text": text})

    def cancel(self) -> None:
        self.state = UnitState.CANCELED
        self.result = RESULT_CANCELED

    def to_result(self) -> dict[str, object]:
        return {
            "name": self.name,
            "fullname": self.fullname,
            "category": self.category,
            "script": self.script,
            "result": self.result,
            "state": self.state.value,
            "details": list(self.details),
            "flags": self.test_flags().to_dict(),
            "execution_time": self.execution_time,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.fullname or self.category} {self.state.value}>"
