from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from autotest_kernel.kernel.unit import BaseUnit, RunArgs

_UNIT_TEMPLATE = '''\
from autotest_kernel.kernel.unit import BaseUnit, FatalUnitError, UnitFlags, UnitRuntimeError, register_unit


@register_unit(name="{name}")
class Unit(BaseUnit):
    origin = "{origin}"

    def is_applicable(self):
        return {applicable}

    def test_flags(self):
        return UnitFlags({flags})

    def run(self, run_args):
        if run_args is not None:
            run_args.invoke(self)
        {body}
'''


class HookArgs(RunArgs):
    # Run-args payload that calls back into the test while the unit body runs.
    def __init__(self, fn: Callable[[BaseUnit], object]) -> None:
        self.fn = fn

    def invoke(self, unit: BaseUnit) -> None:
        self.fn(unit)


@pytest.fixture
def write_unit() -> Callable[..., Path]:
    def _write(
        root: Path,
        locator: str,
        *,
        flags: str = "",
        body: str = "pass",
        applicable: bool = True,
        origin: str = "casedir",
    ) -> Path:
        path = root / locator
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            _UNIT_TEMPLATE.format(
                name=path.stem,
                origin=origin,
                applicable=applicable,
                flags=flags,
                body=body,
            ),
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture
def make_hook() -> Callable[[Callable[[BaseUnit], object]], RunArgs]:
    return HookArgs
