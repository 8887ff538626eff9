from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter

from autotest_kernel.kernel.unit import BaseUnit, UnitFlags

SCHEDULE_FILE = "test_order.json"
BASE_STATE_FILE = "base_state.json"
VARS_FILE = "vars.json"


class ScheduleRecord(BaseModel):
    # One entry of the persisted schedule, in execution order.
    model_config = ConfigDict(extra="forbid")
    name: str
    category: str
    flags: dict[str, bool]
    script: str

    @classmethod
    def from_unit(cls, unit: BaseUnit) -> ScheduleRecord:
        return cls(
            name=unit.name,
            category=unit.category,
            flags=unit.test_flags().to_dict(),
            script=unit.script,
        )

    def unit_flags(self) -> UnitFlags:
        return UnitFlags.from_mapping(self.flags)


_SCHEDULE_ADAPTER = TypeAdapter(list[ScheduleRecord])


class ResultStore:
    # Files in the result directory that external observers read while the run goes on.
    def __init__(self, result_dir: Path, *, base_state_file: Path | None = None) -> None:
        self._result_dir = result_dir
        self._base_state_file = base_state_file or result_dir / BASE_STATE_FILE

    @property
    def result_dir(self) -> Path:
        return self._result_dir

    @property
    def schedule_path(self) -> Path:
        return self._result_dir / SCHEDULE_FILE

    @property
    def base_state_path(self) -> Path:
        return self._base_state_file

    def unit_result_path(self, unit: BaseUnit) -> Path:
        return self._result_dir / f"result-{unit.name}.json"

    def save_schedule(self, units: Iterable[BaseUnit]) -> Path:
        records = [ScheduleRecord.from_unit(unit).model_dump() for unit in units]
        _write_json(self.schedule_path, records)
        return self.schedule_path

    def save_unit_result(self, unit: BaseUnit) -> Path:
        path = self.unit_result_path(unit)
        _write_json(path, unit.to_result())
        return path

    def serialize_state(self, *, component: str, msg: str) -> Path:
        _write_json(self._base_state_file, {"component": component, "msg": msg})
        return self._base_state_file

    def save_vars(self, public_vars: dict[str, object]) -> Path:
        path = self._result_dir / VARS_FILE
        _write_json(path, public_vars)
        return path


def load_schedule(path: Path) -> list[ScheduleRecord]:
    return _SCHEDULE_ADAPTER.validate_json(path.read_bytes())


def _write_json(path: Path, payload: object) -> None:
    # Replace atomically: observers never see a half-written file.
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")
    os.replace(tmp, path)
