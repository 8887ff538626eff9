from .discovery import UnitDiscoveryError, UnitFactoryRegistry
from .locator import LocatorError, find_script, parse_test_path
from .outcome import FatalFailure, Ok, RecoverableFailure, UnitOutcome, execute_unit
from .registry import LoadError, RunArgsTypeError, UnitRegistry
from .results import ResultStore, ScheduleRecord, load_schedule
from .unit import (
    BaseUnit,
    FatalUnitError,
    RunArgs,
    UnitFlags,
    UnitRuntimeError,
    UnitState,
    register_unit,
)

__all__ = [
    "BaseUnit",
    "FatalFailure",
    "FatalUnitError",
    "LoadError",
    "LocatorError",
    "Ok",
    "RecoverableFailure",
    "ResultStore",
    "RunArgs",
    "RunArgsTypeError",
    "ScheduleRecord",
    "UnitDiscoveryError",
    "UnitFactoryRegistry",
    "UnitFlags",
    "UnitOutcome",
    "UnitRegistry",
    "UnitRuntimeError",
    "UnitState",
    "execute_unit",
    "find_script",
    "load_schedule",
    "parse_test_path",
    "register_unit",
]
