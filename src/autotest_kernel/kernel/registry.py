from __future__ import annotations

from pathlib import Path

from autotest_kernel.kernel.discovery import UnitFactoryRegistry
from autotest_kernel.kernel.locator import (
    UNIT_SUFFIX,
    find_script,
    parse_test_path,
    script_location,
)
from autotest_kernel.kernel.results import ResultStore
from autotest_kernel.kernel.unit import BaseUnit, RunArgs
from autotest_kernel.observability.diagnostics import Diagnostics


class LoadError(RuntimeError):
    # A unit source failed to resolve, import or instantiate; fatal to the whole run.
    pass


class RunArgsTypeError(TypeError):
    # run_args passed to schedule() is not a RunArgs instance.
    pass


class UnitRegistry:
    # Ordered, append-only schedule for one run. Every unit is kept under fullname plus a numeric
    # disambiguator; only applicable units enter the execution order.
    def __init__(
        self,
        *,
        casedir: Path,
        assetdir: Path | None,
        results: ResultStore,
        diagnostics: Diagnostics,
        factories: UnitFactoryRegistry | None = None,
    ) -> None:
        self._casedir = casedir
        self._assetdir = assetdir
        self._results = results
        self._diag = diagnostics
        self._factories = factories or UnitFactoryRegistry()
        self._tests: dict[str, BaseUnit] = {}
        self._order: list[BaseUnit] = []
        self.running = False

    @property
    def casedir(self) -> Path:
        return self._casedir

    @property
    def order(self) -> list[BaseUnit]:
        return list(self._order)

    @property
    def tests(self) -> dict[str, BaseUnit]:
        return dict(self._tests)

    def __len__(self) -> int:
        return len(self._order)

    def at(self, index: int) -> BaseUnit:
        return self._order[index]

    def schedule(
        self,
        locator: str,
        *,
        name: str | None = None,
        run_args: object | None = None,
    ) -> BaseUnit:
        unit = self._instantiate(locator)

        if run_args is not None:
            if not isinstance(run_args, RunArgs):
                raise RunArgsTypeError("The run_args must be an instance of RunArgs")
            unit.run_args = run_args

        base_name = unit.name
        suffix = ""
        while unit.fullname + suffix in self._tests:
            suffix = "1" if suffix == "" else str(int(suffix) + 1)
            unit.name = f"{base_name}#{suffix}"
        if name:
            unit.name = name
        self._tests[unit.fullname + suffix] = unit

        if not unit.is_applicable():
            self._diag.diag(f"skipping inapplicable {unit.name} {locator}")
            return unit
        self._order.append(unit)

        # The schedule may change at run time; observers watch the persisted copy.
        if self.running:
            self.persist()
        self._diag.diag(f"scheduling {unit.name} {locator}")
        return unit

    def persist(self) -> Path:
        return self._results.save_schedule(self._order)

    def resolve_directory(self, directory: str | Path) -> list[BaseUnit]:
        if not str(directory):
            raise ValueError("resolve_directory needs a directory")
        relative = self._relative_to_casedir(directory)
        full = Path(self._casedir, relative)
        if not full.is_dir():
            raise LoadError(f"'{full}' does not exist!")
        scheduled: list[BaseUnit] = []
        for script in sorted(full.glob(f"*{UNIT_SUFFIX}")):
            if script.name.startswith("_") or not script.is_file():
                continue
            locator = f"{relative}/{script.name}" if relative else script.name
            scheduled.append(self.schedule(locator))
        return scheduled

    def _relative_to_casedir(self, directory: str | Path) -> str:
        # Legacy callers pass absolute paths below the case tree.
        text = str(directory)
        prefix = str(self._casedir).rstrip("/")
        if text == prefix or text.startswith(prefix + "/"):
            text = text[len(prefix) :]
        return text.strip("/")

    def _instantiate(self, locator: str) -> BaseUnit:
        try:
            script_path = find_script(
                locator,
                casedir=self._casedir,
                assetdir=self._assetdir,
                diagnostics=self._diag,
            )
            unit_name, category = parse_test_path(script_path)
            source = script_location(script_path, self._casedir)
            factory = self._factories.load_source(
                source,
                name=unit_name,
                category=category,
                search_paths=[Path(self._casedir, "lib"), source.parent],
            )
            unit = factory(category)
            if not isinstance(unit, BaseUnit):
                raise TypeError(f"unit factory for {category}/{unit_name} did not return a BaseUnit")
        except Exception as exc:
            message = f"error on {locator}: {exc}"
            self._diag.diag(message, error_type=type(exc).__name__)
            self._results.serialize_state(
                component="tests",
                msg=f"unable to load {locator}, check the log for the cause (e.g. syntax error)",
            )
            raise LoadError(message) from exc
        unit.name = unit_name
        unit.fullname = f"{category}-{unit_name}"
        unit.script = locator
        unit.scheduler = self
        return unit
