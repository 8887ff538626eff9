from __future__ import annotations

import importlib.util
import re
import sys
from collections.abc import Callable
from pathlib import Path
from types import ModuleType

from autotest_kernel.kernel.unit import BaseUnit, UnitMeta

UnitFactory = Callable[[str], BaseUnit]

MODULE_PREFIX = "autotest_units"


class UnitDiscoveryError(RuntimeError):
    # Raised when a unit source registers no unit, an ambiguous set, or a duplicate.
    pass


def discover_units(module: ModuleType) -> dict[str, UnitFactory]:
    # Objects carrying __unit_meta__ in the module, keyed by their registered name.
    found: dict[str, UnitFactory] = {}
    for attr_name, value in module.__dict__.items():
        meta = getattr(value, "__unit_meta__", None)
        if not isinstance(meta, UnitMeta):
            continue
        if not callable(value):
            raise UnitDiscoveryError(f"Registered unit '{attr_name}' in {module.__name__} is not callable")
        name = meta.name or getattr(value, "__name__", attr_name)
        existing = found.get(name)
        if existing is not None and existing is not value:
            raise UnitDiscoveryError(f"Duplicate unit name '{name}' in {module.__name__}")
        found[name] = value
    return found


class UnitFactoryRegistry:
    # Factories keyed by (category, name); a unit source is imported once and reused on re-scheduling.
    def __init__(self) -> None:
        self._factories: dict[tuple[str, str], UnitFactory] = {}
        self._modules: dict[Path, ModuleType] = {}

    def register(self, category: str, name: str, factory: UnitFactory) -> None:
        key = (category, name)
        existing = self._factories.get(key)
        if existing is not None and existing is not factory:
            raise UnitDiscoveryError(f"Duplicate unit registration: {category}/{name}")
        self._factories[key] = factory

    def lookup(self, category: str, name: str) -> UnitFactory | None:
        return self._factories.get((category, name))

    def load_source(
        self,
        path: Path,
        *,
        name: str,
        category: str,
        search_paths: list[Path] | None = None,
    ) -> UnitFactory:
        factory = self.lookup(category, name)
        if factory is not None and path.resolve() in self._modules:
            return factory
        module = self._import(path, name=name, category=category, search_paths=search_paths or [])
        units = discover_units(module)
        if not units:
            raise UnitDiscoveryError(f"{path} does not register a unit (missing @register_unit)")
        factory = units.get(name)
        if factory is None:
            if len(units) != 1:
                raise UnitDiscoveryError(
                    f"{path} registers {sorted(units)}, none named '{name}'"
                )
            factory = next(iter(units.values()))
        self.register(category, name, factory)
        return factory

    def _import(self, path: Path, *, name: str, category: str, search_paths: list[Path]) -> ModuleType:
        resolved = path.resolve()
        cached = self._modules.get(resolved)
        if cached is not None:
            return cached
        for search_path in search_paths:
            entry = str(search_path)
            if entry not in sys.path:
                sys.path.insert(0, entry)
        module_name = _module_name(category, name)
        spec = importlib.util.spec_from_file_location(module_name, resolved)
        if spec is None or spec.loader is None:
            raise UnitDiscoveryError(f"cannot load unit source {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        self._modules[resolved] = module
        return module


def _module_name(category: str, name: str) -> str:
    parts = [re.sub(r"\W", "_", part) for part in (*category.split("/"), name) if part]
    return ".".join([MODULE_PREFIX, *parts])
