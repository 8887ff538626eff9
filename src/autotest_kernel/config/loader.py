from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from autotest_kernel.config.models import RUN_VAR_NAMES, RunnerConfig


class ConfigError(ValueError):
    # Raised for invalid configuration; the run never starts on a bad config.
    pass


ENV_PREFIX = "AUTOTEST_"
_TOP_LEVEL_KEYS = {"vars", "logging"}


def load_yaml_config(path: Path) -> dict[str, object]:
    # YAML loader; returns a raw mapping for validation. JSON files load too.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def load_runner_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> RunnerConfig:
    raw = load_yaml_config(path) if path is not None else {}
    _validate_top_level(raw)

    run_vars = raw.get("vars", {})
    if run_vars is None:
        run_vars = {}
    if not isinstance(run_vars, dict):
        raise ConfigError("vars must be a mapping")
    run_vars = dict(run_vars)
    apply_environment_overrides(run_vars, environ or {})
    for key, value in (overrides or {}).items():
        _drop_lowercase_alias(run_vars, key)
        run_vars[key] = value

    try:
        return RunnerConfig.model_validate({"vars": run_vars, "logging": raw.get("logging") or {}})
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def apply_environment_overrides(run_vars: dict[str, object], environ: Mapping[str, str]) -> None:
    # AUTOTEST_<NAME> wins over the file value of <NAME>.
    for name in RUN_VAR_NAMES:
        value = environ.get(f"{ENV_PREFIX}{name}")
        if value is None:
            continue
        _drop_lowercase_alias(run_vars, name)
        run_vars[name] = value


def _drop_lowercase_alias(run_vars: dict[str, object], name: str) -> None:
    if name.upper() in RUN_VAR_NAMES:
        run_vars.pop(name.lower(), None)


def _validate_top_level(raw: dict[str, object]) -> None:
    # Fail fast on unknown keys to prevent silent misconfiguration.
    unknown = set(raw.keys()) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown top-level keys: {sorted(unknown)}")
