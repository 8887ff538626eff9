from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Run variables are free-form; only the names below drive the scheduler.
RUN_VAR_NAMES = (
    "CASEDIR",
    "ASSETDIR",
    "RESULT_DIR",
    "SKIPTO",
    "TESTDEBUG",
    "MAKETESTSNAPSHOTS",
    "DUMP_MEMORY_ON_FAIL",
    "BASE_STATE_FILE",
)

SECRET_PREFIX = "_SECRET"


def _var(name: str, **kwargs: Any) -> Any:
    return Field(
        validation_alias=AliasChoices(name, name.lower()),
        serialization_alias=name,
        **kwargs,
    )


class RunVars(BaseModel):
    # Extra keys are kept so arbitrary test variables travel with the run.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    casedir: Path = _var("CASEDIR")
    assetdir: Path | None = _var("ASSETDIR", default=None)
    result_dir: Path = _var("RESULT_DIR", default=Path("testresults"))
    skipto: str | None = _var("SKIPTO", default=None)
    testdebug: bool = _var("TESTDEBUG", default=False)
    maketestsnapshots: bool = _var("MAKETESTSNAPSHOTS", default=False)
    dump_memory_on_fail: bool = _var("DUMP_MEMORY_ON_FAIL", default=False)
    base_state_file: Path | None = _var("BASE_STATE_FILE", default=None)

    @field_validator("testdebug", "maketestsnapshots", "dump_memory_on_fail", mode="before")
    @classmethod
    def _empty_flag_is_false(cls, value: object) -> object:
        if value is None or value == "":
            return False
        return value

    @field_validator("skipto", mode="before")
    @classmethod
    def _empty_skipto_is_none(cls, value: object) -> object:
        if value == "":
            return None
        return value

    @field_validator("assetdir", "base_state_file", mode="before")
    @classmethod
    def _empty_path_is_none(cls, value: object) -> object:
        if value == "":
            return None
        return value

    def public_vars(self) -> dict[str, object]:
        dumped = self.model_dump(mode="json", by_alias=True)
        return {key: value for key, value in dumped.items() if not key.startswith(SECRET_PREFIX)}


class ExporterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["stdout", "jsonl"]
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("settings")
    @classmethod
    def _jsonl_needs_path(cls, value: dict[str, Any], info: Any) -> dict[str, Any]:
        if info.data.get("kind") == "jsonl":
            path = value.get("path")
            if not isinstance(path, str) or not path:
                raise ValueError("jsonl exporter requires settings.path")
        return value


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["debug", "info", "warning", "error"] = "debug"
    exporters: list[ExporterConfig] = Field(default_factory=list)


class RunnerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    vars: RunVars
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
