from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from autotest_kernel.config.loader import ConfigError, load_runner_config
from autotest_kernel.config.models import RunnerConfig
from autotest_kernel.kernel.registry import LoadError, UnitRegistry
from autotest_kernel.kernel.results import ResultStore
from autotest_kernel.observability.diagnostics import Diagnostics, build_diagnostics

EXIT_OK = 0
EXIT_LOAD_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autotest-kernel")
    parser.add_argument("--config", help="YAML/JSON file with 'vars' and 'logging' sections")
    parser.add_argument("--casedir", help="override CASEDIR")
    parser.add_argument("--result-dir", help="override RESULT_DIR")
    commands = parser.add_subparsers(dest="command", required=True)

    schedule = commands.add_parser("schedule", help="resolve and persist a test schedule")
    schedule.add_argument("locators", nargs="*", help="unit sources relative to CASEDIR")
    schedule.add_argument(
        "--dir",
        dest="directories",
        action="append",
        default=[],
        help="schedule every unit source directly inside this directory",
    )
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def load_config(args: argparse.Namespace) -> RunnerConfig:
    overrides: dict[str, object] = {}
    if args.casedir:
        overrides["CASEDIR"] = args.casedir
    if args.result_dir:
        overrides["RESULT_DIR"] = args.result_dir
    path = Path(args.config) if args.config else None
    return load_runner_config(path, environ=os.environ, overrides=overrides)


def build_registry(config: RunnerConfig, diagnostics: Diagnostics) -> UnitRegistry:
    run_vars = config.vars
    results = ResultStore(run_vars.result_dir, base_state_file=run_vars.base_state_file)
    return UnitRegistry(
        casedir=run_vars.casedir,
        assetdir=run_vars.assetdir,
        results=results,
        diagnostics=diagnostics,
    )


def run_schedule(args: argparse.Namespace, config: RunnerConfig, diagnostics: Diagnostics) -> int:
    registry = build_registry(config, diagnostics)
    try:
        for directory in args.directories:
            registry.resolve_directory(directory)
        for locator in args.locators:
            registry.schedule(locator)
    except LoadError as exc:
        print(f"autotest-kernel: {exc}", file=sys.stderr)
        return EXIT_LOAD_FAILED
    path = registry.persist()
    for unit in registry.order:
        print(f"{unit.fullname}\t{unit.name}\t{unit.script}")
    print(f"{len(registry)} units scheduled, written to {path}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        config = load_config(args)
    except ConfigError as exc:
        print(f"autotest-kernel: {exc}", file=sys.stderr)
        return EXIT_LOAD_FAILED
    diagnostics = build_diagnostics(config.logging)
    try:
        return run_schedule(args, config, diagnostics)
    finally:
        diagnostics.close()


if __name__ == "__main__":
    raise SystemExit(main())
