from __future__ import annotations

import os
import re
from pathlib import Path

from autotest_kernel.observability.diagnostics import Diagnostics

UNIT_SUFFIX = ".py"
OVERRIDE_CATEGORY = "other"

_UNIT_PATH = re.compile(r"(\w+)/([^/]+)\.py$")
# Full folder hierarchy below the innermost tests/ directory becomes the category.
_NESTED_CATEGORY = re.compile(r"(tests/[^/]+/)?tests/([\w/]+)/([^/]+)\.py$")


class LocatorError(ValueError):
    # Script path does not have the <category>/<name>.py shape.
    pass


def find_script(
    script: str,
    *,
    casedir: Path,
    assetdir: Path | None,
    diagnostics: Diagnostics,
) -> str:
    """Resolve a locator to the script path used for naming and loading.

    A same-named file under ``<assetdir>/other/`` wins over the case tree and
    is reported relative to ``casedir``. A locator missing from the case tree
    only produces a warning; loading it fails later.
    """
    if assetdir is not None:
        override = Path(assetdir, OVERRIDE_CATEGORY, script)
        if override.is_file():
            diagnostics.diag(f"Found override test module for {script}: {override}")
            return os.path.relpath(override, casedir)
    if not Path(casedir, script).is_file():
        diagnostics.warn(f"loadtest needs a script below {casedir} - {script} is not")
        return os.path.relpath(script, casedir)
    return f"{casedir}/{script}"


def parse_test_path(script_path: str) -> tuple[str, str]:
    # Returns (name, category).
    match = _UNIT_PATH.search(script_path)
    if match is None:
        raise LocatorError(
            f"script path '{script_path}' does not match required pattern <category>/<name>{UNIT_SUFFIX}"
        )
    category, name = match.group(1), match.group(2)
    if category != OVERRIDE_CATEGORY:
        nested = _NESTED_CATEGORY.search(script_path)
        if nested is not None:
            category = nested.group(2)
    return name, category


def script_location(script_path: str, casedir: Path) -> Path:
    # Paths reported relative to the case tree are loaded from there.
    path = Path(script_path)
    if path.is_absolute():
        return path
    return Path(casedir, path)
