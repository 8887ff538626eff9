from __future__ import annotations

from pathlib import Path

import pytest

from autotest_kernel.kernel.locator import LocatorError, find_script, parse_test_path
from autotest_kernel.observability.adapters.logging import MemoryLogSink
from autotest_kernel.observability.diagnostics import Diagnostics


@pytest.mark.parametrize(
    ("script_path", "expected"),
    [
        ("/cases/tests/console/zypper_in.py", ("zypper_in", "console")),
        ("/cases/tests/x11/firefox/start.py", ("start", "x11/firefox")),
        ("/cases/tests/sle/tests/console/network/ping.py", ("ping", "console/network")),
        ("../assets/other/hotfix.py", ("hotfix", "other")),
        ("lib/helper.py", ("helper", "lib")),
    ],
)
def test_parse_test_path_derives_name_and_category(script_path: str, expected: tuple[str, str]) -> None:
    assert parse_test_path(script_path) == expected


def test_parse_test_path_rejects_paths_without_category() -> None:
    with pytest.raises(LocatorError):
        parse_test_path("boot.py")
    with pytest.raises(LocatorError):
        parse_test_path("tests/console/boot.txt")


def test_find_script_prefers_asset_override(tmp_path: Path) -> None:
    casedir = tmp_path / "cases"
    assetdir = tmp_path / "assets"
    (casedir / "tests/console").mkdir(parents=True)
    (casedir / "tests/console/boot.py").write_text("", encoding="utf-8")
    (assetdir / "other/tests/console").mkdir(parents=True)
    (assetdir / "other/tests/console/boot.py").write_text("", encoding="utf-8")
    sink = MemoryLogSink()

    resolved = find_script("tests/console/boot.py", casedir=casedir, assetdir=assetdir, diagnostics=Diagnostics(sink))

    assert resolved == "../assets/other/tests/console/boot.py"
    assert (casedir / resolved).resolve() == (assetdir / "other/tests/console/boot.py").resolve()
    assert sink.texts()[0].startswith("Found override test module for tests/console/boot.py")


def test_find_script_uses_casedir_without_override(tmp_path: Path) -> None:
    casedir = tmp_path / "cases"
    (casedir / "tests/console").mkdir(parents=True)
    (casedir / "tests/console/boot.py").write_text("", encoding="utf-8")

    resolved = find_script(
        "tests/console/boot.py",
        casedir=casedir,
        assetdir=tmp_path / "assets",
        diagnostics=Diagnostics(MemoryLogSink()),
    )

    assert resolved == f"{casedir}/tests/console/boot.py"


def test_find_script_warns_about_missing_script(tmp_path: Path) -> None:
    sink = MemoryLogSink()

    find_script("tests/console/missing.py", casedir=tmp_path, assetdir=None, diagnostics=Diagnostics(sink))

    assert sink.messages[0].level == "warning"
    assert "missing.py is not" in sink.messages[0].message
