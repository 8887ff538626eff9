from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from autotest_kernel.app.cli import EXIT_LOAD_FAILED, EXIT_OK, main
from autotest_kernel.kernel.results import load_schedule


def _config(tmp_path: Path) -> Path:
    path = tmp_path / "runner.yml"
    path.write_text(
        f"""
vars:
  CASEDIR: {tmp_path / 'cases'}
  RESULT_DIR: {tmp_path / 'results'}
logging:
  exporters:
    - kind: jsonl
      settings:
        path: {tmp_path / 'autotest.jsonl'}
""",
        encoding="utf-8",
    )
    return path


def test_schedule_writes_order_and_lists_units(
    tmp_path: Path,
    write_unit: Callable[..., Path],
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("AUTOTEST_CASEDIR", raising=False)
    monkeypatch.delenv("AUTOTEST_RESULT_DIR", raising=False)
    cases = tmp_path / "cases"
    write_unit(cases, "tests/boot/grub.py")
    write_unit(cases, "tests/console/zypper.py")
    write_unit(cases, "tests/console/curl.py")

    code = main(["--config", str(_config(tmp_path)), "schedule", "tests/boot/grub.py", "--dir", "tests/console"])

    assert code == EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "console-curl\tcurl\ttests/console/curl.py"
    assert out[2] == "boot-grub\tgrub\ttests/boot/grub.py"
    assert out[-1] == f"3 units scheduled, written to {tmp_path / 'results' / 'test_order.json'}"
    # Directories are resolved before single locators.
    assert [record.name for record in load_schedule(tmp_path / "results/test_order.json")] == [
        "curl",
        "zypper",
        "grub",
    ]
    records = [json.loads(line) for line in (tmp_path / "autotest.jsonl").read_text(encoding="utf-8").splitlines()]
    assert any(record["message"].startswith("scheduling grub") for record in records)


def test_cli_overrides_take_precedence(
    tmp_path: Path,
    write_unit: Callable[..., Path],
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("AUTOTEST_CASEDIR", raising=False)
    monkeypatch.delenv("AUTOTEST_RESULT_DIR", raising=False)
    other = tmp_path / "other"
    write_unit(other, "tests/x11/firefox.py")

    code = main(
        [
            "--config",
            str(_config(tmp_path)),
            "--casedir",
            str(other),
            "--result-dir",
            str(tmp_path / "out"),
            "schedule",
            "tests/x11/firefox.py",
        ]
    )

    assert code == EXIT_OK
    assert (tmp_path / "out" / "test_order.json").exists()
    assert "x11-firefox" in capsys.readouterr().out


def test_load_failure_exits_with_status_2(
    tmp_path: Path,
    write_unit: Callable[..., Path],
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("AUTOTEST_CASEDIR", raising=False)
    broken = write_unit(tmp_path / "cases", "tests/console/broken.py")
    broken.write_text("def run(:\n", encoding="utf-8")

    code = main(["--config", str(_config(tmp_path)), "schedule", "tests/console/broken.py"])

    assert code == EXIT_LOAD_FAILED
    assert "error on tests/console/broken.py" in capsys.readouterr().err
    state = json.loads((tmp_path / "results" / "base_state.json").read_text(encoding="utf-8"))
    assert state["component"] == "tests"


def test_config_error_exits_with_status_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("AUTOTEST_CASEDIR", raising=False)
    path = tmp_path / "runner.yml"
    path.write_text("vars: {}\nworkers: 4\n", encoding="utf-8")

    assert main(["--config", str(path), "schedule"]) == EXIT_LOAD_FAILED
    assert "Unknown top-level keys" in capsys.readouterr().err


def test_schedule_subcommand_is_required() -> None:
    with pytest.raises(SystemExit):
        main([])
