from __future__ import annotations

import json
import random
import string
from pathlib import Path

import pytest
from typer.testing import CliRunner

from thoughtloop import __version__
from thoughtloop.cli.main import app
from thoughtloop.core.global_paths import GlobalPath

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path: Path) -> Path:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "config", classmethod(lambda cls: str(tmp_path / "global")))
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _letters(count: int, seed: int) -> str:
    rng = random.Random(seed)
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(count))


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_check_reports_repeating_transcript(isolated: Path) -> None:
    transcript = isolated / "loop.txt"
    transcript.write_text(_letters(300, seed=1) * 25, encoding="utf-8")

    result = runner.invoke(app, ["check", str(transcript), "--chunk", "40"])

    assert result.exit_code == 1
    assert "loop detected" in result.output


def test_check_accepts_varied_transcript(isolated: Path) -> None:
    transcript = isolated / "fine.txt"
    transcript.write_text(_letters(8000, seed=2), encoding="utf-8")

    result = runner.invoke(app, ["check", str(transcript)])

    assert result.exit_code == 0
    assert "no loop" in result.output


def test_config_prints_resolved_settings(isolated: Path) -> None:
    (isolated / "thoughtloop.json").write_text(
        json.dumps({"detector": {"minLevenshteinDistance": 15}}),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["detector"]["minLevenshteinDistance"] == 15
    assert payload["detector"]["maxSegmentLen"] == 300


def test_invalid_config_exits_with_usage_error(isolated: Path) -> None:
    (isolated / "thoughtloop.json").write_text(
        json.dumps({"detector": {"maxSegmentLen": 0}}),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 2
