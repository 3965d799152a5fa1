from __future__ import annotations

import json
from pathlib import Path

import pytest

from thoughtloop.core.config import ConfigError, ConfigManager
from thoughtloop.core.global_paths import GlobalPath


@pytest.fixture
def dirs(monkeypatch, tmp_path: Path) -> tuple[Path, Path]:  # type: ignore[no-untyped-def]
    global_dir = tmp_path / "global"
    project = tmp_path / "project"
    global_dir.mkdir()
    project.mkdir()
    monkeypatch.setattr(GlobalPath, "config", classmethod(lambda cls: str(global_dir)))
    return global_dir, project


@pytest.mark.anyio
async def test_defaults_without_any_config(dirs: tuple[Path, Path]) -> None:
    _, project = dirs

    cfg = await ConfigManager.load(str(project))

    assert cfg.detector.max_segment_len == 300
    assert cfg.detector.max_history_segments == 20
    assert cfg.detector.min_levenshtein_distance == 30
    assert cfg.detector.retry.attempts == 1
    assert cfg.server.url == "http://127.0.0.1:4096"
    assert ConfigManager.sources() == []


@pytest.mark.anyio
async def test_sources_merge_in_precedence_order(monkeypatch, dirs: tuple[Path, Path]) -> None:  # type: ignore[no-untyped-def]
    global_dir, project = dirs
    (global_dir / "thoughtloop.json").write_text(json.dumps({
        "detector": {"maxSegmentLen": 200, "minLevenshteinDistance": 10},
        "server": {"url": "http://global:1"},
    }), encoding="utf-8")
    (project / "thoughtloop.jsonc").write_text(
        '{\n  // project override\n  "detector": {"minLevenshteinDistance": 12},\n'
        '  "server": {"url": "{env:TL_TEST_URL}"}\n}\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("TL_TEST_URL", "http://project:2")
    monkeypatch.setenv("THOUGHTLOOP_CONFIG_CONTENT", json.dumps({"detector": {"suppressReply": True}}))

    cfg = await ConfigManager.load(str(project))

    assert cfg.detector.max_segment_len == 200
    assert cfg.detector.min_levenshtein_distance == 12
    assert cfg.detector.suppress_reply is True
    assert cfg.server.url == "http://project:2"
    assert ConfigManager.sources()[-1] == "THOUGHTLOOP_CONFIG_CONTENT"
    assert await ConfigManager.get() is cfg


@pytest.mark.anyio
async def test_invalid_values_raise_config_error(dirs: tuple[Path, Path]) -> None:
    _, project = dirs
    (project / "thoughtloop.json").write_text(
        json.dumps({"detector": {"maxHistorySegments": 1}}),
        encoding="utf-8",
    )

    with pytest.raises(ConfigError) as exc:
        await ConfigManager.load(str(project))

    assert exc.value.path.endswith("thoughtloop.json")


@pytest.mark.anyio
async def test_unparseable_file_is_skipped(dirs: tuple[Path, Path]) -> None:
    _, project = dirs
    (project / "thoughtloop.json").write_text("{not json", encoding="utf-8")

    cfg = await ConfigManager.load(str(project))

    assert cfg.detector.max_segment_len == 300
