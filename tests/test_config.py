"""Config loading: defaults, YAML file, env overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from catdl.config import Config, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for key in (
        "CATDL_CONFIG", "CATDL_DOWNLOAD_DIR", "CATDL_TITLE_FORMAT", "CATDL_REQUEST_TIMEOUT",
        "CATDL_MAX_SEASON", "CATDL_QUEUE_THROTTLE", "CATDL_DONE_CLEAR_DELAY",
        "CATDL_WEB_HOST", "CATDL_WEB_PORT", "CATDL_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_file(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg == Config()
    assert cfg.title_format == "txcx"
    assert cfg.queue_throttle_s == 1.8


def test_yaml_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "download-dir: /srv/videos\n"
        "title_format: sxxexx\n"
        "web_port: 9000\n"
        "unknown_key: ignored\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CATDL_WEB_PORT", "9100")
    monkeypatch.setenv("CATDL_QUEUE_THROTTLE", "0.5")

    cfg = load_config(path)

    assert cfg.download_dir == "/srv/videos"
    assert cfg.title_format == "sxxexx"
    assert cfg.web_port == 9100
    assert cfg.queue_throttle_s == 0.5
    assert not hasattr(cfg, "unknown_key")


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "other.yaml"
    path.write_text("max_season: 4\n", encoding="utf-8")
    monkeypatch.setenv("CATDL_CONFIG", str(path))
    assert load_config().max_season == 4


def test_unknown_title_format(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATDL_TITLE_FORMAT", "s1e1")
    with pytest.raises(ValueError):
        load_config(tmp_path / "missing.yaml")
