"""
config — Loads config.yaml with env var overrides.

Precedence: env vars > config.yaml > defaults
"""
from __future__ import annotations
import os
from pathlib import Path
from dataclasses import dataclass
import yaml

from .naming import TitleFormat


@dataclass
class Config:
    # Downloads
    download_dir: str = ""  # empty = use platformdirs downloads dir
    title_format: str = TitleFormat.TXCX.value

    # Upstream
    request_timeout: float = 30.0
    max_season: int = 15

    # Orchestrator pacing (seconds)
    queue_throttle_s: float = 1.8
    done_clear_delay_s: float = 1.5

    # Web server
    web_host: str = "0.0.0.0"
    web_port: int = 8080

    # Logging
    log_level: str = "INFO"


def load_config(config_path: str | Path | None = None) -> Config:
    """Load config from YAML file, then override with env vars."""
    cfg = Config()

    # 1. Load from YAML if available
    if config_path is None:
        config_path = os.environ.get("CATDL_CONFIG", "config.yaml")
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        for key, value in data.items():
            key_norm = key.replace("-", "_")
            if hasattr(cfg, key_norm) and value is not None:
                setattr(cfg, key_norm, value)

    # 2. Override with env vars (CATDL_ prefix)
    env_map = {
        "CATDL_DOWNLOAD_DIR": "download_dir",
        "CATDL_TITLE_FORMAT": "title_format",
        "CATDL_REQUEST_TIMEOUT": "request_timeout",
        "CATDL_MAX_SEASON": "max_season",
        "CATDL_QUEUE_THROTTLE": "queue_throttle_s",
        "CATDL_DONE_CLEAR_DELAY": "done_clear_delay_s",
        "CATDL_WEB_HOST": "web_host",
        "CATDL_WEB_PORT": "web_port",
        "CATDL_LOG_LEVEL": "log_level",
    }
    for env_key, attr in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            field_type = type(getattr(cfg, attr))
            if field_type == int:
                setattr(cfg, attr, int(val))
            elif field_type == float:
                setattr(cfg, attr, float(val))
            else:
                setattr(cfg, attr, val)

    # Reject unknown filename formats early
    cfg.title_format = TitleFormat(cfg.title_format).value
    return cfg
