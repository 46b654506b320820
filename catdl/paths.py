from __future__ import annotations
from pathlib import Path
from platformdirs import PlatformDirs

APP = "catdl"
AUTHOR = "catdl"


def get_dirs() -> dict[str, Path]:
    d = PlatformDirs(appname=APP, appauthor=AUTHOR, roaming=True)
    paths = {
        "config": Path(d.user_config_dir),  # config files
        "logs": Path(d.user_log_dir),       # rotating log file
    }
    for p in paths.values():
        p.mkdir(parents=True, exist_ok=True)
    return paths


def download_dir(configured: str | None = None) -> Path:
    """Configured download dir, else the user's downloads folder."""
    if configured:
        p = Path(configured).expanduser()
    else:
        p = Path(PlatformDirs(appname=APP, appauthor=AUTHOR).user_downloads_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p
