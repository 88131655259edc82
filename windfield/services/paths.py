from __future__ import annotations

from pathlib import Path


def repo_root() -> Path:
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "windfield").is_dir() and (parent / "pyproject.toml").is_file():
            return parent
    return Path.cwd()


def default_gfs_cache_dir() -> Path:
    return repo_root() / "herbie_cache" / "gfs"
