from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=1)
def get_backend_root() -> Path:
    # backend/mangareader/core/paths.py -> backend/
    return Path(__file__).resolve().parents[2]


@lru_cache(maxsize=1)
def get_artifacts_root() -> Path:
    path = os.getenv("ARTIFACTS_ROOT")
    return Path(path) if path else (get_backend_root() / "artifacts")


@lru_cache(maxsize=1)
def get_assets_root() -> Path:
    path = os.getenv("ASSETS_ROOT")
    return Path(path) if path else (get_backend_root() / "assets")


def get_default_font_path() -> Path:
    return get_assets_root() / "fonts" / "DejaVuSans-Bold.ttf"
