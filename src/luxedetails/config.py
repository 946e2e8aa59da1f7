"""Storage keys, cache manifest and environment-driven locations."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

STORAGE_KEY = "luxe_users_db"
SESSION_KEY = "luxe_session"

CACHE_NAME = "luxe-details-v1"
ASSETS: tuple[str, ...] = (
    "/",
    "/index.html",
    "/style.css",
    "/app.js",
    "/manifest.json",
    "/icon.png",
    "/bg.png",
    "https://fonts.googleapis.com/css2?family=Outfit:wght@300;400;600;800&display=swap",
    "https://unpkg.com/lucide@latest",
)

DEFAULT_ORIGIN = "http://localhost:8000"


def data_dir() -> Path:
    env = os.environ.get("LUXE_HOME")
    if env:
        return Path(env)
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "luxe-details"


def local_store_path() -> Path:
    return data_dir() / "local.json"


def cache_dir() -> Path:
    return data_dir() / "caches"


def session_path() -> Path:
    """Session file; lives in the runtime dir so it dies with the login session."""
    env = os.environ.get("LUXE_SESSION")
    if env:
        return Path(env)
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime) / "luxe-details" / "session.json"
    uid = os.getuid() if hasattr(os, "getuid") else os.getpid()
    return Path(tempfile.gettempdir()) / f"luxe-details-{uid}" / "session.json"


def origin() -> str:
    return os.environ.get("LUXE_ORIGIN", DEFAULT_ORIGIN)
