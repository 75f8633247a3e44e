"""Filesystem locations used by goup, and the goup version string."""

from __future__ import annotations

import os
from pathlib import Path

VERSION = "0.7.0"

_HOMEBREW_GO_DIR = "/opt/homebrew/Cellar/go"
_PROFILE_NAMES = (".profile", ".zprofile", ".bash_profile")


def home_dir() -> Path:
    """Return the current user's home directory."""
    home = os.path.expanduser("~")
    if home == "~":
        raise RuntimeError("cannot determine the user's home directory")
    return Path(home)


def go_base_dir(*args: str) -> Path:
    """Return ``~/go`` joined with the given path elements."""
    return home_dir().joinpath("go", *args)


def goup_bin_dir() -> Path:
    """Directory that holds the goup command."""
    return go_base_dir("bin")


def goup_current_dir() -> Path:
    """Symlink pointing at the active Go installation."""
    return go_base_dir("current")


def goup_env_file() -> Path:
    """Shell snippet that puts the active Go on PATH."""
    return go_base_dir("env")


def goup_current_bin_dir() -> Path:
    """The bin directory of the active Go installation."""
    return go_base_dir("current", "bin")


def goup_version_dir(ver: str) -> Path:
    """Directory where the given Go version is installed."""
    return go_base_dir(ver)


def homebrew_go_dir() -> Path:
    """Where Homebrew keeps its Go installations."""
    return Path(_HOMEBREW_GO_DIR)


def profile_files() -> list[Path]:
    """Shell profile files that goup updates during init."""
    home = home_dir()
    return [home / name for name in _PROFILE_NAMES]


def version_string() -> str:
    """The line printed by ``goup version``."""
    return f"goup version v{VERSION}"