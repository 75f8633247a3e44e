"""Listing, searching, removing and selecting Go versions."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from goup.install import go_source_git_url, normalize_version, switch_version
from goup.paths import go_base_dir, goup_current_dir
from goup.prompt import InputFunc, select

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoVersion:
    """An installed Go version and whether it is the active one."""

    ver: str
    current: bool = False


def current_go_version() -> str:
    """Directory name of the active Go installation."""
    return os.path.basename(os.readlink(goup_current_dir()))


def find_go_versions(dir_path: str | os.PathLike) -> list[GoVersion]:
    """Installed Go versions found in dir_path, sorted by directory name."""
    with os.scandir(dir_path) as it:
        entries = sorted(it, key=lambda e: e.name)
    current = current_go_version()
    return [
        GoVersion(ver=entry.name.removeprefix("go"), current=entry.name == current)
        for entry in entries
        if entry.is_dir(follow_symlinks=False)
        and (entry.name.startswith("go") or entry.name == "gotips")
    ]


def list_installed_versions() -> list[GoVersion]:
    """All Go versions installed under the goup base directory."""
    return find_go_versions(go_base_dir())


def render_table(versions: Iterable[GoVersion]) -> str:
    """A text table of versions with the active one starred."""
    header = ["VERSION", "ACTIVE"]
    rows = [[v.ver, "*" if v.current else ""] for v in versions]
    widths = [max(len(cell) for cell in column) for column in zip(header, *rows)]

    def line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(c.center(w) for c, w in zip(cells, widths)) + " |"

    separator = "|" + "|".join("-" * (w + 2) for w in widths) + "|"
    return "\n".join([line(header), separator, *(line(r) for r in rows)]) + "\n"


def _remove_path(path: os.PathLike) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def remove_versions(versions: Sequence[str]) -> None:
    """Delete the installations of the given versions; missing ones are ignored."""
    if not versions:
        raise ValueError("No version is specified")
    for ver in versions:
        logger.info("Removing %s", ver)
        _remove_path(go_base_dir(normalize_version(ver)))


def parse_remote_tags(refs: str, pattern: str = "") -> list[str]:
    """Go versions named by release tags in ls-remote output that match pattern."""
    body = f".*{pattern}.*" if pattern else ".+"
    found = [m.group(1) for m in re.finditer(f"refs/tags/go({body})", refs)]
    if not found:
        raise LookupError("No Go version found")
    return found


def list_remote_versions(pattern: str = "") -> list[str]:
    """Go versions available upstream, oldest first, filtered by pattern."""
    result = subprocess.run(
        ["git", "ls-remote", "--sort=version:refname", "--tags", go_source_git_url()],
        check=True,
        stdout=subprocess.PIPE,
        text=True,
    )
    return parse_remote_tags(result.stdout, pattern)


def run_set_default(
    version: str | None = None, input_func: InputFunc | None = None
) -> str:
    """Make a version the default, asking the user to pick one if none is given."""
    if version:
        switch_version(version)
        return version

    installed = list_installed_versions()
    items = [v.ver for v in installed]
    pos = 0
    for idx, v in enumerate(installed):
        if v.current:
            pos = idx
    chosen = select("Select a version", items, pos, input_func)
    switch_version(chosen)
    return chosen