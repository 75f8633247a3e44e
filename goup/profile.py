"""Setting up the goup environment file and the user's shell profiles."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from goup.install import run_install
from goup.paths import (
    go_base_dir,
    goup_bin_dir,
    goup_current_bin_dir,
    goup_env_file,
    profile_files,
)
from goup.prompt import InputFunc, confirm

GOUP_ENV_FILE_CONTENT = 'export PATH="$HOME/go/current/bin:$PATH"'
PROFILE_FILE_SOURCE_CONTENT = 'source "$HOME/go/env"'

_WELCOME_HEAD = """Welcome to Goup!

Goup and Go will be located at:

  {goup_dir}

The Goup command will be located at:

  {goup_bin_dir}

The go, gofmt and other Go commands will be located at:

  {current_go_bin_dir}

To get started you need Goup's bin directory ({goup_bin_dir}) and
Go's bin directory ({current_go_bin_dir}) in your PATH environment
variable. These two paths will be added to your PATH environment variable by
modifying the profile files located at:
"""

_WELCOME_TAIL = """

Next time you log in this will be done automatically. To configure your
current shell run source $HOME/.go/env.
"""


def check_string_exists_file(filename: str | os.PathLike, value: str) -> bool:
    """Report whether the file has a line equal to value; a missing file has none."""
    try:
        with open(filename, encoding="utf-8", errors="surrogateescape", newline="") as f:
            for line in f:
                if line.removesuffix("\n").removesuffix("\r") == value:
                    return True
    except FileNotFoundError:
        return False
    return False


def append_to_file(filename: str | os.PathLike, value: str) -> None:
    """Append value on its own line unless the file already holds that line."""
    if check_string_exists_file(filename, value):
        return
    fd = os.open(filename, os.O_APPEND | os.O_WRONLY | os.O_CREAT, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write("\n" + value + "\n")


def append_source_to_profiles(profiles: Iterable[str | os.PathLike]) -> None:
    """Make every profile file source the goup environment file."""
    for profile in profiles:
        append_to_file(profile, PROFILE_FILE_SOURCE_CONTENT)


def write_env_file() -> Path:
    """Write a fresh goup environment file and return its path."""
    env_file = goup_env_file()
    env_file.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    env_file.unlink(missing_ok=True)
    fd = os.open(env_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o664)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(GOUP_ENV_FILE_CONTENT)
    return env_file


def render_welcome(
    goup_dir: str | os.PathLike,
    goup_bin_dir: str | os.PathLike,
    current_go_bin_dir: str | os.PathLike,
    profile_files: Iterable[str | os.PathLike],
) -> str:
    """The welcome text shown before initialisation."""
    head = _WELCOME_HEAD.format(
        goup_dir=os.fspath(goup_dir),
        goup_bin_dir=os.fspath(goup_bin_dir),
        current_go_bin_dir=os.fspath(current_go_bin_dir),
    )
    listing = "".join(f"\n  {os.fspath(p)}" for p in profile_files)
    return head + listing + _WELCOME_TAIL


def run_init(
    skip_install: bool = False,
    skip_prompt: bool = False,
    host: str | None = None,
    input_func: InputFunc | None = None,
) -> None:
    """Set up the environment file and profiles, then optionally install Go."""
    profiles = profile_files()
    print(
        render_welcome(go_base_dir(), goup_bin_dir(), goup_current_bin_dir(), profiles),
        end="",
    )

    if not skip_prompt:
        print("")
        confirm("Would you like to proceed with the installation", input_func)

    write_env_file()
    append_source_to_profiles(profiles)

    if not skip_install:
        print("")
        run_install([], host, input_func)