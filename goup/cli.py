"""Command-line entry point for goup."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from collections.abc import Sequence

from goup.archive import ArchiveError
from goup.install import InstallError, go_host, run_install
from goup.paths import version_string
from goup.profile import run_init
from goup.prompt import PromptAborted
from goup.upgrade import UpgradeError, run_upgrade
from goup.versions import (
    list_installed_versions,
    list_remote_versions,
    remove_versions,
    render_table,
    run_set_default,
)

_ERRORS = (
    InstallError,
    UpgradeError,
    ArchiveError,
    PromptAborted,
    LookupError,
    ValueError,
    OSError,
    subprocess.SubprocessError,
)

_INSTALL_EPILOG = """examples:
  goup install
  goup install 1.15.2
  goup install go1.15.2
  goup install tip # Compile Go tip
  goup install tip 1234 # 1234 is the CL number
"""

_SET_EPILOG = """examples:
  goup set # A prompt will show to select a version
  goup set 1.15.2
"""

_REMOVE_EPILOG = """examples:
  goup remove 1.15.2
  goup remove 1.16.1 1.16.2
"""

_SEARCH_EPILOG = """examples:
  goup search
  goup search 1.15
"""


class _StderrHandler(logging.StreamHandler):
    """A handler that always writes to the current ``sys.stderr``."""

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stderr
        super().emit(record)


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("goup")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, _StderrHandler) for h in logger.handlers):
        handler = _StderrHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


def _cmd_install(args: argparse.Namespace) -> str | None:
    versions = [v for v in (args.version, args.cl) if v is not None]
    run_install(versions, args.host)
    return None


def _cmd_set(args: argparse.Namespace) -> str | None:
    run_set_default(args.version)
    return None


def _cmd_remove(args: argparse.Namespace) -> str | None:
    remove_versions(args.versions)
    return None


def _cmd_init(args: argparse.Namespace) -> str | None:
    run_init(skip_install=args.skip_install, skip_prompt=args.skip_prompt)
    return None


def _cmd_list(args: argparse.Namespace) -> str | None:
    versions = list_installed_versions()
    return render_table(versions)


def _cmd_search(args: argparse.Namespace) -> str | None:
    for ver in list_remote_versions(args.regexp or ""):
        print(ver)
    return None


def _cmd_version(args: argparse.Namespace) -> str | None:
    text = version_string()
    return text if text.endswith("\n") else text + "\n"


def _cmd_upgrade(args: argparse.Namespace) -> str | None:
    run_upgrade(args.version)
    return None


def build_parser() -> argparse.ArgumentParser:
    """The argument parser for all goup commands."""
    parser = argparse.ArgumentParser(prog="goup", description="The Go installer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser(
        "install",
        help="Install Go with a version",
        description=(
            "Install Go by providing a version. If no version is provided, install\n"
            "the latest Go. If the version is 'tip', an optional change list (CL)\n"
            "number can be provided."
        ),
        epilog=_INSTALL_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("version", nargs="?", metavar="VERSION")
    p.add_argument("cl", nargs="?", metavar="CL")
    p.add_argument(
        "--host",
        default=go_host(),
        help="host that is used to download Go. The GOUP_GO_HOST environment "
        "variable overrides this flag.",
    )
    p.set_defaults(func=_cmd_install)

    p = sub.add_parser(
        "set",
        help="Set the default Go version",
        description=(
            "Set the default Go version to one specified. If no version is provided,\n"
            "a prompt will show to select a installed Go version."
        ),
        epilog=_SET_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("version", nargs="?", metavar="VERSION")
    p.set_defaults(func=_cmd_set)

    p = sub.add_parser(
        "remove",
        aliases=["rm"],
        help="Remove Go with a version",
        description="Remove Go by providing a version.",
        epilog=_REMOVE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("versions", nargs="*", metavar="VERSION")
    p.set_defaults(func=_cmd_remove)

    p = sub.add_parser("init", description="Initialize the goup environment file")
    p.add_argument("--skip-install", action="store_true", help="Skip installing Go")
    p.add_argument(
        "--skip-prompt", action="store_true", help="Skip confirmation prompt"
    )
    p.set_defaults(func=_cmd_init)

    p = sub.add_parser(
        "list",
        aliases=["ls"],
        help="List all installed Go",
        description="List all installed Go versions.",
    )
    p.set_defaults(func=_cmd_list)

    p = sub.add_parser(
        "search",
        help="Search Go versions to install",
        description=(
            "Search available Go versions matching a regexp filter for installation. "
            "If no filter is provided,\nlist all available versions."
        ),
        epilog=_SEARCH_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("regexp", nargs="?", metavar="REGEXP")
    p.set_defaults(func=_cmd_search)

    p = sub.add_parser("version", help="Show goup version")
    p.set_defaults(func=_cmd_version)

    p = sub.add_parser(
        "upgrade",
        help="Upgrade goup",
        description=(
            "Upgrade goup by providing a version. If no version is provided, "
            "upgrade to the latest goup."
        ),
    )
    p.add_argument("version", nargs="?", metavar="VERSION")
    p.set_defaults(func=_cmd_upgrade)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run goup with the given arguments and return the exit status."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        output = args.func(args)
    except _ERRORS as exc:
        logging.getLogger("goup").critical("%s", exc)
        return 1
    if output:
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())