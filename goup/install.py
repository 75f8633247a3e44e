"""Downloading, verifying and activating Go releases."""

from __future__ import annotations

import http.client
import logging
import os
import platform
import re
import subprocess
import sys
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

import requests

from goup.archive import ArchiveError, ProgressWriter, unpack_archive, verify_sha256
from goup.paths import VERSION, goup_current_dir, goup_version_dir
from goup.prompt import InputFunc, PromptAborted, confirm

logger = logging.getLogger(__name__)

GO_HOST = "go.dev"
GO_DOWNLOAD_BASE_URL = "https://dl.google.com/go"
GO_SOURCE_UPSTREAM_GIT_URL = "https://go.googlesource.com/go"
GO_SOURCE_GIT_URL = GO_SOURCE_UPSTREAM_GIT_URL

UNPACKED_OKAY = ".unpacked-success"

_CHUNK = 1 << 16

_OS_PREFIXES = (
    ("linux", "linux"),
    ("darwin", "darwin"),
    ("win32", "windows"),
    ("cygwin", "windows"),
    ("freebsd", "freebsd"),
    ("openbsd", "openbsd"),
    ("netbsd", "netbsd"),
    ("dragonfly", "dragonfly"),
    ("sunos", "solaris"),
    ("aix", "aix"),
)

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "arm": "arm",
    "ppc64le": "ppc64le",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "mips64": "mips64",
    "loongarch64": "loong64",
}

_GIT_ERRORS = (subprocess.CalledProcessError, OSError)


class InstallError(Exception):
    """Raised when a Go version cannot be installed or activated."""


def go_source_git_url() -> str:
    """Git URL of the Go source tree, overridable with GOUP_GO_SOURCE_GIT_URL."""
    return os.environ.get("GOUP_GO_SOURCE_GIT_URL") or GO_SOURCE_GIT_URL


def go_source_upstream_git_url() -> str:
    """Git URL of the upstream Go repository used for change lists."""
    return os.environ.get("GOUP_GO_SOURCE_GIT_URL") or GO_SOURCE_UPSTREAM_GIT_URL


def go_download_base_url() -> str:
    """Base URL for release archives, overridable with GOUP_GO_DOWNLOAD_BASE_URL."""
    return os.environ.get("GOUP_GO_DOWNLOAD_BASE_URL") or GO_DOWNLOAD_BASE_URL


def go_host() -> str:
    """Host that reports the latest Go version, overridable with GOUP_GO_HOST."""
    return os.environ.get("GOUP_GO_HOST") or GO_HOST


def go_os() -> str:
    """The running operating system, named the way Go release archives name it."""
    plat = sys.platform
    for prefix, name in _OS_PREFIXES:
        if plat.startswith(prefix):
            return name
    return plat


def go_arch() -> str:
    """The machine architecture in Go naming, overridable with GOUP_GO_ARCH."""
    arch = os.environ.get("GOUP_GO_ARCH")
    if arch:
        return arch
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def user_agent() -> str:
    """User-Agent header value sent with every request."""
    return f"goup/{VERSION}"


def _headers() -> dict[str, str]:
    return {"User-Agent": user_agent()}


def normalize_version(ver: str) -> str:
    """Add the ``go`` prefix to a version if it lacks one."""
    return ver if ver.startswith("go") else "go" + ver


def version_archive_url(version: str) -> str:
    """URL of the release archive for the given version on this platform."""
    goos = go_os()
    ext = "zip" if goos == "windows" else "tar.gz"
    arch = go_arch()
    if goos == "linux" and arch == "arm":
        arch = "armv6l"
    return f"{go_download_base_url()}/{version}.{goos}-{arch}.{ext}"


def make_script() -> str:
    """Name of the script that builds Go from source on this platform."""
    goos = go_os()
    if goos == "plan9":
        return "make.rc"
    if goos == "windows":
        return "make.bat"
    return "make.bash"


def latest_go_version(host: str | None = None) -> str:
    """Ask the Go host which version is the latest release."""
    host = host or go_host()
    base = host if "://" in host else f"https://{host}"
    try:
        resp = requests.get(f"{base}/VERSION?m=text", headers=_headers())
    except requests.RequestException as exc:
        raise InstallError(f"Getting current Go version failed: {exc}") from exc
    with resp:
        if resp.status_code > 299:
            raise InstallError(
                f"Could not get current Go version: HTTP {resp.status_code}: "
                f"{resp.content[:1024]!r}"
            )
        text = resp.text
    line, newline, _ = text.partition("\n")
    if not newline:
        raise InstallError("Could not get current Go version: unexpected end of response")
    return line.strip()


def slurp_url_to_string(url: str) -> str:
    """Download the given URL and return its body as text."""
    try:
        res = requests.get(url, headers=_headers())
    except requests.RequestException as exc:
        raise InstallError(f"reading {url}: {exc}") from exc
    with res:
        if res.status_code != 200:
            raise InstallError(f"{url}: {res.status_code} {res.reason}")
        return res.text


def _download(dst: Path, src_url: str) -> None:
    headers = {**_headers(), "Accept-Encoding": "identity", "Connection": "close"}
    with open(dst, "wb") as f, requests.get(src_url, headers=headers, stream=True) as res:
        if res.status_code != 200:
            raise InstallError(f"{res.status_code} {res.reason}")
        try:
            total = int(res.headers.get("Content-Length", -1))
        except ValueError:
            total = -1
        pw = ProgressWriter(w=f, total=total)
        for chunk in res.iter_content(_CHUNK):
            if chunk:
                pw.write(chunk)
        if total != -1 and total != pw.n:
            raise InstallError(f"copied {pw.n} bytes; expected {total}")
        pw.update()


def copy_from_url(dst_file: str | os.PathLike, src_url: str) -> None:
    """Download src_url into dst_file, removing the file if the download fails."""
    dst = Path(dst_file)
    try:
        _download(dst, src_url)
    except requests.RequestException as exc:
        dst.unlink(missing_ok=True)
        raise InstallError(str(exc)) from exc
    except BaseException:
        dst.unlink(missing_ok=True)
        raise


def set_installed(target_dir: str | os.PathLike) -> None:
    """Mark target_dir as a successfully unpacked installation."""
    Path(target_dir, UNPACKED_OKAY).write_bytes(b"")


def symlink_version(ver: str) -> None:
    """Point the ``current`` link at the installation of ver."""
    current = goup_current_dir()
    version = goup_version_dir(ver)
    try:
        os.stat(version)
    except FileNotFoundError:
        raise InstallError(
            f"Go version {ver} is not installed. Install it with `goup install`."
        ) from None

    with suppress(OSError):
        if current.is_dir() and not current.is_symlink():
            current.rmdir()
        else:
            current.unlink()

    os.symlink(version, current, target_is_directory=True)


def switch_version(ver: str) -> str:
    """Make ver the default Go version and return its normalized name."""
    ver = normalize_version(ver)
    symlink_version(ver)
    logger.info("Default Go is set to '%s'", ver)
    return ver


def install(version: str) -> None:
    """Download, verify and unpack a binary release of Go."""
    target_dir = goup_version_dir(version)
    go_url = version_archive_url(version)

    try:
        res = requests.head(go_url, headers=_headers(), allow_redirects=True)
    except requests.RequestException as exc:
        raise InstallError(str(exc)) from exc
    if res.status_code == 404:
        raise InstallError(
            f"no binary release of {version} for {go_os()}/{go_arch()} at {go_url}"
        )
    if res.status_code != 200:
        status = http.client.responses.get(res.status_code, "")
        raise InstallError(f"server returned {status} checking size of {go_url}")
    try:
        content_length = int(res.headers.get("Content-Length", -1))
    except ValueError:
        content_length = -1

    target_dir.mkdir(parents=True, exist_ok=True)

    archive_file = target_dir / go_url.rsplit("/", 1)[-1]
    try:
        size: int | None = archive_file.stat().st_size
    except FileNotFoundError:
        size = None
    if size != content_length:
        try:
            copy_from_url(archive_file, go_url)
        except InstallError as exc:
            raise InstallError(f"error downloading {go_url}: {exc}") from exc
        size = archive_file.stat().st_size
        if size != content_length:
            raise InstallError(
                f"downloaded file {archive_file} size {size} doesn't match "
                f"server size {content_length}"
            )

    want_sha = slurp_url_to_string(go_url + ".sha256")
    try:
        verify_sha256(archive_file, want_sha.strip())
    except ArchiveError as exc:
        raise InstallError(f"error verifying SHA256 of {archive_file}: {exc}") from exc

    logger.info("Unpacking %s ...", archive_file)
    try:
        unpack_archive(target_dir, archive_file)
    except (ArchiveError, OSError) as exc:
        raise InstallError(f"extracting archive {archive_file}: {exc}") from exc

    set_installed(target_dir)
    logger.info("Success: %s installed in %s", version, target_dir)


def find_latest_patch_set(refs: str, cl_number: str) -> tuple[str, int]:
    """Find the ref of the newest patch set of a change list in ls-remote output."""
    pattern = re.compile(rf"refs/changes/\d\d/{re.escape(cl_number)}/(\d+)")
    matches = list(pattern.finditer(refs))
    if not matches:
        raise InstallError(f"CL {cl_number} not found")
    best = max(matches, key=lambda m: int(m.group(1)))
    return best.group(0), int(best.group(1))


def install_tip(cl_number: str = "", input_func: InputFunc | None = None) -> None:
    """Build Go from the development tree, optionally at a change list."""
    root = goup_version_dir("gotip")

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=root, check=True)

    def git_output(*args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=root,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        return result.stdout

    if not (root / ".git").exists():
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError(f"failed to create repository: {exc}") from exc
        try:
            git("clone", "--depth=1", go_source_git_url(), str(root))
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to clone git repository: {exc}") from exc
        try:
            git("remote", "add", "upstream", go_source_upstream_git_url())
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to add upstream git repository: {exc}") from exc

    if cl_number:
        try:
            confirm(
                f"This will download and execute code from go.dev/cl/{cl_number}, continue",
                input_func,
            )
        except PromptAborted as exc:
            raise InstallError("interrupted") from exc

        try:
            refs = git_output("ls-remote", "upstream")
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to list remotes: {exc}") from exc
        ref, patch_set = find_latest_patch_set(refs, cl_number)
        logger.info("Fetching CL %s, Patch Set %d...", cl_number, patch_set)
        try:
            git("fetch", "upstream", ref)
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to fetch {ref}: {exc}") from exc
    else:
        logger.info("Updating the go development tree...")
        try:
            git("fetch", "origin", "master")
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to fetch git repository updates: {exc}") from exc

    try:
        git("-c", "advice.detachedHead=false", "checkout", "FETCH_HEAD")
    except _GIT_ERRORS as exc:
        raise InstallError(f"failed to checkout git repository: {exc}") from exc
    # Ask about untracked leftovers, then silently drop ignored build artifacts.
    for args in (("clean", "-i", "-d"), ("clean", "-q", "-f", "-d", "-X")):
        try:
            git(*args)
        except _GIT_ERRORS as exc:
            raise InstallError(f"failed to cleanup git repository: {exc}") from exc

    src = root / "src"
    env = None
    if go_os() == "windows":
        try:
            goroot = subprocess.run(
                ["go", "env", "GOROOT"],
                check=True,
                stdout=subprocess.PIPE,
                text=True,
            ).stdout.strip()
        except _GIT_ERRORS as exc:
            raise InstallError(
                f"failed to detect an existing go installation for bootstrap: {exc}"
            ) from exc
        env = {**os.environ, "GOROOT_BOOTSTRAP": goroot}
    try:
        subprocess.run([str(src / make_script())], cwd=src, env=env, check=True)
    except _GIT_ERRORS as exc:
        raise InstallError(f"failed to build go: {exc}") from exc


def run_install(
    args: Sequence[str] = (),
    host: str | None = None,
    input_func: InputFunc | None = None,
) -> str:
    """Install the requested (or latest) Go version and make it the default."""
    args = list(args)
    ver = args[0] if args else latest_go_version(host)
    ver = normalize_version(ver)

    if ver == "gotip":
        install_tip(args[1] if len(args) > 1 else "", input_func)
    else:
        install(ver)

    return switch_version(ver)