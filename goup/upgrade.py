"""Upgrading the goup command itself from published releases."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import requests

from goup.archive import ProgressWriter
from goup.install import go_arch, go_os, user_agent
from goup.paths import VERSION

logger = logging.getLogger(__name__)

_CHUNK = 1 << 16
_OWNER = "owenthereal"
_REPO = "goup"


class UpgradeError(Exception):
    """Raised when goup cannot be upgraded."""


@dataclass
class Asset:
    """A downloadable file attached to a release."""

    name: str
    size: int = 0
    url: str = ""
    downloads: int = 0


@dataclass
class Release:
    """A published goup release."""

    version: str
    notes: str = ""
    published_at: datetime | None = None
    url: str = ""
    assets: list[Asset] = field(default_factory=list)

    def find_tarball(self, os_name: str, arch: str) -> Asset | None:
        """The asset built for the given system, if there is one."""
        wanted = f"{os_name}-{arch}"
        return next((a for a in self.assets if a.name == wanted), None)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def release_from_json(data: dict[str, Any]) -> Release:
    """Build a Release from a GitHub release object."""
    return Release(
        version=data.get("tag_name") or "",
        notes=data.get("body") or "",
        published_at=_parse_time(data.get("published_at")),
        url=data.get("url") or "",
        assets=[
            Asset(
                name=a.get("name") or "",
                size=a.get("size") or 0,
                url=a.get("browser_download_url") or "",
                downloads=a.get("download_count") or 0,
            )
            for a in data.get("assets") or []
        ],
    )


@dataclass
class GitHubStore:
    """Release lookups against a GitHub repository."""

    owner: str
    repo: str
    version: str
    access_token: str = ""
    api_url: str = "https://api.github.com"
    timeout: float = 5.0

    def _get(self, path: str) -> requests.Response:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": user_agent(),
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}/{path}"
        try:
            return requests.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpgradeError(str(exc)) from exc

    def get_release(self, version: str) -> Release:
        """The release tagged ``v<version>``."""
        res = self._get(f"releases/tags/v{version}")
        if res.status_code == 404:
            raise UpgradeError("release not found")
        if res.status_code != 200:
            raise UpgradeError(f"{res.url}: {res.status_code} {res.reason}")
        return release_from_json(res.json())

    def latest_releases(self) -> list[Release]:
        """Releases newer than the running version, newest first."""
        res = self._get("releases")
        if res.status_code != 200:
            raise UpgradeError(f"{res.url}: {res.status_code} {res.reason}")
        latest = []
        for data in res.json():
            tag = data.get("tag_name") or ""
            if tag in (self.version, "v" + self.version):
                break
            latest.append(release_from_json(data))
        return latest


def trim_v_prefix(s: str) -> str:
    """Drop a leading ``v`` from a version tag."""
    return s.removeprefix("v")


def copy_file(dst: str | os.PathLike, src: str | os.PathLike) -> None:
    """Copy src over dst, flush it to disk, and copy the file mode."""
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        shutil.copyfileobj(fin, fout, _CHUNK)
        fout.flush()
        os.fsync(fout.fileno())
    os.chmod(dst, os.stat(src).st_mode)


def install_bin(bin_path: str | os.PathLike, command: str = "goup") -> Path:
    """Replace the command found on PATH with the binary at bin_path."""
    old_bin = shutil.which(command)
    if old_bin is None:
        raise UpgradeError(
            f"error looking up path of {command!r}: executable file not found in $PATH"
        )
    directory = os.path.dirname(old_bin)

    try:
        os.chmod(bin_path, 0o755)
    except OSError as exc:
        raise UpgradeError(f"error in chmod: {exc}") from exc

    dst = os.path.join(directory, command)
    tmp = dst + ".tmp"

    logger.debug("Copy %r to %r", os.fspath(bin_path), tmp)
    try:
        copy_file(tmp, bin_path)
    except OSError as exc:
        raise UpgradeError(f"error in copying: {exc}") from exc

    if go_os() == "windows":
        old = dst + ".old"
        logger.debug("Windows workaround renaming %r to %r", dst, old)
        try:
            os.replace(dst, old)
        except OSError as exc:
            raise UpgradeError(f"error in windows renaming: {exc}") from exc

    logger.debug("Renaming %r to %r", tmp, dst)
    try:
        os.replace(tmp, dst)
    except OSError as exc:
        raise UpgradeError(f"error in renaming: {exc}") from exc
    return Path(dst)


def download_asset(asset: Asset, dest_dir: str | os.PathLike) -> Path:
    """Download the asset into dest_dir, reporting progress, and return its path."""
    dest = Path(dest_dir, asset.name)
    try:
        with requests.get(
            asset.url, headers={"User-Agent": user_agent()}, stream=True
        ) as res:
            if res.status_code != 200:
                raise UpgradeError(f"{res.status_code} {res.reason}")
            try:
                total = int(res.headers.get("Content-Length", -1))
            except ValueError:
                total = -1
            with open(dest, "wb") as f:
                pw = ProgressWriter(w=f, total=total)
                for chunk in res.iter_content(_CHUNK):
                    if chunk:
                        pw.write(chunk)
                pw.update()
    except requests.RequestException as exc:
        raise UpgradeError(str(exc)) from exc
    return dest


@contextmanager
def _hidden_cursor() -> Iterator[None]:
    tty = sys.stdout.isatty()
    if tty:
        sys.stdout.write("\x1b[?25l")
        sys.stdout.flush()
    try:
        yield
    finally:
        if tty:
            sys.stdout.write("\x1b[?25h")
            sys.stdout.flush()


def run_upgrade(version: str | None = None) -> str | None:
    """Upgrade goup to version, or to the newest release; return the new version."""
    store = GitHubStore(
        owner=_OWNER,
        repo=_REPO,
        version=VERSION,
        access_token=os.environ.get("GITHUB_TOKEN", ""),
    )
    with _hidden_cursor():
        if version:
            try:
                release = store.get_release(trim_v_prefix(version))
            except UpgradeError as exc:
                raise UpgradeError(f"error fetching release: {exc}") from exc
        else:
            try:
                releases = store.latest_releases()
            except UpgradeError as exc:
                raise UpgradeError(f"error fetching releases: {exc}") from exc
            if not releases:
                logger.info("No upgrades")
                return None
            release = releases[0]

        asset = release.find_tarball(go_os(), go_arch())
        if asset is None:
            raise UpgradeError("no upgrade for your system")

        with tempfile.TemporaryDirectory() as tmp:
            try:
                bin_path = download_asset(asset, tmp)
            except (UpgradeError, OSError) as exc:
                raise UpgradeError(f"error downloading: {exc}") from exc
            logger.debug("Downloaded release to %s", bin_path)
            try:
                install_bin(bin_path, "goup")
            except UpgradeError as exc:
                raise UpgradeError(f"error installing: {exc}") from exc

    new_version = trim_v_prefix(release.version)
    logger.info("Upgraded to %s", new_version)
    return new_version