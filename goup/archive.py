"""Unpacking and verifying Go release archives, and download progress reporting."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import sys
import tarfile
import time
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import BinaryIO, TextIO

logger = logging.getLogger(__name__)

_PREFIX = "go/"
_CHUNK = 1 << 16


class ArchiveError(Exception):
    """Raised when an archive cannot be unpacked or verified."""


def valid_rel_path(p: str) -> bool:
    """Report whether an archive entry name is a safe relative path."""
    return not (p == "" or "\\" in p or p.startswith("/") or "../" in p)


def _strip_prefix(name: str) -> str:
    return name[len(_PREFIX):] if name.startswith(_PREFIX) else name


def unpack_archive(target_dir: str | os.PathLike, archive_file: str | os.PathLike) -> None:
    """Unpack a .zip or .tar.gz archive into target_dir, dropping the leading ``go/``."""
    name = os.fspath(archive_file)
    if name.endswith(".zip"):
        unpack_zip(target_dir, archive_file)
    elif name.endswith(".tar.gz"):
        unpack_tar_gz(target_dir, archive_file)
    else:
        raise ArchiveError("unsupported archive file")


def _kind(member: tarfile.TarInfo) -> str:
    if member.issym():
        return "symlink"
    if member.islnk():
        return "hard link"
    if member.ischr():
        return "character device"
    if member.isblk():
        return "block device"
    if member.isfifo():
        return "named pipe"
    return f"type {member.type!r}"


def unpack_tar_gz(target_dir: str | os.PathLike, archive_file: str | os.PathLike) -> None:
    """Unpack a gzip-compressed tar archive into target_dir."""
    made_dirs: set[str] = set()
    try:
        with tarfile.open(archive_file, "r:gz") as tf:
            for member in tf:
                name = member.name + "/" if member.isdir() else member.name
                if not valid_rel_path(name):
                    raise ArchiveError(f"tar file contained invalid name {name!r}")
                dest = os.path.normpath(os.path.join(target_dir, _strip_prefix(name)))

                if member.isreg():
                    parent = os.path.dirname(dest)
                    if parent not in made_dirs:
                        os.makedirs(parent, mode=0o755, exist_ok=True)
                        made_dirs.add(parent)
                    _write_tar_member(tf, member, dest)
                    try:
                        os.utime(dest, (member.mtime, member.mtime))
                    except OSError as exc:
                        logger.info("error changing modtime: %s", exc)
                elif member.isdir():
                    os.makedirs(dest, mode=0o755, exist_ok=True)
                    made_dirs.add(dest)
                else:
                    raise ArchiveError(
                        f"tar file entry {name} contained unsupported file type {_kind(member)}"
                    )
    except tarfile.TarError as exc:
        raise ArchiveError(str(exc)) from exc


def _write_tar_member(tf: tarfile.TarFile, member: tarfile.TarInfo, dest: str) -> None:
    source = tf.extractfile(member)
    if source is None:
        raise ArchiveError(f"cannot read tar entry {member.name}")
    written = 0
    try:
        fd = os.open(dest, os.O_RDWR | os.O_CREAT | os.O_TRUNC, member.mode & 0o777)
        with os.fdopen(fd, "wb") as out, source:
            while chunk := source.read(_CHUNK):
                out.write(chunk)
                written += len(chunk)
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"error writing to {dest}: {exc}") from exc
    if written != member.size:
        raise ArchiveError(f"only wrote {written} bytes to {dest}; expected {member.size}")


def unpack_zip(target_dir: str | os.PathLike, archive_file: str | os.PathLike) -> None:
    """Unpack a zip archive into target_dir."""
    try:
        with zipfile.ZipFile(archive_file) as zf:
            for info in zf.infolist():
                dest = os.path.join(target_dir, _strip_prefix(info.filename))
                if info.is_dir():
                    os.makedirs(dest, mode=0o755, exist_ok=True)
                    continue
                os.makedirs(os.path.dirname(dest) or ".", mode=0o755, exist_ok=True)
                perm = (info.external_attr >> 16) & 0o777 or 0o666
                fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm)
                with os.fdopen(fd, "wb") as out, zf.open(info) as source:
                    shutil.copyfileobj(source, out, _CHUNK)
    except zipfile.BadZipFile as exc:
        raise ArchiveError(str(exc)) from exc


def verify_sha256(file: str | os.PathLike, want_hex: str) -> None:
    """Raise ArchiveError unless the file's SHA-256 digest equals want_hex."""
    digest = hashlib.sha256()
    with open(file, "rb") as f:
        while chunk := f.read(_CHUNK):
            digest.update(chunk)
    if digest.hexdigest() != want_hex:
        raise ArchiveError(
            f"{os.fspath(file)} corrupt? does not have expected SHA-256 of {want_hex}"
        )


def ndigits(i: int) -> int:
    """Number of decimal digits in i; zero has none."""
    return len(str(abs(i))) if i else 0


@dataclass
class ProgressWriter:
    """A writable wrapper that reports download progress about once a second."""

    w: BinaryIO
    total: int
    n: int = 0
    stream: TextIO = field(default_factory=lambda: sys.stderr)
    clock: Callable[[], float] = time.time
    _last: int | None = field(default=None, repr=False)

    def write(self, data: bytes) -> int:
        written = self.w.write(data)
        if written is None:
            written = len(data)
        self.n += written
        now = int(self.clock())
        if now != self._last:
            self.update()
            self._last = now
        return written

    def update(self) -> None:
        end = "" if self.n == self.total else " ..."
        percent = 100.0 * self.n / self.total if self.total else float("nan")
        count = str(self.n).rjust(ndigits(self.total))
        print(
            f"Downloaded {percent:5.1f}% ({count} / {self.total} bytes){end}",
            file=self.stream,
        )