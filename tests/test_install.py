import hashlib
import io
import os
import tarfile
import zipfile
from pathlib import Path

import pytest
import responses

from goup.install import (
    InstallError,
    UNPACKED_OKAY,
    copy_from_url,
    find_latest_patch_set,
    go_arch,
    go_download_base_url,
    go_host,
    go_os,
    go_source_git_url,
    go_source_upstream_git_url,
    install,
    install_tip,
    latest_go_version,
    make_script,
    normalize_version,
    run_install,
    set_installed,
    slurp_url_to_string,
    switch_version,
    symlink_version,
    user_agent,
    version_archive_url,
)
from goup.paths import VERSION

GO_BINARY = b"#!/bin/sh\necho go\n"

LS_REMOTE = (
    "2621ba2c60d05ec0b9ef37cd71e45047b004cead\trefs/changes/37/227037/1\n"
    "51f2af2be0878e1541d2769bd9d977a7e99db9ab\trefs/changes/37/227037/2\n"
    "af1f3b008281c61c54a5d203ffb69334b7af007c\trefs/changes/37/227037/3\n"
    "6a10ebae05ce4b01cb93b73c47bef67c0f5c5f2a\trefs/changes/37/227037/meta\n"
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GOUP_GO_SOURCE_GIT_URL",
        "GOUP_GO_DOWNLOAD_BASE_URL",
        "GOUP_GO_HOST",
        "GOUP_GO_ARCH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _archive_bytes(url):
    buf = io.BytesIO()
    if url.endswith(".zip"):
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("go/bin/go", GO_BINARY)
    else:
        with tarfile.open(fileobj=buf, mode="w:gz") as tf:
            directory = tarfile.TarInfo("go/bin")
            directory.type = tarfile.DIRTYPE
            directory.mode = 0o755
            tf.addfile(directory)
            info = tarfile.TarInfo("go/bin/go")
            info.size = len(GO_BINARY)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(GO_BINARY))
    return buf.getvalue()


def _register_release(rsps, version, sha=None, with_get=True):
    url = version_archive_url(version)
    data = _archive_bytes(url)
    rsps.add(responses.HEAD, url, body=data, auto_calculate_content_length=True)
    if with_get:
        rsps.add(responses.GET, url, body=data, auto_calculate_content_length=True)
    digest = sha if sha is not None else hashlib.sha256(data).hexdigest()
    rsps.add(responses.GET, url + ".sha256", body=digest + "\n")
    return url, data


@pytest.mark.parametrize(
    "given, expected",
    [("1.15.2", "go1.15.2"), ("go1.15.2", "go1.15.2"), ("tip", "gotip")],
)
def test_normalize_version(given, expected):
    assert normalize_version(given) == expected


def test_url_defaults():
    assert go_source_git_url() == "https://go.googlesource.com/go"
    assert go_source_upstream_git_url() == "https://go.googlesource.com/go"
    assert go_download_base_url() == "https://dl.google.com/go"
    assert go_host() == "go.dev"


def test_url_env_overrides(monkeypatch):
    monkeypatch.setenv("GOUP_GO_SOURCE_GIT_URL", "https://git.example.com/go")
    monkeypatch.setenv("GOUP_GO_DOWNLOAD_BASE_URL", "https://dl.example.com/go")
    monkeypatch.setenv("GOUP_GO_HOST", "mirror.example.com")
    monkeypatch.setenv("GOUP_GO_ARCH", "riscv64")
    assert go_source_git_url() == "https://git.example.com/go"
    assert go_source_upstream_git_url() == "https://git.example.com/go"
    assert go_download_base_url() == "https://dl.example.com/go"
    assert go_host() == "mirror.example.com"
    assert go_arch() == "riscv64"


def test_version_archive_url_shape(monkeypatch):
    monkeypatch.setenv("GOUP_GO_DOWNLOAD_BASE_URL", "https://dl.example.com/go")
    monkeypatch.setenv("GOUP_GO_ARCH", "amd64")
    url = version_archive_url("go1.21.0")
    assert url.startswith(f"https://dl.example.com/go/go1.21.0.{go_os()}-amd64.")
    assert url.endswith(".zip" if go_os() == "windows" else ".tar.gz")


def test_make_script_is_a_known_script():
    assert make_script() in {"make.bash", "make.bat", "make.rc"}


def test_user_agent_names_goup():
    assert user_agent() == "goup/" + VERSION


def test_find_latest_patch_set_picks_highest():
    ref, patch_set = find_latest_patch_set(LS_REMOTE, "227037")
    assert ref == "refs/changes/37/227037/3"
    assert patch_set == 3


def test_find_latest_patch_set_missing_cl():
    with pytest.raises(InstallError, match="CL 1234 not found"):
        find_latest_patch_set(LS_REMOTE, "1234")


def test_latest_go_version_adds_scheme(mocked):
    mocked.add(
        responses.GET,
        "https://go.dev/VERSION?m=text",
        body="go1.22.0\ntime 2024-02-06T17:44:25Z\n",
    )
    assert latest_go_version("go.dev") == "go1.22.0"
    assert mocked.calls[0].request.headers["User-Agent"] == user_agent()


def test_latest_go_version_http_error(mocked):
    mocked.add(responses.GET, "https://go.dev/VERSION?m=text", status=500, body="boom")
    with pytest.raises(InstallError, match="HTTP 500"):
        latest_go_version("https://go.dev")


def test_latest_go_version_requires_newline(mocked):
    mocked.add(responses.GET, "https://go.dev/VERSION?m=text", body="go1.22.0")
    with pytest.raises(InstallError):
        latest_go_version("go.dev")


def test_slurp_url_to_string(mocked):
    mocked.add(responses.GET, "https://dl.example.com/a.sha256", body="abc\n")
    mocked.add(responses.GET, "https://dl.example.com/missing", status=404)
    assert slurp_url_to_string("https://dl.example.com/a.sha256") == "abc\n"
    with pytest.raises(InstallError, match="404"):
        slurp_url_to_string("https://dl.example.com/missing")


def test_copy_from_url_writes_body(tmp_path, mocked):
    payload = b"archive bytes" * 100
    mocked.add(
        responses.GET,
        "https://dl.example.com/file.tar.gz",
        body=payload,
        auto_calculate_content_length=True,
    )
    dst = tmp_path / "file.tar.gz"
    copy_from_url(dst, "https://dl.example.com/file.tar.gz")
    assert dst.read_bytes() == payload


def test_copy_from_url_failure_removes_file(tmp_path, mocked):
    mocked.add(responses.GET, "https://dl.example.com/file.tar.gz", status=404)
    dst = tmp_path / "file.tar.gz"
    with pytest.raises(InstallError):
        copy_from_url(dst, "https://dl.example.com/file.tar.gz")
    assert not dst.exists()


def test_set_installed_creates_empty_marker(tmp_path):
    set_installed(tmp_path)
    marker = tmp_path / UNPACKED_OKAY
    assert marker.is_file()
    assert marker.stat().st_size == 0


def test_symlink_version_requires_installation(home):
    with pytest.raises(InstallError, match="go1.21.0 is not installed"):
        symlink_version("go1.21.0")


def test_switch_version_points_current_at_version(home):
    version_dir = home / "go" / "go1.21.0"
    version_dir.mkdir(parents=True)
    assert switch_version("1.21.0") == "go1.21.0"
    current = home / "go" / "current"
    assert current.is_symlink()
    assert Path(os.readlink(current)) == version_dir

    other = home / "go" / "go1.20.0"
    other.mkdir()
    assert switch_version("go1.20.0") == "go1.20.0"
    assert Path(os.readlink(current)) == other


def test_install_downloads_and_unpacks(home, mocked):
    url, data = _register_release(mocked, "go1.99.0")
    install("go1.99.0")
    target = home / "go" / "go1.99.0"
    assert (target / "bin" / "go").read_bytes() == GO_BINARY
    assert (target / UNPACKED_OKAY).stat().st_size == 0
    assert (target / url.rsplit("/", 1)[-1]).read_bytes() == data


def test_install_reuses_archive_of_matching_size(home, mocked):
    url, data = _register_release(mocked, "go1.99.0", with_get=False)
    target = home / "go" / "go1.99.0"
    target.mkdir(parents=True)
    (target / url.rsplit("/", 1)[-1]).write_bytes(data)
    install("go1.99.0")
    assert (target / "bin" / "go").read_bytes() == GO_BINARY
    assert all(call.request.url != url or call.request.method == "HEAD" for call in mocked.calls)


def test_install_missing_release(home, mocked):
    mocked.add(responses.HEAD, version_archive_url("go0.0.1"), status=404)
    with pytest.raises(InstallError, match="no binary release of go0.0.1"):
        install("go0.0.1")


def test_install_rejects_bad_checksum(home, mocked):
    _register_release(mocked, "go1.99.0", sha="0" * 64)
    with pytest.raises(InstallError, match="error verifying SHA256"):
        install("go1.99.0")
    assert not (home / "go" / "go1.99.0" / UNPACKED_OKAY).exists()


def test_run_install_latest_sets_default(home, mocked):
    mocked.add(
        responses.GET,
        "https://go.dev/VERSION?m=text",
        body="go1.99.0\ntime 2024-02-06T17:44:25Z\n",
    )
    _register_release(mocked, "go1.99.0")
    assert run_install([], host="go.dev") == "go1.99.0"
    current = home / "go" / "current"
    assert Path(os.readlink(current)) == home / "go" / "go1.99.0"
    assert (current / "bin" / "go").read_bytes() == GO_BINARY


def test_install_tip_declined_prompt(home):
    (home / "go" / "gotip" / ".git").mkdir(parents=True)
    with pytest.raises(InstallError, match="interrupted"):
        install_tip("1234", input_func=lambda _prompt: "n")