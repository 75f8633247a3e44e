from pathlib import Path

import pytest

from goup import paths


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


def test_home_dir_follows_environment(home):
    assert paths.home_dir() == home


def test_go_base_dir_without_elements(home):
    assert paths.go_base_dir() == home / "go"


def test_go_base_dir_joins_elements(home):
    assert paths.go_base_dir("a", "b") == home / "go" / "a" / "b"


def test_named_directories(home):
    base = home / "go"
    assert paths.goup_bin_dir() == base / "bin"
    assert paths.goup_current_dir() == base / "current"
    assert paths.goup_env_file() == base / "env"
    assert paths.goup_current_bin_dir() == base / "current" / "bin"


def test_version_dir(home):
    assert paths.goup_version_dir("go1.15.2") == home / "go" / "go1.15.2"


def test_homebrew_dir():
    assert paths.homebrew_go_dir() == Path("/opt/homebrew/Cellar/go")


def test_profile_files(home):
    files = paths.profile_files()
    assert [f.name for f in files] == [".profile", ".zprofile", ".bash_profile"]
    assert all(f.parent == home for f in files)


def test_version_string():
    assert paths.version_string() == "goup version v0.7.0"
    assert paths.version_string().endswith(paths.VERSION)