"""Shared fixtures for ka tests."""

import pytest
from click.testing import CliRunner

from ka import Locations, MemoryFilesystem, Repository
from ka.cli import main

NOW = 0xC0FFEE


class Clock:
    """Deterministic clock: returns NOW, NOW + 1, NOW + 2, ..."""

    def __init__(self, start=NOW):
        self.value = start

    def __call__(self):
        value = self.value
        self.value += 1
        return value


@pytest.fixture
def locations():
    """Locations for a repository rooted at '.'."""
    return Locations(".")


@pytest.fixture
def mem_fs():
    return MemoryFilesystem()


@pytest.fixture
def mem_repo(mem_fs):
    """An uninitialized in-memory repository with a deterministic clock."""
    return Repository(".", fs=mem_fs, clock=Clock())


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def work_dir(tmp_path):
    """A working tree with hello.txt and src/main.py, not yet tracked."""
    root = tmp_path / "work"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world\n")
    (root / "src").mkdir()
    (root / "src" / "main.py").write_bytes(b"print('hi')\n")
    return root


@pytest.fixture
def created_repo(work_dir, runner):
    """work_dir after `ka create`; returns the root path as a string."""
    p = str(work_dir)
    r = runner.invoke(main, ["create", "--repo", p])
    assert r.exit_code == 0, r.output
    return p
