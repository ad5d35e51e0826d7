"""Tests for the Repository handle."""

from pathlib import Path

import pytest

from ka import ExcludeFilter, MemoryFilesystem, Repository
from ka.exceptions import NotARepositoryError


class TestRepositoryOpen:
    def test_defaults_to_disk(self, tmp_path):
        repo = Repository(tmp_path)
        assert repo.root == tmp_path
        assert repo.exists is False

    def test_string_root(self, tmp_path):
        assert Repository(str(tmp_path)).root == tmp_path

    def test_repr(self):
        assert repr(Repository("some/dir", fs=MemoryFilesystem())) == "Repository('some/dir')"

    def test_cursor_requires_create(self, mem_repo):
        with pytest.raises(NotARepositoryError):
            mem_repo.cursor

    def test_update_requires_create(self, mem_repo):
        with pytest.raises(NotARepositoryError):
            mem_repo.update()


class TestRepositoryInMemory:
    def test_create(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"hello")
        change = mem_repo.create()
        assert mem_repo.exists
        assert change.affected_files == {"a.txt"}
        assert (mem_repo.cursor, mem_repo.head) == (1, 1)

    def test_clock_stamps_changes(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"1")
        mem_repo.create()
        mem_fs.write_bytes("a.txt", b"2")
        mem_repo.update()
        first, second = mem_repo.log()
        assert second.timestamp == first.timestamp + 1

    def test_explicit_timestamp(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"1")
        mem_repo.create(timestamp=7)
        assert mem_repo.log()[0].timestamp == 7

    def test_update_nothing(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"1")
        mem_repo.create()
        assert mem_repo.update() is None
        assert mem_repo.head == 1

    def test_shift_and_read(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"first")
        mem_repo.create()
        mem_fs.write_bytes("a.txt", b"second")
        mem_repo.update()

        assert mem_repo.read("a.txt", 1) == b"first"
        report = mem_repo.shift(1)
        assert report.written == ["a.txt"]
        assert mem_fs.read_bytes("a.txt") == b"first"
        assert (mem_repo.cursor, mem_repo.head) == (1, 2)
        assert mem_repo.read("a.txt") == b"first"

    def test_status(self, mem_fs, mem_repo):
        mem_fs.write_bytes("a.txt", b"1")
        mem_repo.create()
        mem_fs.write_bytes("b.txt", b"2")
        assert [(p.path, str(p.kind)) for p in mem_repo.status()] == [("b.txt", "add")]

    def test_absolute_root(self):
        fs = MemoryFilesystem({"/repo/a": b"x", "/repo/d/b": b"y"})
        repo = Repository("/repo", fs=fs)
        change = repo.create(timestamp=1)
        assert change.affected_files == {"a", "d/b"}
        fs.write_bytes("/repo/a", b"changed")
        repo.update(timestamp=2)
        repo.shift(1)
        assert fs.read_bytes("/repo/a") == b"x"

    def test_exclude(self, mem_fs):
        mem_fs.write_bytes("a.txt", b"1")
        mem_fs.write_bytes("build/out.o", b"2")
        repo = Repository(".", fs=mem_fs, exclude=ExcludeFilter(patterns=["build/"]))
        change = repo.create(timestamp=1)
        assert change.affected_files == {"a.txt"}
        mem_fs.write_bytes("build/out.o", b"3")
        assert repo.status() == []


class TestRepositoryOnDisk:
    def test_full_cycle(self, tmp_path):
        (tmp_path / "notes.txt").write_bytes(b"draft 1\n")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "readme.md").write_bytes(b"# Title\n")
        repo = Repository(tmp_path, clock=lambda: 100)

        repo.create()
        (tmp_path / "notes.txt").write_bytes(b"draft 2\n")
        (tmp_path / "docs" / "readme.md").unlink()
        change = repo.update()

        assert change.affected_files == {"notes.txt", "docs/readme.md"}
        assert (tmp_path / ".ka" / "files" / "docs" / "readme.md").is_file()

        repo.shift(1)
        assert (tmp_path / "notes.txt").read_bytes() == b"draft 1\n"
        assert (tmp_path / "docs" / "readme.md").read_bytes() == b"# Title\n"

        repo.shift(2)
        assert (tmp_path / "notes.txt").read_bytes() == b"draft 2\n"
        assert not (tmp_path / "docs" / "readme.md").exists()

    def test_index_is_json(self, tmp_path):
        (tmp_path / "f").write_bytes(b"x")
        Repository(tmp_path, clock=lambda: 5).create()
        index = (tmp_path / ".ka" / "index").read_bytes()
        assert index == b'{"version":1,"cursor":1,"changes":[{"affected_files":["f"],"timestamp":5}]}'

    def test_reopen(self, tmp_path):
        (tmp_path / "f").write_bytes(b"x")
        Repository(tmp_path).create()
        assert Repository(Path(tmp_path)).cursor == 1
