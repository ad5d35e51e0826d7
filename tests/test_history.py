"""Tests for file and repository histories (replay, deletion, encoding)."""

import json

import pytest

from ka.diff import Deleted, Inserted, diff
from ka.exceptions import CorruptHistoryError
from ka.history import (
    FileChange,
    FileDeleted,
    FileHistory,
    FileUpdated,
    RepositoryChange,
    RepositoryHistory,
)


def _updated(index, *changes):
    return FileChange(index, FileUpdated(tuple(changes)))


@pytest.fixture
def staged_history():
    """A history built from successive diffs of four stages."""
    stages = [b"", b"hiii!", b"yes hii? this is a test.", b"yes bye! this is not a test."]
    history = FileHistory()
    history.add_change(_updated(0))
    for i in range(len(stages) - 1):
        history.add_change(FileChange(i + 1, FileUpdated(tuple(diff(stages[i], stages[i + 1])))))
    return history, stages


class TestReconstruct:
    def test_each_stage(self, staged_history):
        history, stages = staged_history
        for cursor, expected in enumerate(stages):
            assert history.reconstruct(cursor) == expected

    def test_past_the_end_is_latest(self, staged_history):
        history, stages = staged_history
        assert history.reconstruct(100) == stages[-1]

    def test_nothing_visible_is_empty(self):
        history = FileHistory([_updated(3, Inserted(0, b"late"))])
        assert history.reconstruct(2) == b""

    def test_gaps_in_change_index(self):
        history = FileHistory([
            _updated(1, Inserted(0, b"one")),
            _updated(4, Inserted(3, b" four")),
        ])
        assert history.reconstruct(1) == b"one"
        assert history.reconstruct(3) == b"one"
        assert history.reconstruct(4) == b"one four"

    def test_deleted_resets_then_recreation_builds_on_empty(self):
        history = FileHistory([
            _updated(1, Inserted(0, b"first")),
            FileChange(2, FileDeleted()),
            _updated(3, Inserted(0, b"second")),
        ])
        assert history.reconstruct(1) == b"first"
        assert history.reconstruct(2) == b""
        assert history.reconstruct(3) == b"second"

    def test_script_that_does_not_apply_is_corruption(self):
        history = FileHistory([_updated(1, Deleted(0, 5))])
        with pytest.raises(CorruptHistoryError, match="does not apply"):
            history.reconstruct(1)


class TestIsDeleted:
    @pytest.fixture
    def history(self):
        return FileHistory([
            _updated(1, Inserted(0, b"x")),
            FileChange(3, FileDeleted()),
            _updated(5, Inserted(0, b"y")),
        ])

    def test_no_changes(self):
        assert FileHistory().is_deleted(10) is False

    def test_before_any_change(self, history):
        assert history.is_deleted(0) is False

    @pytest.mark.parametrize("cursor,expected", [
        (1, False), (2, False), (3, True), (4, True), (5, False), (9, False),
    ])
    def test_window(self, history, cursor, expected):
        assert history.is_deleted(cursor) is expected

    def test_last_change(self, history):
        assert history.last_change(0) is None
        assert history.last_change(4) == FileChange(3, FileDeleted())


class TestAddChange:
    def test_appends_without_validation(self):
        history = FileHistory()
        history.add_change(_updated(5))
        history.add_change(_updated(2))
        assert [c.change_index for c in history.changes] == [5, 2]

    def test_repository_add_change_keeps_cursor(self):
        history = RepositoryHistory()
        history.add_change(RepositoryChange(frozenset({"a"}), 1))
        assert history.cursor == 0
        assert len(history.changes) == 1


class TestFilesBetween:
    @pytest.fixture
    def history(self):
        return RepositoryHistory(3, [
            RepositoryChange(frozenset({"a", "b"}), 1),
            RepositoryChange(frozenset({"b"}), 2),
            RepositoryChange(frozenset({"c"}), 3),
        ])

    def test_backward(self, history):
        assert history.files_between(3, 1) == {"b", "c"}

    def test_forward_is_symmetric(self, history):
        assert history.files_between(1, 3) == history.files_between(3, 1)

    def test_same_cursor(self, history):
        assert history.files_between(2, 2) == set()

    def test_to_zero(self, history):
        assert history.files_between(3, 0) == {"a", "b", "c"}

    def test_past_the_end(self, history):
        assert history.files_between(3, 50) == set()
        assert history.files_between(50, 2) == {"c"}


class TestEncoding:
    def test_repository_shape(self):
        history = RepositoryHistory(1, [RepositoryChange(frozenset({"b", "a"}), 42)])
        doc = json.loads(history.encode())
        assert doc == {
            "version": 1,
            "cursor": 1,
            "changes": [{"affected_files": ["a", "b"], "timestamp": 42}],
        }

    def test_file_shape(self):
        history = FileHistory([
            _updated(1, Inserted(0, b"\x01\x02\x03"), Deleted(1, 2)),
            FileChange(2, FileDeleted()),
        ])
        doc = json.loads(history.encode())
        assert doc["changes"] == [
            {"change_index": 1, "variant": {"Updated": [
                {"Inserted": {"at": 0, "new_content": "AQID"}},
                {"Deleted": {"at": 1, "upto": 2}},
            ]}},
            {"change_index": 2, "variant": "Deleted"},
        ]

    def test_repository_decode(self):
        history = RepositoryHistory(2, [
            RepositoryChange(frozenset({"x"}), 1),
            RepositoryChange(frozenset({"x", "dir/y"}), 2),
        ])
        assert RepositoryHistory.decode(history.encode()) == history

    def test_file_decode(self, staged_history):
        history, _ = staged_history
        assert FileHistory.decode(history.encode()) == history

    def test_encoding_is_deterministic(self):
        a = RepositoryHistory(1, [RepositoryChange(frozenset({"z", "a", "m"}), 7)])
        b = RepositoryHistory(1, [RepositoryChange(frozenset({"m", "z", "a"}), 7)])
        assert a.encode() == b.encode()

    def test_unknown_keys_ignored(self):
        raw = b'{"version":1,"cursor":0,"changes":[],"comment":"hi"}'
        assert RepositoryHistory.decode(raw) == RepositoryHistory()

    @pytest.mark.parametrize("raw", [
        b"not json",
        b"[]",
        b'{"cursor": 0}',
        b'{"cursor": -1, "changes": []}',
        b'{"cursor": true, "changes": []}',
        b'{"cursor": 0, "changes": [{"affected_files": [1], "timestamp": 0}]}',
        b'{"version": 99, "cursor": 0, "changes": []}',
        b"\xff\xfe",
    ])
    def test_corrupt_index(self, raw):
        with pytest.raises(CorruptHistoryError):
            RepositoryHistory.decode(raw)

    @pytest.mark.parametrize("raw", [
        b'{"changes": [{"change_index": 1, "variant": "Exploded"}]}',
        b'{"changes": [{"change_index": 1, "variant": {"Updated": {}}}]}',
        b'{"changes": [{"change_index": 1, "variant": {"Updated": [{"Moved": {}}]}}]}',
        b'{"changes": [{"change_index": 1, "variant": {"Updated": '
        b'[{"Inserted": {"at": 0, "new_content": "!!"}}]}}]}',
        b'{"changes": [{"variant": "Deleted"}]}',
    ])
    def test_corrupt_file_history(self, raw):
        with pytest.raises(CorruptHistoryError, match="config.json"):
            FileHistory.decode(raw, name="file history 'config.json'")
