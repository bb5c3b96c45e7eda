"""Tests for Warden persistent state.

Covers:

1. **StateStore contract** -- get/put/delete/list_all/update on every
   implementation.
2. **Atomicity** -- concurrent updates of one key lose nothing; distinct
   keys do not share a lock.
3. **Corruption** -- unreadable records read as absent, or raise with
   ``strict_reads``.
4. **Write failures** -- surfaced as :class:`StorageWriteError`.
5. **Record parsing** -- schema failures are treated as corruption.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from warden.core.errors import StorageReadError, StorageWriteError
from warden.core.interfaces import InMemoryStateStore, StateStore
from warden.core.types import BanRecord, Category
from warden.storage import (
    FileStateStore,
    KeyedLockRegistry,
    dump_record,
    key_from_filename,
    parse_record,
    safe_filename,
)

# ===================================================================
# StateStore contract (both implementations)
# ===================================================================


class TestStateStoreContract:
    """Behaviour shared by InMemoryStateStore and FileStateStore."""

    def test_implements_protocol(self, store: StateStore) -> None:
        assert isinstance(store, StateStore)

    def test_missing_record_is_none(self, store: StateStore) -> None:
        assert store.get(Category.BANS, "198.51.100.1") is None

    def test_put_then_get(self, store: StateStore) -> None:
        store.put(Category.BANS, "198.51.100.1", {"identity": "198.51.100.1", "n": 1})
        assert store.get(Category.BANS, "198.51.100.1") == {"identity": "198.51.100.1", "n": 1}

    def test_put_overwrites(self, store: StateStore) -> None:
        store.put(Category.VIOLATIONS, "a", {"n": 1})
        store.put(Category.VIOLATIONS, "a", {"n": 2})
        assert store.get(Category.VIOLATIONS, "a") == {"n": 2}

    def test_categories_are_independent(self, store: StateStore) -> None:
        store.put(Category.BANS, "a", {"kind": "ban"})
        store.put(Category.VIOLATIONS, "a", {"kind": "violation"})
        assert store.get(Category.BANS, "a") == {"kind": "ban"}
        assert store.get(Category.VIOLATIONS, "a") == {"kind": "violation"}

    def test_delete(self, store: StateStore) -> None:
        store.put(Category.RATE, "a", {"n": 1})
        store.delete(Category.RATE, "a")
        assert store.get(Category.RATE, "a") is None

    def test_delete_missing_is_noop(self, store: StateStore) -> None:
        store.delete(Category.RATE, "never-written")

    def test_list_all(self, store: StateStore) -> None:
        store.put(Category.BANS, "b", {"n": 2})
        store.put(Category.BANS, "a", {"n": 1})
        store.put(Category.VIOLATIONS, "c", {"n": 3})
        assert store.list_all(Category.BANS) == [("a", {"n": 1}), ("b", {"n": 2})]

    def test_list_all_empty(self, store: StateStore) -> None:
        assert store.list_all(Category.HISTORY) == []

    def test_list_all_returns_original_keys(self, store: StateStore) -> None:
        store.put(Category.BANS, "2001:db8::1", {"n": 1})
        store.put(Category.BANS, "rule/admin login", {"n": 2})
        assert sorted(store.list_all(Category.BANS)) == [
            ("2001:db8::1", {"n": 1}),
            ("rule/admin login", {"n": 2}),
        ]

    def test_similar_keys_stay_distinct(self, store: StateStore) -> None:
        store.put(Category.RATE, "a:b", {"n": 1})
        store.put(Category.RATE, "a_b", {"n": 2})
        assert store.get(Category.RATE, "a:b") == {"n": 1}
        assert store.get(Category.RATE, "a_b") == {"n": 2}
        assert len(store.list_all(Category.RATE)) == 2

    def test_update_creates(self, store: StateStore) -> None:
        result = store.update(Category.VIOLATIONS, "a", lambda cur: {"n": 1 if cur is None else 0})
        assert result == {"n": 1}
        assert store.get(Category.VIOLATIONS, "a") == {"n": 1}

    def test_update_sees_current(self, store: StateStore) -> None:
        store.put(Category.VIOLATIONS, "a", {"n": 4})
        store.update(Category.VIOLATIONS, "a", lambda cur: {"n": cur["n"] + 1})
        assert store.get(Category.VIOLATIONS, "a") == {"n": 5}

    def test_update_returning_none_deletes(self, store: StateStore) -> None:
        store.put(Category.BANS, "a", {"n": 1})
        assert store.update(Category.BANS, "a", lambda cur: None) is None
        assert store.get(Category.BANS, "a") is None

    def test_get_returns_copy(self, store: StateStore) -> None:
        store.put(Category.RATE, "a", {"timestamps": [1.0]})
        record = store.get(Category.RATE, "a")
        assert record is not None
        record["timestamps"].append(2.0)
        assert store.get(Category.RATE, "a") == {"timestamps": [1.0]}

    def test_ipv6_key(self, store: StateStore) -> None:
        store.put(Category.BANS, "2001:db8::1", {"n": 1})
        assert store.get(Category.BANS, "2001:db8::1") == {"n": 1}


# ===================================================================
# Atomicity
# ===================================================================


class TestAtomicity:
    """Per-key read-modify-write under concurrent writers."""

    def test_no_lost_updates(self, store: StateStore) -> None:
        threads_n, per_thread = 8, 50

        def _bump(cur: dict[str, Any] | None) -> dict[str, Any]:
            return {"n": (cur or {"n": 0})["n"] + 1}

        def _worker() -> None:
            for _ in range(per_thread):
                store.update(Category.VIOLATIONS, "203.0.113.5", _bump)

        threads = [threading.Thread(target=_worker) for _ in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get(Category.VIOLATIONS, "203.0.113.5") == {"n": threads_n * per_thread}

    def test_distinct_keys_do_not_block(self, store: StateStore) -> None:
        """An update on key B completes while key A's update is in progress."""
        inside_a = threading.Event()
        release_a = threading.Event()
        b_done = threading.Event()

        def _slow(cur: dict[str, Any] | None) -> dict[str, Any]:
            inside_a.set()
            release_a.wait(timeout=5)
            return {"n": 1}

        t = threading.Thread(target=lambda: store.update(Category.BANS, "a", _slow))
        t.start()
        assert inside_a.wait(timeout=5)

        store.update(Category.BANS, "b", lambda cur: {"n": 2})
        b_done.set()
        release_a.set()
        t.join()

        assert b_done.is_set()
        assert store.get(Category.BANS, "a") == {"n": 1}


class TestKeyedLockRegistry:
    """Tests for the per-key lock registry."""

    def test_lock_released_after_use(self) -> None:
        locks = KeyedLockRegistry()
        with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_released_on_exception(self) -> None:
        locks = KeyedLockRegistry()
        with pytest.raises(RuntimeError), locks.hold("a"):
            raise RuntimeError("boom")
        assert len(locks) == 0
        with locks.hold("a"):
            pass


# ===================================================================
# FileStateStore specifics
# ===================================================================


class TestFileStateStore:
    """Layout, corruption handling and write failures."""

    def test_creates_category_directories(self, tmp_path: Path) -> None:
        FileStateStore(tmp_path / "state")
        for name in ("bans", "violations", "rate", "history"):
            assert (tmp_path / "state" / name).is_dir()

    def test_record_file_layout(self, file_store: FileStateStore) -> None:
        file_store.put(Category.BANS, "2001:db8::1", {"n": 1})
        assert (file_store.base_path / "bans" / "2001%3Adb8%3A%3A1.json").is_file()

    def test_survives_reopen(self, tmp_path: Path) -> None:
        FileStateStore(tmp_path / "s").put(Category.BANS, "10.0.0.1", {"n": 1})
        assert FileStateStore(tmp_path / "s").get(Category.BANS, "10.0.0.1") == {"n": 1}

    def test_no_temp_files_left(self, file_store: FileStateStore) -> None:
        for i in range(5):
            file_store.put(Category.RATE, "a", {"n": i})
        leftovers = [p.name for p in (file_store.base_path / "rate").iterdir()]
        assert leftovers == ["a.json"]

    @pytest.mark.parametrize("content", ["not json", "[1, 2, 3]", ""])
    def test_corrupt_record_reads_as_absent(self, file_store: FileStateStore, content: str) -> None:
        (file_store.base_path / "bans" / "10.0.0.1.json").write_text(content)
        assert file_store.get(Category.BANS, "10.0.0.1") is None

    def test_corrupt_record_skipped_by_list_all(self, file_store: FileStateStore) -> None:
        file_store.put(Category.BANS, "10.0.0.2", {"n": 2})
        (file_store.base_path / "bans" / "10.0.0.1.json").write_text("{broken")
        assert file_store.list_all(Category.BANS) == [("10.0.0.2", {"n": 2})]

    def test_update_over_corrupt_record_starts_fresh(self, file_store: FileStateStore) -> None:
        (file_store.base_path / "violations" / "a.json").write_text("{broken")
        file_store.update(Category.VIOLATIONS, "a", lambda cur: {"fresh": cur is None})
        assert file_store.get(Category.VIOLATIONS, "a") == {"fresh": True}

    @pytest.mark.parametrize("content", ["not json", "[1, 2, 3]"])
    def test_strict_reads_raise(self, tmp_path: Path, content: str) -> None:
        strict = FileStateStore(tmp_path / "s", strict_reads=True)
        (tmp_path / "s" / "bans" / "10.0.0.1.json").write_text(content)
        with pytest.raises(StorageReadError):
            strict.get(Category.BANS, "10.0.0.1")

    def test_strict_reads_missing_is_still_none(self, tmp_path: Path) -> None:
        strict = FileStateStore(tmp_path / "s", strict_reads=True)
        assert strict.get(Category.BANS, "10.0.0.1") is None

    def test_write_failure_raises(
        self, file_store: FileStateStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _fail(*args: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("warden.storage.file_store.os.replace", _fail)
        with pytest.raises(StorageWriteError) as exc_info:
            file_store.put(Category.BANS, "10.0.0.1", {"n": 1})
        assert "bans" in exc_info.value.details["path"]
        assert list((file_store.base_path / "bans").iterdir()) == []

    def test_unserialisable_record_raises(self, file_store: FileStateStore) -> None:
        with pytest.raises(StorageWriteError):
            file_store.put(Category.BANS, "a", {"n": object()})

    def test_unusable_base_path(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageWriteError):
            FileStateStore(blocker / "state")

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("10.0.0.1", "10.0.0.1"),
            ("2001:db8::1", "2001%3Adb8%3A%3A1"),
            ("../../etc/passwd", "..%2F..%2Fetc%2Fpasswd"),
            ("a_b", "a_b"),
            ("a:b", "a%3Ab"),
            ("100%", "100%25"),
        ],
    )
    def test_safe_filename(self, key: str, expected: str) -> None:
        assert safe_filename(key) == expected

    def test_filename_maps_back_to_key(self) -> None:
        for key in ("10.0.0.1", "2001:db8::1", "../x", "a%3Ab"):
            assert key_from_filename(safe_filename(key)) == key


class TestInMemoryStateStore:
    def test_not_strict(self) -> None:
        assert InMemoryStateStore().strict_reads is False

    def test_len(self) -> None:
        s = InMemoryStateStore()
        s.put(Category.BANS, "a", {})
        s.put(Category.RATE, "a", {})
        assert len(s) == 2


# ===================================================================
# Record parsing
# ===================================================================


class TestParseRecord:
    def test_valid(self) -> None:
        record = BanRecord(identity="10.0.0.1", banned_at=1.0, expires_at=0.0, ban_count=2)
        assert parse_record(BanRecord, dump_record(record)) == record

    def test_none(self) -> None:
        assert parse_record(BanRecord, None) is None

    def test_schema_failure_is_absent(self) -> None:
        assert parse_record(BanRecord, {"identity": "10.0.0.1"}) is None

    def test_schema_failure_strict(self) -> None:
        with pytest.raises(StorageReadError):
            parse_record(BanRecord, {"identity": "10.0.0.1"}, strict=True)
