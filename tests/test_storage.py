import pytest

from agent_core.errors import StoreError
from agent_core.storage import CURSOR_KEY, SubmissionStore, submission_key


def test_submission_key_format():
    assert submission_key(0) == "submission-0"
    assert submission_key(42) == "submission-42"
    with pytest.raises(ValueError):
        submission_key(-1)


def test_initialise_seeds_empty_record_before_cursor(memory_db):
    store = SubmissionStore(memory_db)
    assert store.initialise() is True

    assert store.cursor() == 0
    assert store.record(0) == []
    assert memory_db.writes == [b"submission-0", CURSOR_KEY.encode()]


def test_initialise_is_noop_on_existing_store(store, memory_db):
    store.put_record(1, [5])
    store.set_cursor(1)
    writes = len(memory_db.writes)

    assert store.initialise() is False
    assert store.cursor() == 1
    assert len(memory_db.writes) == writes


def test_cursor_requires_initialisation(memory_db):
    with pytest.raises(StoreError):
        SubmissionStore(memory_db).cursor()


def test_values_are_compact_json(store, memory_db):
    store.put_record(3, [1, 2, 3])
    assert memory_db.get(b"submission-3") == b"[1,2,3]"
    assert store.get("submission-3") == [1, 2, 3]
    assert store.get("missing") is None


def test_large_token_values_survive(store):
    big = 2**200 + 7
    store.put_record(1, [big])
    assert store.record(1) == [big]


def test_corrupt_value_raises_store_error(store, memory_db):
    memory_db.put(b"submission-9", b"{not json")
    with pytest.raises(StoreError):
        store.record(9)


def test_records_skips_missing_and_negative_indices(store):
    store.put_record(2, [2])
    store.put_record(4, [4])
    assert list(store.records(-3, 4)) == [(0, []), (2, [2]), (4, [4])]
    assert store.record(-1) is None


def test_close_releases_handle(store, memory_db):
    store.close()
    assert memory_db.closed


def test_open_store_persists_across_reopen(tmp_path):
    pytest.importorskip("rocksdict")
    from agent_core.storage import open_store

    path = tmp_path / "agent.db"
    store = open_store(path)
    assert store.cursor() == 0
    store.put_record(1, [10, 11])
    store.set_cursor(1)
    store.close()

    reopened = open_store(path)
    try:
        assert reopened.cursor() == 1
        assert reopened.record(0) == []
        assert reopened.record(1) == [10, 11]
    finally:
        reopened.close()


def test_open_store_failure_raises_store_error(tmp_path):
    from agent_core.storage import open_store

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(StoreError) as excinfo:
        open_store(blocker / "agent.db")
    assert "not-a-dir" in str(excinfo.value)
