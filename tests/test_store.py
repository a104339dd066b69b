import sqlite3
from pathlib import Path

import pytest

from study_engine.errors import StorageReadFailed, StorageUnavailable, StorageWriteFailed
from study_engine.scheduler import new_card
from study_engine.store import StudyStore

T = 1_700_000_000_000


def test_operations_on_unopened_store_raise_unavailable(db_path):
    store = StudyStore(db_path)
    with pytest.raises(StorageUnavailable):
        store.attempts.list(10)
    with pytest.raises(StorageUnavailable):
        store.cards.put(new_card("Q1", "i1", now=T))


def test_open_failure_raises_unavailable(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    with pytest.raises(StorageUnavailable) as excinfo:
        StudyStore(str(blocker / "study.sqlite3")).open()
    assert excinfo.value.operation == "open"


def test_context_manager_closes_handle(db_path):
    with StudyStore(db_path) as store:
        assert store.is_open
    assert not store.is_open
    with pytest.raises(StorageUnavailable):
        store.cards.get("Q1::i1")


def test_open_is_idempotent(db_path):
    store = StudyStore(db_path)
    assert store.open() is store.open()
    store.close()
    store.close()


def test_data_survives_reopen(db_path, make_attempt):
    card = new_card("Q1", "i1", "grammar", now=T)
    with StudyStore(db_path) as store:
        store.cards.put(card)
        attempt_id = store.attempts.append(make_attempt(ts=T))
    with StudyStore(db_path) as store:
        assert store.cards.get(card.key) == card
        assert store.attempts.get(attempt_id).timestamp == T


def test_in_memory_store(make_attempt):
    with StudyStore(":memory:") as store:
        store.attempts.append(make_attempt())
        assert store.attempts.count() == 1


def _drop_table(db_path: str, table: str) -> None:
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(f"DROP TABLE {table};")
        conn.commit()
    finally:
        conn.close()


def test_read_failure_is_translated(store, db_path):
    _drop_table(db_path, "cards")
    with pytest.raises(StorageReadFailed) as excinfo:
        store.cards.get("Q1::i1")
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_write_failure_is_translated_and_rolled_back(store, db_path, make_attempt):
    _drop_table(db_path, "attempts")
    with pytest.raises(StorageWriteFailed):
        store.attempts.append(make_attempt())
    # the handle stays usable after a failed write
    store.cards.put(new_card("Q1", "i1", now=T))
    assert store.cards.get("Q1::i1") is not None


def test_stream_read_failure_is_translated(store, db_path):
    _drop_table(db_path, "attempts")
    with pytest.raises(StorageReadFailed) as excinfo:
        list(store.attempts.iter_recent())
    assert excinfo.value.operation == "attempts.list"


def test_in_memory_stream_sees_rows_of_the_shared_connection(make_attempt):
    with StudyStore(":memory:") as store:
        for ts in (1, 2, 3):
            store.attempts.append(make_attempt(ts=ts))
        assert [a.timestamp for a in store.attempts.iter_recent()] == [3, 2, 1]
