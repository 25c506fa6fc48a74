import threading

import pytest

from uploads.errors import ConstraintError, NotFoundError
from uploads.repository.file_repository import FileRepository


@pytest.fixture
def repository(tmp_path):
    repo = FileRepository(tmp_path / "test.db")
    repo.create_table()
    yield repo
    repo.close()


def test_insert_and_get(repository):
    record_id = repository.insert_file("original_test.txt", "stored_test.txt", 1024, "127.0.0.1:12345")
    assert record_id == 1

    record = repository.get_file_by_stored_name("stored_test.txt")
    assert record.id == record_id
    assert record.original_name == "original_test.txt"
    assert record.stored_name == "stored_test.txt"
    assert record.file_size == 1024
    assert record.upload_addr == "127.0.0.1:12345"
    assert record.upload_time.tzinfo is not None


def test_duplicate_stored_name_violates_constraint(repository):
    repository.insert_file("a.txt", "1700000000.txt", 5, "127.0.0.1:1")
    with pytest.raises(ConstraintError):
        repository.insert_file("b.txt", "1700000000.txt", 7, "127.0.0.1:2")

    # The first record is untouched
    record = repository.get_file_by_stored_name("1700000000.txt")
    assert record.original_name == "a.txt"
    assert len(repository.get_all_files()) == 1


def test_get_missing_record(repository):
    with pytest.raises(NotFoundError):
        repository.get_file_by_stored_name("missing.txt")


def test_list_empty_is_empty_list(repository):
    assert repository.get_all_files() == []


def test_list_newest_first(repository):
    for i in range(5):
        repository.insert_file(f"f{i}.bin", f"stored{i}.bin", i, "127.0.0.1:1")

    records = repository.get_all_files()
    assert [r.stored_name for r in records] == [f"stored{i}.bin" for i in reversed(range(5))]
    times = [r.upload_time for r in records]
    assert times == sorted(times, reverse=True)


def test_delete(repository):
    repository.insert_file("a.txt", "stored.txt", 5, "127.0.0.1:1")
    repository.delete_file("stored.txt")

    with pytest.raises(NotFoundError):
        repository.get_file_by_stored_name("stored.txt")
    with pytest.raises(NotFoundError):
        repository.delete_file("stored.txt")


def test_ids_keep_increasing_after_delete(repository):
    first = repository.insert_file("a.txt", "one.txt", 1, "127.0.0.1:1")
    repository.delete_file("one.txt")
    second = repository.insert_file("a.txt", "two.txt", 1, "127.0.0.1:1")
    assert second > first


def test_concurrent_inserts_of_same_name(repository):
    """Exactly one of many threads racing for one stored name wins."""
    results = []
    lock = threading.Lock()

    def insert(i):
        try:
            repository.insert_file(f"{i}.txt", "1700000000.txt", i, "127.0.0.1:1")
            outcome = "ok"
        except ConstraintError:
            outcome = "conflict"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=insert, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("conflict") == 9


def test_persists_across_connections(tmp_path):
    db_path = tmp_path / "persist.db"
    repo = FileRepository(db_path)
    repo.create_table()
    repo.insert_file("a.txt", "stored.txt", 5, "127.0.0.1:1")
    repo.close()

    reopened = FileRepository(db_path)
    reopened.create_table()
    assert reopened.get_file_by_stored_name("stored.txt").file_size == 5
    reopened.close()
