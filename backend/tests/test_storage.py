import importlib.util
import json
import stat
import threading
from pathlib import Path

import pytest

from library_api.errors import StorageBusyError, StorageCorruptError, StorageWriteError
from library_api.storage import DocumentStore


def test_missing_collection_loads_empty(store, data_dir):
    assert store.load("books") == []
    assert not (data_dir / "books.json").exists()


def test_save_then_load_is_lossless(store):
    records = [
        {"id": "a1", "isbn": "1", "title": "Ünïcode", "publicationYear": 1999, "price": 9.5, "inPrint": True, "note": None},
        {"id": "a2", "isbn": "2", "title": "Second", "publicationYear": 2001, "price": 0, "inPrint": False, "note": "x"},
    ]
    store.save("books", records)
    loaded = store.load("books")
    assert loaded == records
    store.save("books", loaded)
    assert store.load("books") == records


def test_saved_file_is_a_json_array(store, data_dir):
    store.save("students", [{"admissionNumber": "A1"}])
    on_disk = json.loads((data_dir / "students.json").read_text(encoding="utf-8"))
    assert on_disk == [{"admissionNumber": "A1"}]


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"not json",
        b'{"isbn": "1"}',
        b"[1, 2]",
        b'[{"isbn": "1"}, "x"]',
        b'[{"title": "\xff\xfe"}]',
        b'[{"isbn": "1", "price": NaN}]',
        b'[{"isbn": "1", "copies": -Infinity}]',
    ],
)
def test_corrupt_content_is_reported(store, data_dir, content):
    (data_dir / "books.json").write_bytes(content)
    with pytest.raises(StorageCorruptError):
        store.load("books")


def test_deeply_nested_content_is_reported(store, data_dir):
    (data_dir / "books.json").write_bytes(b"[" * 200000 + b"]" * 200000)
    with pytest.raises(StorageCorruptError):
        store.load("books")


def test_save_refuses_values_json_cannot_represent(store, data_dir):
    store.save("books", [{"isbn": "1"}])
    for bad in (float("nan"), float("inf")):
        with pytest.raises(TypeError):
            store.save("books", [{"isbn": "1", "price": bad}])
    assert store.load("books") == [{"isbn": "1"}]
    assert [p.name for p in data_dir.iterdir()] == ["books.json"]


def test_save_keeps_file_mode(store, data_dir):
    path = data_dir / "books.json"
    store.save("books", [{"isbn": "1"}])
    assert stat.S_IMODE(path.stat().st_mode) == 0o644
    path.chmod(0o640)
    store.save("books", [{"isbn": "1"}, {"isbn": "2"}])
    assert stat.S_IMODE(path.stat().st_mode) == 0o640


@pytest.mark.parametrize("name", ["", "../etc", "Books", "a/b", "books.json"])
def test_collection_names_cannot_escape_data_dir(store, name):
    with pytest.raises(ValueError):
        store.path_for(name)


def test_save_rejects_non_record_lists(store):
    with pytest.raises(TypeError):
        store.save("books", {"isbn": "1"})
    with pytest.raises(TypeError):
        store.save("books", [["isbn", "1"]])


def test_failed_replace_keeps_previous_file(store, data_dir, monkeypatch):
    store.save("books", [{"isbn": "1"}])

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("library_api.storage.os.replace", boom)
    with pytest.raises(StorageWriteError):
        store.save("books", [{"isbn": "1"}, {"isbn": "2"}])
    monkeypatch.undo()

    assert store.load("books") == [{"isbn": "1"}]
    leftovers = [p.name for p in data_dir.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_lock_times_out_while_held(data_dir):
    store = DocumentStore(data_dir, lock_timeout=0.05)
    with store.locked("books"):
        with pytest.raises(StorageBusyError):
            with store.locked("books"):
                pass
    # released afterwards
    with store.locked("books"):
        pass


def test_locks_are_per_collection(data_dir):
    store = DocumentStore(data_dir, lock_timeout=0.05)
    with store.locked("books"):
        with store.locked("students"):
            pass


def test_stores_on_same_directory_share_locks(data_dir):
    first = DocumentStore(data_dir, lock_timeout=0.05)
    second = DocumentStore(data_dir, lock_timeout=0.05)
    with first.locked("books"):
        with pytest.raises(StorageBusyError):
            with second.locked("books"):
                pass


def test_lock_released_when_body_raises(data_dir):
    store = DocumentStore(data_dir, lock_timeout=0.05)
    with pytest.raises(RuntimeError):
        with store.locked("books"):
            raise RuntimeError("boom")
    with store.locked("books"):
        pass


def test_reads_see_whole_files_during_concurrent_saves(store):
    store.save("books", [{"isbn": "0"}])
    stop = threading.Event()
    errors = []

    def writer():
        for n in range(1, 60):
            store.save("books", [{"isbn": str(i)} for i in range(n)])
        stop.set()

    def reader():
        while not stop.is_set():
            try:
                store.load("books")
            except StorageCorruptError as e:
                errors.append(e)

    threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []


def _load_cli():
    path = Path(__file__).resolve().parents[1] / "scripts" / "check_collections.py"
    spec = importlib.util.spec_from_file_location("check_collections", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_check_collections_cli(data_dir, capsys):
    cli = _load_cli()
    store = DocumentStore(data_dir)
    store.save("students", [{"admissionNumber": "A1"}, {"admissionNumber": "A2"}])
    assert cli.main(["--data-dir", str(data_dir), "students", "books"]) == 0
    out = capsys.readouterr().out
    assert "students: 2 records OK" in out
    assert "books: 0 records OK" in out

    (data_dir / "books.json").write_bytes(b"[\xff]")
    store.save("students", [{"admissionNumber": "A1"}, {"admissionNumber": "A1"}])
    assert cli.main(["--data-dir", str(data_dir)]) == 1
    out = capsys.readouterr().out
    assert "books: CORRUPT" in out
    assert "duplicate keys: A1" in out
