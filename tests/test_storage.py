import json

import pytest

from storage import FileStorage, KeyValueStorage, MemoryStorage


def test_memory_storage_basics():
    storage = MemoryStorage({"a": "1"})
    assert storage.get_item("a") == "1"
    storage.set_item("b", "2")
    storage.remove_item("a")
    storage.remove_item("missing")
    assert storage.get_item("a") is None
    assert storage.get_item("b") == "2"
    storage.clear()
    assert storage.get_item("b") is None


def test_file_storage_survives_restart(tmp_path):
    path = tmp_path / "state" / "storage.json"
    storage = FileStorage(path)
    storage.set_item("supermarket-auth-token", "tok")
    storage.set_item("supermarket-cart", "[]")
    storage.remove_item("supermarket-cart")

    reopened = FileStorage(path)
    assert reopened.get_item("supermarket-auth-token") == "tok"
    assert reopened.get_item("supermarket-cart") is None
    assert json.loads(path.read_text()) == {"supermarket-auth-token": "tok"}


def test_file_storage_ignores_malformed_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{not json")

    storage = FileStorage(path)
    assert storage.get_item("anything") is None

    storage.set_item("k", "v")
    assert FileStorage(path).get_item("k") == "v"


def test_file_storage_ignores_non_object(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("[1, 2, 3]")
    assert FileStorage(path).get_item("0") is None


def test_file_storage_clear_and_flush(tmp_path):
    path = tmp_path / "storage.json"
    storage = FileStorage(path)
    storage.set_item("k", "v")
    storage.clear()
    storage.flush()
    assert json.loads(path.read_text()) == {}


def test_storage_interface_cannot_be_instantiated():
    with pytest.raises(TypeError):
        KeyValueStorage()
