"""
Tests for the JSON-backed map pointer store.
"""

import json

import pytest

from idenguefy.storage.pointer_store import MapPointer, PointerStore


@pytest.fixture
def store(tmp_path):
    return PointerStore(tmp_path / "Data" / "pointers.json")


class TestPointerStore:
    """CRUD behaviour"""

    def test_empty_when_file_missing(self, store):
        assert store.list_pointers() == []

    def test_create_and_list(self, store):
        home = store.create("Home", 103.85, 1.30, home_tag=True, area_name="Raffles")
        store.create("Office", 103.90, 1.32)

        pointers = store.list_pointers()
        assert [p.name for p in pointers] == ["Home", "Office"]
        assert [p.map_id for p in pointers] == ["0", "1"]
        assert home.coordinates == (103.85, 1.30)
        assert pointers[0].home_tag is True
        assert pointers[1].home_tag is False

    def test_persists_as_json(self, store):
        store.create("Clinic", 103.8, 1.31, note="level 2")
        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data == [{
            "map_id": "0",
            "name": "Clinic",
            "lon": 103.8,
            "lat": 1.31,
            "home_tag": False,
            "area_name": "",
            "note": "level 2",
        }]

    def test_sees_external_edits(self, store):
        store.create("A", 103.8, 1.3)
        other = PointerStore(store.path)
        other.create("B", 103.9, 1.3)
        assert [p.name for p in store.list_pointers()] == ["A", "B"]

    def test_read(self, store):
        store.create("A", 103.8, 1.3)
        assert store.read("0") == MapPointer("0", "A", 103.8, 1.3)
        assert store.read("7") is None

    def test_edit(self, store):
        store.create("A", 103.8, 1.3)
        assert store.edit("0", name="Home", home_tag=True, note=None) is True

        pointer = store.read("0")
        assert pointer.name == "Home"
        assert pointer.home_tag is True
        assert pointer.note == ""

    def test_edit_missing_pointer(self, store):
        assert store.edit("3", name="X") is False

    def test_edit_unknown_field(self, store):
        store.create("A", 103.8, 1.3)
        with pytest.raises(ValueError):
            store.edit("0", colour="red")
        with pytest.raises(ValueError):
            store.edit("0", map_id="9")

    def test_delete_renumbers(self, store):
        for name in ("A", "B", "C"):
            store.create(name, 103.8, 1.3)

        assert store.delete("1") is True
        pointers = store.list_pointers()
        assert [(p.map_id, p.name) for p in pointers] == [("0", "A"), ("1", "C")]
        assert store.delete("5") is False

    def test_corrupt_file_reads_as_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")
        assert store.list_pointers() == []
