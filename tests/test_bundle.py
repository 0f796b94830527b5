"""Tests for export and import."""

import json

import pytest

import trove
from trove import BundleError, ErrorKind, InvalidKeyError, SerializationError
from trove.bundle import dump_bundle, load_bundle


class TestBundleFormat:
    """Tests for dump_bundle and load_bundle."""

    def test_dump(self):
        data = json.loads(dump_bundle("scores", "1.2.3", [("a", "1"), ("b", '"x"')]))
        assert data["name"] == "scores"
        assert data["version"] == "1.2.3"
        assert isinstance(data["exportDate"], int)
        assert data["keys"] == [{"key": "a", "value": "1"}, {"key": "b", "value": '"x"'}]

    def test_load(self):
        bundle = dump_bundle("scores", "1", [("a", "1")])
        assert load_bundle(bundle, "scores") == [("a", "1")]
        assert load_bundle(json.loads(bundle)) == [("a", "1")]

    @pytest.mark.parametrize(
        "data",
        [
            "{not json",
            "null",
            None,
            "[]",
            '{"name": "scores"}',
            '{"name": "scores", "keys": [{"key": "a"}]}',
            '{"name": "scores", "keys": [{"key": "a", "value": 1}]}',
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(BundleError) as info:
            load_bundle(data, "scores")
        assert info.value.kind is ErrorKind.IMPORT

    def test_name_mismatch(self):
        with pytest.raises(BundleError):
            load_bundle(dump_bundle("other", "1", []), "scores")


class TestExportImport:
    """Tests for Collection.export and Collection.import_data."""

    def test_export(self, db):
        db.set("a", {"x": 1})
        data = json.loads(db.export())
        assert data["name"] == "testing"
        assert data["version"] == trove.__version__
        assert data["keys"] == [{"key": "a", "value": '{"x": 1}'}]

    def test_roundtrip(self, db):
        db.set("a", {"x": [1, 2]})
        db.set("b", "text")
        bundle = db.export()
        db.clear()

        db.import_data(bundle)
        assert db.entries() == [("a", {"x": [1, 2]}), ("b", "text")]

    def test_overwrite(self, db):
        db.set("a", 1)
        bundle = db.export()
        db.set("a", 2)

        db.import_data(bundle, overwrite=False)
        assert db.get("a") == 2
        db.import_data(bundle)
        assert db.get("a") == 1

    def test_clear(self, db):
        db.set("a", 1)
        bundle = db.export()
        db.set("b", 2)

        db.import_data(bundle, clear=True)
        assert db.keys() == ["a"]

    def test_invalid_key_writes_nothing(self, db):
        bundle = dump_bundle("testing", "1", [("ok", "1"), ("not ok", "2")])
        with pytest.raises(InvalidKeyError):
            db.import_data(bundle)
        assert db.size == 0

    def test_undecodable_value_writes_nothing(self, db):
        bundle = dump_bundle("testing", "1", [("ok", "1"), ("bad", "{nope")])
        with pytest.raises(SerializationError):
            db.import_data(bundle)
        assert db.size == 0

    def test_wrong_collection(self, db):
        with pytest.raises(BundleError):
            db.import_data(dump_bundle("elsewhere", "1", [("a", "1")]))
