"""Tests for reading schema documents from disk."""

import json

import pytest

from icglr_spine.core.errors import SchemaResolutionError
from icglr_spine.core.settings import PACKAGED_SCHEMA_DIR
from icglr_spine.schema.loader import load_catalog, load_documents


class TestLoadDocuments:
    def test_reads_json_files_recursively(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.json").write_text(json.dumps({"type": "object", "properties": {"x": {"type": "string"}}}))
        (tmp_path / "sub" / "b.json").write_text(json.dumps({"$id": "https://example.org/b.json", "type": "string"}))
        (tmp_path / "notes.txt").write_text("ignored")

        documents = load_documents(tmp_path)

        assert len(documents) == 2
        assert (tmp_path / "a.json").resolve().as_uri() in documents

    def test_hidden_directories_are_skipped(self, tmp_path):
        (tmp_path / ".cache").mkdir()
        (tmp_path / ".cache" / "x.json").write_text("{}")
        assert load_documents(tmp_path) == {}

    def test_invalid_json(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json")
        with pytest.raises(SchemaResolutionError, match="Invalid JSON"):
            load_documents(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SchemaResolutionError):
            load_documents(tmp_path / "absent")

    def test_relative_refs_between_files(self, tmp_path):
        (tmp_path / "common.json").write_text(
            json.dumps({"definitions": {"Geo": {"type": "object", "properties": {"lat": {"type": "number"}}}}})
        )
        (tmp_path / "site.json").write_text(
            json.dumps({"type": "object", "properties": {"geo": {"$ref": "common.json#/definitions/Geo"}}})
        )
        catalog = load_catalog(tmp_path)
        site = catalog.root((tmp_path / "site.json").resolve().as_uri())
        assert catalog.resolve(site.get("geo")).property_names == ("lat",)


class TestPackagedSchemas:
    def test_packaged_catalog_loads(self, catalog):
        assert len(catalog.document_ids) == len(list(PACKAGED_SCHEMA_DIR.rglob("*.json")))
        assert "https://schemas.icglr.org/core/common.json" in catalog.document_ids

    def test_lot_input_lot_refers_to_the_lot_root(self, catalog):
        lot = catalog.root("https://schemas.icglr.org/chain-of-custody/lot.json")
        items = catalog.resolve(lot.get("inputLot").items)
        assert items is lot
