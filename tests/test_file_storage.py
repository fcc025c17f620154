"""Test the gzip snapshot store, the blocklist file and the source registry"""

import gzip
import json

import pytest

from catalog_builder.domain.entities import ListEntry, NotFound, Resolved
from catalog_builder.domain.exceptions import RegistryLoadError
from catalog_builder.infrastructure.file_storage import (
    GzipSnapshotStore,
    JsonBlocklistStore,
    JsonSourceRegistry,
    record_from_dict,
)

from fakes import at, item, snapshot_of


class TestGzipSnapshotStore:

    def test_save_then_load_preserves_entries_and_records(self, tmp_path):
        path = tmp_path / "items.json.gz"
        written = snapshot_of({
            "owner/awesome": ListEntry(at(10), at(9), [
                item("https://github.com/a/b", subcategory="CLI",
                     metadata=Resolved(12, "Rust", at(3)), last_enriched=at(4)),
                item("https://github.com/a/dead", metadata=NotFound(at(5)), last_enriched=at(5)),
                item("https://example.com/plain"),
            ]),
        })

        GzipSnapshotStore(path).save(written)
        loaded = GzipSnapshotStore(path).load()

        assert loaded.lists == written.lists
        assert loaded.item_count == 3
        assert loaded.list_count == 1
        assert list(tmp_path.iterdir()) == [path]

    def test_artifact_shape(self, tmp_path):
        path = tmp_path / "items.json.gz"
        GzipSnapshotStore(path).save(snapshot_of({
            "o/l": ListEntry(at(10), None, [item("u", metadata=NotFound(at(5)))]),
        }))

        with gzip.open(path, "rt", encoding="utf-8") as f:
            raw = json.load(f)

        assert raw["listCount"] == 1 and raw["itemCount"] == 1
        entry = raw["lists"]["o/l"]
        assert entry["lastParsed"] == "2024-01-01T10:00:00Z"
        assert entry["pushedAt"] == ""
        assert entry["items"][0]["metadata"] == {"notFound": True, "checkedAt": "2024-01-01T05:00:00Z"}
        assert "subcategory" not in entry["items"][0]

    def test_missing_file_is_first_run(self, tmp_path):
        assert GzipSnapshotStore(tmp_path / "nope.json.gz").load() is None

    def test_corrupt_file_is_first_run(self, tmp_path):
        path = tmp_path / "items.json.gz"
        path.write_bytes(b"not gzip at all")

        assert GzipSnapshotStore(path).load() is None

    def test_legacy_github_key_and_junk_items(self, tmp_path):
        path = tmp_path / "items.json.gz"
        raw = {"generatedAt": "2024-01-01T00:00:00Z", "lists": {"o/l": {
            "lastParsed": "2024-01-02T00:00:00.000Z",
            "pushedAt": "2024-01-01T00:00:00Z",
            "items": [
                {"name": "A", "url": "https://github.com/a/a", "description": "", "category": "C",
                 "github": {"stars": 3, "language": None, "pushedAt": "2023-12-01T00:00:00Z"}},
                {"url": "missing-name"},
                "garbage",
            ],
        }}}
        path.write_bytes(gzip.compress(json.dumps(raw).encode()))

        loaded = GzipSnapshotStore(path).load()

        items = loaded.lists["o/l"].items
        assert len(items) == 1
        assert items[0].metadata.stars == 3
        assert loaded.lists["o/l"].last_parsed == at(24)


class TestRecordParsing:

    def test_not_found_marker_wins(self):
        assert isinstance(record_from_dict({"notFound": True, "checkedAt": "2024-01-01T00:00:00Z"}), NotFound)

    @pytest.mark.parametrize("raw", [None, {}, {"stars": "many"}, {"notFound": True}, "x"])
    def test_unusable_records_become_none(self, raw):
        assert record_from_dict(raw) is None


class TestJsonBlocklistStore:

    def test_rewritten_sorted_and_deduplicated(self, tmp_path):
        path = tmp_path / "dead-urls.json"
        store = JsonBlocklistStore(path)

        store.save({"https://b", "https://a"})

        assert json.loads(path.read_text()) == ["https://a", "https://b"]
        assert store.load() == {"https://a", "https://b"}

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonBlocklistStore(tmp_path / "none.json").load() == set()


class TestJsonSourceRegistry:

    def test_reads_current_and_legacy_keys(self, tmp_path):
        path = tmp_path / "lists.json"
        path.write_text(json.dumps([
            {"id": "a/awesome", "name": "Awesome A", "popularity": 10},
            {"repo": "b/awesome", "name": "Awesome B", "stars": 5},
            {"name": "no id"},
        ]))

        sources = JsonSourceRegistry(path).load()

        assert [(s.repo, s.name, s.popularity) for s in sources] == [
            ("a/awesome", "Awesome A", 10),
            ("b/awesome", "Awesome B", 5),
        ]

    def test_unreadable_registry_is_fatal(self, tmp_path):
        with pytest.raises(RegistryLoadError):
            JsonSourceRegistry(tmp_path / "missing.json").load()

    def test_non_array_registry_is_fatal(self, tmp_path):
        path = tmp_path / "lists.json"
        path.write_text('{"not": "a list"}')

        with pytest.raises(RegistryLoadError):
            JsonSourceRegistry(path).load()
