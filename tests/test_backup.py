"""
Tests for BackupCodec.

Covers:
- Export shape, metadata and media stripping
- Replace-mode round trip (lossy for media)
- Merge-mode skip counts
- Singleton records imported whenever present
- Structured failures for malformed documents
"""
import json

import pytest

from corpsjournal.services.backup import (
    ERROR_NO_ENTRIES,
    ERROR_UNPARSEABLE,
    EXPORT_VERSION,
    BackupCodec,
    ImportMode,
)

from conftest import lagos


@pytest.fixture()
def codec(entries, profiles, badges, clock):
    return BackupCodec(entries, profiles, badges, clock=clock, app_version="9.9.9")


@pytest.fixture()
def seeded(entries, media, temp_file, profiles):
    image = media.save_image(temp_file("camp.jpg"), "a")
    audio = media.save_audio(temp_file("anthem.m4a"), "a")
    entries.save({
        "id": "a",
        "title": "Camp",
        "content": "Swearing-in",
        "tags": ["camp", "oath"],
        "images": [image],
        "audioNotes": [{"id": "n1", "uri": audio, "name": "Anthem", "date": "2026-03-01T08:00:00+01:00"}],
    })
    entries.save({"id": "b", "title": "PPA", "content": "First day at school", "tags": ["ppa"]})
    profiles.save_profile("Ada", "Kano", lagos(2026, 3, 1))
    profiles.save_settings({"theme": "dark"})
    return {"image": image, "audio": audio}


class TestExport:
    def test_empty_export_is_valid_json(self, codec):
        document = json.loads(codec.export_json())
        assert document["entries"] == []
        assert document["metadata"]["entriesCount"] == 0
        assert document["serviceInfo"] is None

    def test_metadata(self, codec, seeded, clock):
        metadata = codec.export()["metadata"]
        assert metadata["exportVersion"] == EXPORT_VERSION
        assert metadata["appVersion"] == "9.9.9"
        assert metadata["entriesCount"] == 2
        assert metadata["badgesCount"] == 0
        assert metadata["exportDate"].startswith("2026-03-15T10:00:00")
        assert "not included" in metadata["mediaNote"]

    def test_media_is_stripped(self, codec, seeded):
        exported = {e["id"]: e for e in codec.export()["entries"]}
        camp = exported["a"]

        assert camp["images"] == []
        assert camp["originalImageCount"] == 1
        assert camp["imageFilenames"] == [seeded["image"].rsplit("/", 1)[-1]]
        assert camp["audioNotes"] == [{
            "id": "n1",
            "name": "Anthem",
            "date": "2026-03-01T08:00:00+01:00",
            "originalFilename": seeded["audio"].rsplit("/", 1)[-1],
            "uri": None,
            "isPlaceholder": True,
        }]
        assert exported["b"]["originalImageCount"] == 0

    def test_stored_entries_keep_their_media(self, codec, seeded, entries):
        codec.export()
        assert entries.get("a").images == [seeded["image"]]

    def test_singleton_records_are_included(self, codec, seeded):
        document = codec.export()
        assert document["settings"] == {"theme": "dark"}
        assert document["serviceInfo"]["name"] == "Ada"
        assert "entriesCount" in document["badgeProgress"]

    def test_unicode_survives(self, codec, entries):
        entries.save({"id": "a", "title": "Ọjọ́ kìíní"})
        assert "Ọjọ́ kìíní" in codec.export_json()


class TestImport:
    def test_replace_round_trip(self, codec, seeded, entries):
        document = codec.export_json()
        entries.save({"id": "c", "title": "discarded by replace"})

        result = codec.import_document(document, ImportMode.REPLACE)

        assert result.success is True
        assert result.stats.entries_imported == 2
        assert result.stats.entries_skipped == 0
        restored = {e.id: e for e in entries.list()}
        assert set(restored) == {"a", "b"}
        assert restored["a"].title == "Camp"
        assert restored["a"].content == "Swearing-in"
        assert restored["a"].tags == ["camp", "oath"]
        for entry in restored.values():
            assert entry.images == []
            assert all(note.uri is None for note in entry.audio_notes)

    def test_merge_twice_skips_everything_the_second_time(self, codec, seeded, entries):
        document = codec.export()
        entries.replace_all([])

        first = codec.import_document(document, ImportMode.MERGE)
        second = codec.import_document(document, ImportMode.MERGE)

        assert (first.stats.entries_imported, first.stats.entries_skipped) == (2, 0)
        assert (second.stats.entries_imported, second.stats.entries_skipped) == (0, 2)
        assert len(entries.list()) == 2

    def test_merge_keeps_existing_entries(self, codec, entries):
        entries.save({"id": "local", "title": "mine"})
        result = codec.import_document({"entries": [{"id": "remote", "title": "theirs"}]}, "merge")
        assert result.stats.entries_imported == 1
        assert {e.id for e in entries.list()} == {"local", "remote"}

    def test_merge_imports_repeated_ids_once(self, codec, entries):
        document = {"entries": [{"id": "x", "title": "1"}, {"id": "x", "title": "2"}]}
        result = codec.import_document(document, ImportMode.MERGE)
        assert result.stats.entries_imported == 1
        assert result.stats.entries_skipped == 1

    def test_replace_imports_repeated_ids_once(self, codec, entries):
        document = {"entries": [{"id": "dup", "title": "1"}, {"id": "dup", "title": "2"}]}
        result = codec.import_document(document, ImportMode.REPLACE)

        assert result.stats.entries_imported == 1
        assert result.stats.entries_skipped == 1
        assert [e.id for e in entries.list()] == ["dup"]
        assert entries.get("dup").title == "1"

    def test_entries_without_id_get_one(self, codec, entries):
        result = codec.import_document({"entries": [{"title": "no id"}]}, ImportMode.MERGE)
        assert result.stats.entries_imported == 1
        assert entries.list()[0].id

    def test_non_object_entries_are_skipped(self, codec):
        result = codec.import_document({"entries": ["junk", {"id": "a"}]}, ImportMode.REPLACE)
        assert result.stats.entries_imported == 1
        assert result.stats.entries_skipped == 1

    def test_singletons_replace_whenever_present(self, codec, profiles, badges):
        profiles.save_settings({"theme": "light"})
        document = {
            "entries": [],
            "settings": {"theme": "dark"},
            "serviceInfo": {"name": "Ada", "stateOfDeployment": "Kano", "startDate": "2026-03-01T00:00:00+01:00"},
            "badges": [{"id": "first_entry", "title": "First Entry", "awardedAt": "2026-03-02T00:00:00+01:00"}],
            "badgeProgress": {"entriesCount": 4, "streakDays": 2},
        }
        result = codec.import_document(document, ImportMode.MERGE)

        assert result.stats.to_dict() == {
            "entriesImported": 0,
            "entriesSkipped": 0,
            "settingsImported": True,
            "serviceInfoImported": True,
            "badgesImported": 1,
        }
        assert profiles.get_settings() == {"theme": "dark"}
        assert profiles.get_profile().state_of_deployment == "Kano"
        assert badges.has_badge("first_entry")
        assert badges.get_progress().entries_count == 4

    def test_missing_singletons_are_not_imported(self, codec, profiles):
        profiles.save_settings({"theme": "light"})
        result = codec.import_document({"entries": []}, ImportMode.REPLACE)
        assert result.stats.settings_imported is False
        assert result.stats.service_info_imported is False
        assert result.stats.badges_imported == 0
        assert profiles.get_settings() == {"theme": "light"}


class TestInvalidDocuments:
    def test_unparseable_json(self, codec):
        result = codec.import_document("{not json", ImportMode.MERGE)
        assert result.to_dict() == {"success": False, "error": ERROR_UNPARSEABLE, "stats": None}

    @pytest.mark.parametrize("document", [
        {},
        {"entries": "nope"},
        {"entries": None},
        [],
        "[1, 2]",
    ])
    def test_missing_entries_array(self, codec, document):
        result = codec.import_document(document, ImportMode.REPLACE)
        assert result.success is False
        assert result.error == ERROR_NO_ENTRIES
        assert result.stats is None

    def test_rejected_document_changes_nothing(self, codec, entries):
        entries.save({"id": "a"})
        codec.import_document({"settings": {}}, ImportMode.REPLACE)
        assert [e.id for e in entries.list()] == ["a"]

    def test_storage_failure_is_reported(self, codec, entries, monkeypatch):
        def broken(records):
            raise RuntimeError("disk full")

        monkeypatch.setattr(entries, "replace_all", broken)
        result = codec.import_document({"entries": []}, ImportMode.REPLACE)
        assert result.success is False
        assert result.stats is None
