"""
Integration tests for the local HTTP API, run against a per-test SQLite
database and media root.
"""
import json

import pytest

from corpsjournal.schemas.lock import LockReason, LockState, LockStatus
from corpsjournal.services.kv_store import StoreKeys


def lock_journal(services):
    status = LockStatus(
        state=LockState.LOCKED_COMPLETED,
        is_locked=True,
        reason=LockReason.SERVICE_COMPLETED,
        message="Your NYSC service year has concluded. The app is now in read-only mode.",
    )
    services.store.set_json(StoreKeys.LOCK_STATUS, status.to_store())


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestEntries:
    def test_create_entry(self, client):
        r = client.post("/entries", json={"title": "Camp", "content": "Day one", "tags": ["camp"]})
        assert r.status_code == 201
        body = r.json()
        assert body["id"].startswith("entry_")
        assert body["syncStatus"] == "local"
        assert body["createdAt"] == body["updatedAt"]
        assert body["audioNotes"] == []

    def test_new_entry_counts_towards_badges(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        client.post("/entries", json={"id": "a", "title": "Camp edited"})

        assert services.badges.get_progress().entries_count == 1
        recent = client.get("/badges/recent").json()
        assert [b["id"] for b in recent] == ["first_entry"]

    def test_get_entry(self, client):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        r = client.get("/entries/a")
        assert r.status_code == 200
        assert r.json()["title"] == "Camp"

    def test_get_missing_entry(self, client):
        r = client.get("/entries/nope")
        assert r.status_code == 404
        assert r.json()["code"] == "ENTRY_NOT_FOUND"
        assert r.json()["details"]["id"] == "nope"

    def test_patch_entry(self, client):
        client.post("/entries", json={"id": "a", "title": "Camp", "content": "keep"})
        r = client.patch("/entries/a", json={"title": "PPA"})
        assert r.status_code == 200
        assert r.json()["title"] == "PPA"
        assert r.json()["content"] == "keep"

    def test_patch_missing_entry(self, client):
        r = client.patch("/entries/nope", json={"title": "x"})
        assert r.status_code == 404

    def test_delete_entry(self, client):
        client.post("/entries", json={"id": "a"})
        assert client.delete("/entries/a").status_code == 204
        assert client.delete("/entries/a").status_code == 404

    def test_search_counts_towards_badges(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Orientation camp"})
        client.post("/entries", json={"id": "b", "title": "CDS meeting"})

        r = client.get("/entries", params={"q": "CAMP"})
        assert [e["id"] for e in r.json()] == ["a"]
        assert services.badges.get_progress().search_count == 1

    def test_list_by_month(self, client):
        client.post("/entries", json={"id": "jan", "date": "2024-01-31T23:00:00+01:00"})
        client.post("/entries", json={"id": "feb", "date": "2024-02-01T00:30:00+01:00"})

        r = client.get("/entries", params={"month": 0, "year": 2024})
        assert [e["id"] for e in r.json()] == ["jan"]
        r = client.get("/entries/count", params={"month": 1, "year": 2024})
        assert r.json() == {"month": 1, "year": 2024, "count": 1}

    def test_month_out_of_range(self, client):
        r = client.get("/entries/count", params={"month": 12, "year": 2024})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_repair(self, client, services):
        services.store.set_json(StoreKeys.ENTRIES, [{"id": "a", "date": "bad"}])
        assert client.post("/entries/repair").json() == {"fixedCount": 1}
        assert client.post("/entries/repair").json() == {"fixedCount": 0}

    def test_title_too_long(self, client):
        r = client.post("/entries", json={"title": "x" * 101})
        assert r.status_code == 422


class TestLockGate:
    def test_mutations_refused_while_locked(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        lock_journal(services)

        for r in (
            client.post("/entries", json={"title": "late"}),
            client.patch("/entries/a", json={"title": "late"}),
            client.delete("/entries/a"),
        ):
            assert r.status_code == 409
            assert r.json()["code"] == "JOURNAL_LOCKED"
            assert r.json()["details"]["reason"] == "SERVICE_COMPLETED"

    def test_data_wipe_refused_while_locked(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        lock_journal(services)

        r = client.delete("/data")
        assert r.status_code == 409
        assert r.json()["code"] == "JOURNAL_LOCKED"
        assert client.get("/entries/a").status_code == 200

    def test_reads_allowed_while_locked(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        lock_journal(services)
        assert client.get("/entries/a").status_code == 200
        assert client.get("/backup/export").status_code == 200

    def test_lock_endpoints(self, client, services):
        assert client.get("/lock").json()["state"] == "ACTIVE"

        r = client.post("/lock/check")
        assert r.status_code == 200
        body = r.json()
        assert body["isLocked"] is False
        assert body["timeSource"] == "device"
        assert len(services.lock.checkpoints()) == 1


class TestMedia:
    def test_save_image_and_stats(self, client, temp_file):
        r = client.post("/media/images", json={"tempPath": temp_file("p.jpg", b"1234"), "entryId": "a"})
        assert r.status_code == 201
        assert r.json()["path"].endswith(".jpg")

        stats = client.get("/media/stats").json()
        assert stats["imageCount"] == 1
        assert stats["totalBytes"] == 4

    def test_save_audio(self, client, temp_file):
        r = client.post("/media/audio", json={"tempPath": temp_file("r"), "entryId": "a"})
        assert r.status_code == 201
        assert r.json()["path"].endswith(".m4a")

    def test_failed_copy_is_surfaced(self, client, tmp_path):
        r = client.post("/media/images", json={"tempPath": str(tmp_path / "gone.jpg"), "entryId": "a"})
        assert r.status_code == 500
        assert r.json()["code"] == "MEDIA_STORAGE_ERROR"

    def test_sweep(self, client, temp_file):
        kept = client.post("/media/images", json={"tempPath": temp_file("a.jpg"), "entryId": "a"}).json()["path"]
        client.post("/media/images", json={"tempPath": temp_file("b.jpg"), "entryId": "a"})
        client.post("/entries", json={"id": "a", "images": [kept]})

        assert client.post("/media/sweep").json() == {"deletedCount": 1}


class TestBackup:
    def test_export_awards_data_guardian(self, client, services):
        client.post("/entries", json={"id": "a", "title": "Camp"})
        r = client.get("/backup/export")
        assert r.status_code == 200
        assert r.json()["metadata"]["entriesCount"] == 1
        assert services.badges.has_badge("data_guardian")

    def test_import_replace(self, client):
        client.post("/entries", json={"id": "old"})
        document = {"entries": [{"id": "a", "title": "Camp"}, {"id": "b", "title": "PPA"}]}

        r = client.post(
            "/backup/import",
            params={"mode": "replace"},
            content=json.dumps(document),
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 200
        assert r.json()["success"] is True
        assert r.json()["stats"]["entriesImported"] == 2
        assert {e["id"] for e in client.get("/entries").json()} == {"a", "b"}

    def test_import_merge_is_default(self, client):
        client.post("/entries", json={"id": "a"})
        r = client.post("/backup/import", content=json.dumps({"entries": [{"id": "a"}, {"id": "b"}]}))
        assert r.json()["stats"]["entriesSkipped"] == 1
        assert len(client.get("/entries").json()) == 2

    @pytest.mark.parametrize("body,message", [
        ("{broken", "Invalid data format. The file appears to be corrupted."),
        ('{"settings": {}}', "Invalid backup file format. Entries data is missing or corrupted."),
    ])
    def test_import_invalid(self, client, body, message):
        r = client.post("/backup/import", content=body)
        assert r.status_code == 422
        assert r.json() == {"code": "IMPORT_INVALID", "message": message}

    def test_import_bad_mode(self, client):
        r = client.post("/backup/import", params={"mode": "append"}, content='{"entries": []}')
        assert r.status_code == 422

    def test_clear_all_data(self, client, temp_file):
        path = client.post("/media/images", json={"tempPath": temp_file("a.jpg"), "entryId": "a"}).json()["path"]
        client.post("/entries", json={"id": "a", "images": [path]})
        client.put("/settings", json={"theme": "dark"})

        assert client.delete("/data").status_code == 204
        assert client.get("/entries").json() == []
        assert client.get("/settings").json() == {}
        assert client.get("/media/stats").json()["totalFiles"] == 0


class TestProfile:
    def test_profile_missing(self, client):
        r = client.get("/profile")
        assert r.status_code == 404
        assert r.json()["code"] == "PROFILE_NOT_FOUND"

    def test_save_and_read_profile(self, client):
        r = client.put("/profile", json={
            "name": "  Ada  ",
            "stateOfDeployment": "Kano",
            "startDate": "2026-03-10T00:00:00+01:00",
        })
        assert r.status_code == 200
        body = r.json()
        assert body["name"] == "Ada"
        assert body["endDate"].startswith("2027-03-10")
        assert body["dateChangesLeft"] == 3
        assert client.get("/profile").json() == body

    def test_blank_name_rejected(self, client):
        r = client.put("/profile", json={"name": "   ", "startDate": "2026-03-10T00:00:00+01:00"})
        assert r.status_code == 422
        assert r.json()["details"]["errors"][0]["field"] == "name"

    def test_change_limit(self, client, services):
        services.profiles.replace_raw({
            "name": "Ada",
            "stateOfDeployment": "Kano",
            "startDate": "2025-03-10T00:00:00.000+01:00",
            "endDate": "2026-03-10T00:00:00.000+01:00",
            "dateChangesLeft": 0,
            "dateFirstSet": "2025-03-01T00:00:00.000+01:00",
        })
        r = client.put("/profile", json={"name": "Ada", "startDate": "2025-04-10T00:00:00+01:00"})
        assert r.status_code == 409
        assert r.json()["code"] == "START_DATE_CHANGE_LIMIT"

    def test_settings_round_trip(self, client):
        assert client.get("/settings").json() == {}
        assert client.put("/settings", json={"theme": "dark"}).status_code == 200
        assert client.get("/settings").json() == {"theme": "dark"}


class TestBadges:
    def test_all_badges_grouped(self, client):
        body = client.get("/badges").json()
        assert sum(len(group) for group in body.values()) == 10
        assert all(b["earned"] is False for group in body.values() for b in group)

    def test_mark_viewed(self, client):
        assert client.post("/badges/first_entry/viewed").status_code == 404
        client.post("/entries", json={"title": "Camp"})
        r = client.post("/badges/first_entry/viewed")
        assert r.status_code == 200
        assert r.json()["viewed"] is True
