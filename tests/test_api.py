"""HTTP tests through FastAPI's TestClient."""

import hashlib

import pytest
from fastapi.testclient import TestClient

from main import create_app

MEMBER = {"X-User-Id": "42"}
OTHER = {"X-User-Id": "43"}
ADMIN = {"X-User-Id": "1000"}


@pytest.fixture
def client(ctx):
    return TestClient(create_app(ctx))


def _upload(client, content=b"hello world", filename="hello.txt", headers=MEMBER):
    response = client.post(
        "/files/upload",
        files=[("files", (filename, content, "text/plain"))],
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()["successFiles"][0]["label"]


class TestHealth:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}


class TestUploadAndDownload:
    """Tests for the upload and download routes."""

    def test_round_trip(self, client):
        label = _upload(client, b"round trip", "trip.txt")
        assert label == hashlib.md5(b"round trip").hexdigest()[:6]

        response = client.get(f"/files/download/{label}", headers=OTHER)
        assert response.status_code == 200
        assert response.content == b"round trip"
        assert response.headers["content-disposition"] == "attachment; filename*=UTF-8''trip.txt"

    def test_multiple_files(self, client):
        response = client.post(
            "/files/upload",
            files=[
                ("files", ("a.txt", b"a", "text/plain")),
                ("files", ("b.txt", b"b", "text/plain")),
            ],
            headers=MEMBER,
        )
        body = response.json()
        assert [s["fileName"] for s in body["successFiles"]] == ["a.txt", "b.txt"]
        assert body["failureCount"] == 0

    def test_download_records_event(self, client):
        label = _upload(client)
        client.get(f"/files/download/{label}", headers=OTHER)
        history = client.get("/files/downloads", headers=OTHER).json()
        assert history["totalCount"] == 1

    def test_preview_is_inline_and_not_recorded(self, client):
        label = _upload(client, b"<p>hi</p>", "page.html")
        response = client.get(f"/files/preview/{label}", headers=OTHER)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["content-disposition"].startswith("inline")
        assert client.get("/files/downloads", headers=OTHER).json()["totalCount"] == 0

    def test_invalid_identifier(self, client):
        response = client.get("/files/download/abc", headers=MEMBER)
        assert response.status_code == 400
        assert "error" in response.json()

    def test_wildcard_identifier_rejected(self, client):
        _upload(client, b"private share", "secret.txt")
        response = client.get("/files/download/%25%25%25%25%25%25", headers=OTHER)
        assert response.status_code == 400
        assert client.get("/files/download/______", headers=OTHER).status_code == 400

    def test_unknown_identifier(self, client):
        assert client.get("/files/download/ffffff", headers=MEMBER).status_code == 404

    def test_locked_download_forbidden(self, client):
        label = _upload(client)
        client.post("/files/lock/true", json={"files": [label]}, headers=MEMBER)
        assert client.get(f"/files/download/{label}", headers=OTHER).status_code == 403
        assert client.get(f"/files/download/{label}", headers=MEMBER).status_code == 200

    def test_expired_download(self, client, expire):
        label = _upload(client)
        expire(label)
        assert client.get(f"/files/download/{label}", headers=OTHER).status_code == 404
        assert client.get(f"/files/download/{label}", headers=ADMIN).status_code == 200


class TestFileRoutes:
    """Tests for listing and mutation routes."""

    def test_allfiles(self, client):
        _upload(client, b"1", "report.pdf")
        _upload(client, b"2", "notes.txt")
        body = client.get("/allfiles", params={"keyword": "report"}, headers=OTHER).json()
        assert body["totalCount"] == 1
        assert body["files"][0]["filename"] == "report.pdf"

    def test_allfiles_bad_pagination_uses_defaults(self, client):
        body = client.get("/allfiles", params={"page": "x", "limit": "-1"}, headers=MEMBER).json()
        assert body["page"] == 1
        assert body["limit"] == 100

    def test_lock_status_must_be_boolean(self, client):
        response = client.post("/files/lock/maybe", json={"files": []}, headers=MEMBER)
        assert response.status_code == 400

    def test_delete(self, client):
        label = _upload(client)
        body = client.post("/files/delete", json={"files": [label, "abc"]}, headers=MEMBER).json()
        assert body["successFiles"] == [{"hash": label}]
        assert body["failureCount"] == 1
        assert client.get(f"/files/download/{label}", headers=MEMBER).status_code == 404

    def test_tags_and_counts(self, client):
        label = _upload(client)
        client.post("/files/tags", json={"files": [label], "tags": "a b"}, headers=MEMBER)
        assert client.get("/files/tags", headers=MEMBER).json() == {"a": 1, "b": 1}

    def test_update_info(self, client):
        label = _upload(client, filename="old.txt")
        response = client.put(f"/files/{label}/info", json={"filename": "new.txt", "tags": ""}, headers=MEMBER)
        assert response.status_code == 200
        body = client.get("/allfiles", headers=MEMBER).json()
        assert body["files"][0]["filename"] == "new.txt"

    def test_update_info_rejects_empty_name(self, client):
        label = _upload(client)
        response = client.put(f"/files/{label}/info", json={"filename": ""}, headers=MEMBER)
        assert response.status_code == 422

    def test_note(self, client):
        label = _upload(client, filename="doc.md", headers=ADMIN)
        body = client.get(f"/files/{label}/note", headers=ADMIN).json()
        assert body["noteTitle"] == "doc.md"
        assert body["noteID"]

    def test_history_forbidden_for_guest(self, client):
        assert client.get("/files/uploads").status_code == 403

    def test_rank(self, client):
        label = _upload(client)
        client.get(f"/files/download/{label}", headers=OTHER)
        files = client.get("/files/rank").json()["files"]
        assert files[0]["download_count"] == 1


class TestAuthDisabled:
    def test_every_caller_is_test(self, ctx):
        ctx.settings.auth_disabled = True
        client = TestClient(create_app(ctx))
        label = _upload(client, headers={})
        # Test owns its uploads, so it may lock them
        body = client.post("/files/lock/true", json={"files": [label]}).json()
        assert body["failureCount"] == 0
