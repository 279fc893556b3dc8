from __future__ import annotations

from urllib.parse import urlsplit

from fastapi.testclient import TestClient

from expense_scanner.core.security import create_object_token
from expense_scanner.core.storage import ObjectStorage, StorageError, get_storage
from expense_scanner.main import app

PNG = ("lunch.png", b"\x89PNG lunch receipt", "image/png")


def _path(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def test_upload_then_download_via_signed_link(user_token):
    user_id, headers = user_token()
    client = TestClient(app)

    resp = client.post("/api/upload-receipt", files={"receipt": PNG}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["key"].startswith(f"receipts/{user_id}/")
    assert body["key"].endswith("-lunch.png")
    assert body["size"] == len(PNG[1])
    assert body["fileName"] == "lunch.png"
    assert body["contentType"] == "image/png"

    download = client.get(_path(body["url"]))
    assert download.status_code == 200
    assert download.content == PNG[1]
    assert download.headers["content-type"] == "image/png"


def test_refresh_and_delete_are_owner_scoped(user_token):
    _, alice = user_token("alice@example.com")
    _, mallory = user_token("mallory@example.com")
    client = TestClient(app)

    key = client.post("/api/upload-receipt", files={"receipt": PNG}, headers=alice).json()["key"]

    refreshed = client.get("/api/receipts/url", params={"key": key}, headers=alice)
    assert refreshed.status_code == 200
    assert refreshed.json()["expiresIn"] == 3600
    assert refreshed.json()["key"] == key

    assert client.get("/api/receipts/url", params={"key": key}, headers=mallory).status_code == 403
    assert client.delete("/api/receipts", params={"key": key}, headers=mallory).status_code == 403

    deleted = client.delete("/api/receipts", params={"key": key}, headers=alice)
    assert deleted.status_code == 204
    assert client.get(_path(refreshed.json()["url"])).status_code == 404


def test_object_link_rejects_bad_tokens():
    client = TestClient(app)
    assert client.get("/api/receipts/object", params={"token": "garbage"}).status_code == 403

    expired = create_object_token(key="receipts/u/1-r.png", expires_seconds=-10)
    assert client.get("/api/receipts/object", params={"token": expired}).status_code == 403


def test_upload_only_reports_storage_failure(user_token):
    _, headers = user_token()

    class _DownStorage(ObjectStorage):
        backend = "down"

        def put(self, *, key, body, content_type=None, metadata=None):
            raise StorageError("Failed to upload receipt to S3: endpoint unreachable")

    app.dependency_overrides[get_storage] = lambda: _DownStorage()
    client = TestClient(app)

    resp = client.post("/api/upload-receipt", files={"receipt": PNG}, headers=headers)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to upload receipt"
