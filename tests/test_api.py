"""HTTP tests through FastAPI's TestClient and the SecureShareClient."""

import pytest
from fastapi.testclient import TestClient

from client import SecureShareClient, ShareClientError
from encryption import decode_key, decrypt_file_data
from errors import StoreError
from file_service import FileService
from main import create_app


def _upload(client, data=b"sealed-bytes", name="notes.txt", **form):
    fields = {"name": name, "key": "a2V5LWhhbmRsZQ==", "originalSize": "5", "durationSymbol": "never"}
    fields.update(form)
    return client.post("/api/files/upload", data=fields, files={"file": (name, data, "application/octet-stream")})


def _share(client, file_id, **body):
    payload = {"fileId": file_id, "durationSymbol": "7days"}
    payload.update(body)
    return client.post("/api/files/share", json=payload)


class TestEndToEnd:

    def test_ten_byte_file_round_trip(self, client):
        api = SecureShareClient(http=client)
        original = b"0123456789"

        uploaded = api.upload(original, "ten.bin")
        share = api.share(uploaded["id"], duration="never")

        assert api.fetch_shared(share["token"]) == original
        assert uploaded["size"] == 10

    def test_password_protected_round_trip(self, client):
        api = SecureShareClient(http=client)
        uploaded = api.upload(b"classified", "memo.txt")
        share = api.share(uploaded["id"], password="swordfish", recipient_email="eve@example.com")

        with pytest.raises(ShareClientError) as exc_info:
            api.fetch_shared(share["token"])
        assert exc_info.value.status_code == 401
        assert exc_info.value.password_required is True

        assert api.fetch_shared(share["token"], password="swordfish") == b"classified"

    def test_server_never_sees_plaintext(self, client, memory_service):
        api = SecureShareClient(http=client)
        uploaded = api.upload(b"plaintext marker", "m.txt")
        stored = memory_service.store.get_file(uploaded["id"])
        assert b"plaintext marker" not in stored.ciphertext
        assert decrypt_file_data(api.download(uploaded["id"]), decode_key(stored.encryption_key)) == b"plaintext marker"


class TestFilesApi:

    def test_upload_response(self, client):
        response = _upload(client, durationSymbol="7days")
        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"id", "name", "size", "createdAt", "expiresAt"}
        assert body["name"] == "notes.txt"
        assert body["size"] == 5
        assert body["expiresAt"] is not None

    def test_upload_without_file(self, client):
        response = client.post("/api/files/upload", data={"name": "a", "key": "k", "originalSize": "1"})
        assert response.status_code == 400
        assert response.json() == {"message": "No file was provided."}

    def test_upload_missing_fields(self, client):
        response = client.post("/api/files/upload", files={"file": ("a", b"x", "application/octet-stream")})
        assert response.status_code == 400
        assert response.json() == {"message": "The request is invalid."}

    def test_upload_unknown_duration(self, client):
        response = _upload(client, durationSymbol="someday")
        assert response.status_code == 400
        assert response.json()["message"] == "Unknown expiration period."

    def test_listing_never_exposes_key_or_data(self, client):
        first = _upload(client).json()
        _upload(client, name="other.txt")
        _share(client, first["id"])

        files = client.get("/api/files").json()
        assert len(files) == 2
        for item in files:
            assert set(item) == {"id", "name", "size", "createdAt", "expiresAt", "shared"}

        shared = client.get("/api/files/shared").json()
        assert [f["id"] for f in shared] == [first["id"]]
        assert shared[0]["shared"] is True

    def test_download_by_id(self, client):
        file_id = _upload(client, data=b"\x01\x02sealed").json()["id"]
        response = client.get(f"/api/files/{file_id}/download")
        assert response.status_code == 200
        assert response.content == b"\x01\x02sealed"
        assert response.headers["content-disposition"] == 'attachment; filename="notes.txt"'
        assert client.get("/api/logs").json()[0]["action"] == "download"

    def test_download_missing(self, client):
        response = client.get("/api/files/99/download")
        assert response.status_code == 404
        assert response.json() == {"message": "File not found."}

    def test_delete(self, client):
        file_id = _upload(client).json()["id"]
        token = _share(client, file_id).json()["token"]

        response = client.delete(f"/api/files/{file_id}")
        assert response.status_code == 200

        assert client.delete(f"/api/files/{file_id}").status_code == 404
        assert client.get(f"/api/share/{token}").status_code == 404
        history = client.get(f"/api/files/{file_id}/logs").json()
        assert history[0]["action"] == "delete"
        assert history[0]["fileName"] == "notes.txt"

    def test_logs_newest_first(self, client, clock):
        file_id = _upload(client).json()["id"]
        clock.advance(minutes=1)
        _share(client, file_id)
        clock.advance(minutes=1)
        client.get(f"/api/files/{file_id}/download", headers={"User-Agent": "curl/8.4.0"})

        logs = client.get("/api/logs").json()
        assert [l["action"] for l in logs] == ["download", "share", "upload"]
        assert logs[0]["userAgent"] == "curl on Unknown"
        assert logs[0]["ipAddress"] == "testclient"
        assert set(logs[0]) == {"id", "fileId", "fileName", "action", "ipAddress", "userAgent", "details", "timestamp"}

    def test_forwarded_for_is_used(self, client):
        _upload(client, name="x.txt")
        file_id = client.get("/api/files").json()[0]["id"]
        client.get(f"/api/files/{file_id}/download", headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})
        assert client.get("/api/logs").json()[0]["ipAddress"] == "198.51.100.7"

    def test_stats(self, client):
        file_id = _upload(client).json()["id"]
        _share(client, file_id, durationSymbol="1day")
        stats = client.get("/api/stats").json()
        assert stats["totalFiles"] == 1
        assert stats["usedBytes"] == 5
        assert stats["sharedFiles"] == 1
        assert stats["activeLinks"] == 1
        assert stats["expiringSoon"] == 1
        assert set(stats) == {"usedBytes", "maxBytes", "usedPercentage", "totalFiles",
                              "sharedFiles", "activeLinks", "expiringSoon"}

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"


class TestShareApi:

    def test_share_response(self, client):
        file_id = _upload(client).json()["id"]
        response = _share(client, file_id, durationSymbol="never")
        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"id", "token", "expiresAt"}
        assert body["expiresAt"] is None
        assert len(body["token"]) >= 22

    def test_share_unknown_file(self, client):
        assert _share(client, 12345).status_code == 404

    def test_share_bad_input(self, client):
        file_id = _upload(client).json()["id"]
        assert _share(client, file_id, durationSymbol="2days").status_code == 400
        assert _share(client, file_id, recipientEmail="not-an-email").status_code == 400
        assert client.post("/api/files/share", json={}).status_code == 400

    def test_redeem_statuses(self, client, clock):
        file_id = _upload(client).json()["id"]
        token = _share(client, file_id, durationSymbol="1day", password="pw").json()["token"]

        missing = client.get("/api/share/does-not-exist")
        assert missing.status_code == 404
        assert missing.json() == {"message": "Share link not found or expired."}

        no_password = client.get(f"/api/share/{token}")
        assert no_password.status_code == 401
        assert no_password.json()["passwordRequired"] is True

        wrong = client.get(f"/api/share/{token}", params={"password": "nope"})
        assert wrong.status_code == 401
        assert wrong.json()["passwordRequired"] is True

        ok = client.get(f"/api/share/{token}", params={"password": "pw"})
        assert ok.status_code == 200
        assert ok.json() == {
            "id": file_id,
            "name": "notes.txt",
            "size": 5,
            "createdAt": ok.json()["createdAt"],
            "key": "a2V5LWhhbmRsZQ==",
        }

        content = client.get(f"/api/share/{token}/download", params={"password": "pw"})
        assert content.status_code == 200
        assert content.content == b"sealed-bytes"

        clock.advance(days=1, seconds=1)
        expired = client.get(f"/api/share/{token}", params={"password": "pw"})
        assert expired.status_code == 403
        assert "passwordRequired" not in expired.json()

    def test_key_not_released_without_password(self, client):
        file_id = _upload(client).json()["id"]
        token = _share(client, file_id, password="pw").json()["token"]
        body = client.get(f"/api/share/{token}").json()
        assert "key" not in body
        assert client.get(f"/api/share/{token}/download").status_code == 401

    def test_access_count(self, client, memory_service):
        file_id = _upload(client).json()["id"]
        share = _share(client, file_id).json()
        for _ in range(3):
            client.get(f"/api/share/{share['token']}")
        assert memory_service.store.get_share_token(share["id"]).access_count == 3

    def test_revoke(self, client):
        file_id = _upload(client).json()["id"]
        share = _share(client, file_id).json()
        assert client.delete(f"/api/shares/{share['id']}").status_code == 200
        assert client.get(f"/api/share/{share['token']}").status_code == 404
        assert client.delete(f"/api/shares/{share['id']}").status_code == 404


class TestErrorMessages:

    def test_localized_messages(self, client):
        response = client.get("/api/files/1/download", headers={"Accept-Language": "pt-BR,pt;q=0.9"})
        assert response.json() == {"message": "Arquivo não encontrado."}

    def test_unsupported_locale_falls_back(self, client):
        response = client.get("/api/files/1/download", headers={"Accept-Language": "de-DE"})
        assert response.json() == {"message": "File not found."}

    def test_store_failure_is_generic(self, client, memory_service, monkeypatch):
        def fail(*args, **kwargs):
            raise StoreError(detail="database is locked at /var/lib/secret.db")

        monkeypatch.setattr(memory_service.store, "list_files", fail)
        response = client.get("/api/files")
        assert response.status_code == 500
        assert "secret.db" not in response.text
        assert response.json() == {"message": "The operation could not be completed. Please try again."}


class TestAuditWarning:

    def test_unlogged_actions_still_succeed(self, broken_log_store, crypto, clock):
        client = TestClient(create_app(FileService(broken_log_store, crypto=crypto, clock=clock)))

        response = _upload(client)
        assert response.status_code == 201
        assert response.headers["X-Audit-Warning"] == "unlogged"

        download = client.get(f"/api/files/{response.json()['id']}/download")
        assert download.status_code == 200
        assert download.headers["X-Audit-Warning"] == "unlogged"

    def test_logged_actions_have_no_warning(self, client):
        response = _upload(client)
        assert "X-Audit-Warning" not in response.headers
