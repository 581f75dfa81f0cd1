"""
client.py — Python client for the SecureFileSync API.

Files are encrypted locally before upload and decrypted locally after
download; the server only ever sees ciphertext plus the key handle the client
chooses to send.
"""

import logging
from typing import Optional

import httpx

from encryption import decode_key, decrypt_file_data, encode_key, encrypt_file_data

logger = logging.getLogger(__name__)


class ShareClientError(Exception):
    def __init__(self, status_code: int, message: str, password_required: bool = False):
        self.status_code = status_code
        self.message = message
        self.password_required = password_required
        super().__init__(f"{status_code}: {message}")


class SecureShareClient:

    def __init__(self, base_url: str = "http://localhost:8000", http: Optional[httpx.Client] = None,
                 timeout: float = 30.0):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _check(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            if response.headers.get("X-Audit-Warning"):
                logger.warning(f"{response.request.method} {response.request.url.path} succeeded but was not logged")
            return response
        try:
            body = response.json()
        except ValueError:
            body = {}
        raise ShareClientError(
            response.status_code,
            body.get("message", response.reason_phrase),
            password_required=bool(body.get("passwordRequired")),
        )

    def upload(self, data: bytes, name: str, duration: str = "never",
               password: Optional[str] = None) -> dict:
        """Encrypt ``data`` and upload it. Returns the server's file metadata."""
        ciphertext, key = encrypt_file_data(data)
        form = {
            "name": name,
            "key": encode_key(key),
            "originalSize": str(len(data)),
            "durationSymbol": duration,
        }
        if password:
            form["password"] = password
        files = {"file": (name, ciphertext, "application/octet-stream")}
        return self._check(self._http.post("/api/files/upload", data=form, files=files)).json()

    def share(self, file_id: int, duration: str = "7days", password: Optional[str] = None,
              recipient_email: Optional[str] = None) -> dict:
        payload = {"fileId": file_id, "durationSymbol": duration}
        if password:
            payload["password"] = password
        if recipient_email:
            payload["recipientEmail"] = recipient_email
        return self._check(self._http.post("/api/files/share", json=payload)).json()

    def redeem(self, token: str, password: Optional[str] = None) -> dict:
        params = {"password": password} if password else None
        return self._check(self._http.get(f"/api/share/{token}", params=params)).json()

    def fetch_shared(self, token: str, password: Optional[str] = None) -> bytes:
        """Redeem ``token``, download its ciphertext and decrypt it locally."""
        meta = self.redeem(token, password)
        params = {"password": password} if password else None
        ciphertext = self._check(self._http.get(f"/api/share/{token}/download", params=params)).content
        return decrypt_file_data(ciphertext, decode_key(meta["key"]))

    def download(self, file_id: int) -> bytes:
        """Raw ciphertext of a file by id."""
        return self._check(self._http.get(f"/api/files/{file_id}/download")).content

    def delete(self, file_id: int) -> dict:
        return self._check(self._http.delete(f"/api/files/{file_id}")).json()

    def revoke(self, share_id: int) -> dict:
        return self._check(self._http.delete(f"/api/shares/{share_id}")).json()

    def list_files(self, shared_only: bool = False) -> list:
        path = "/api/files/shared" if shared_only else "/api/files"
        return self._check(self._http.get(path)).json()

    def logs(self, file_id: Optional[int] = None) -> list:
        path = f"/api/files/{file_id}/logs" if file_id is not None else "/api/logs"
        return self._check(self._http.get(path)).json()

    def stats(self) -> dict:
        return self._check(self._http.get("/api/stats")).json()
