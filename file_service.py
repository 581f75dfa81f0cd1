"""
file_service.py — Operations behind the HTTP API.

Each operation runs validate → act → log. The business write and the activity
write are separate paths: a failed log append marks the outcome as unlogged
but never rolls back the action.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Generic, List, Optional, TypeVar

import config
from access_gate import AccessGate, Grant
from audit import Action, ActivityRecorder, ActorContext, SYSTEM_ACTOR, UNKNOWN
from encryption import CryptoBox
from errors import NotFoundError, ValidationError
from records import FileRecord, LogRecord, ShareTokenRecord, utcnow
from secure_share import ShareDuration, TokenIssuer, generate_share_token
from share_store import ShareStore

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T
    logged: bool = True


class FileService:

    def __init__(
        self,
        store: ShareStore,
        crypto: Optional[CryptoBox] = None,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = generate_share_token,
        max_upload_bytes: int = config.MAX_UPLOAD_BYTES,
        quota_bytes: int = config.STORAGE_QUOTA_BYTES,
        expiring_soon_days: int = config.EXPIRING_SOON_DAYS,
    ):
        self.store = store
        self.crypto = crypto or CryptoBox()
        self.clock = clock
        self.recorder = ActivityRecorder(store, clock)
        self.issuer = TokenIssuer(store, self.crypto, clock=clock, token_factory=token_factory)
        self.gate = AccessGate(store, self.crypto, self.recorder, clock=clock)
        self.max_upload_bytes = max_upload_bytes
        self.quota_bytes = quota_bytes
        self.expiring_soon_days = expiring_soon_days

    # ─── Upload ───────────────────────────────────────────────────────────────

    def upload(
        self,
        ciphertext: bytes,
        key: str,
        name: str,
        original_size: int,
        duration=ShareDuration.NEVER,
        password: Optional[str] = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Outcome[FileRecord]:
        if not ciphertext:
            raise ValidationError("file_missing")
        if len(ciphertext) > self.max_upload_bytes:
            raise ValidationError("file_too_large", detail=f"{len(ciphertext)} bytes")
        name = (name or "").strip()
        if not name or len(name) > MAX_NAME_LENGTH:
            raise ValidationError(detail="name missing or too long")
        if not key or not key.strip():
            raise ValidationError(detail="key missing")
        if original_size is None or original_size < 0:
            raise ValidationError("invalid_size")
        duration = ShareDuration.parse(duration)

        now = self.clock()
        file = self.store.create_file(
            name=name,
            size=original_size,
            encryption_key=key.strip(),
            ciphertext=ciphertext,
            created_at=now,
            password_hash=self.crypto.hash_password(password) if password else None,
            expires_at=duration.expires_at(now),
        )
        logger.info(f"Stored file {file.id} ({len(ciphertext)} encrypted bytes)")

        entry = self.recorder.record(Action.UPLOAD, file.id, file.name, actor, details="File uploaded")
        return Outcome(file.metadata(), logged=entry is not None)

    # ─── Files ────────────────────────────────────────────────────────────────

    def list_files(self) -> List[FileRecord]:
        return self.store.list_files()

    def list_shared_files(self) -> List[FileRecord]:
        return self.store.list_shared_files()

    def _require_file(self, file_id: int, with_data: bool = True) -> FileRecord:
        if with_data:
            file = self.store.get_file(file_id)
        else:
            file = self.store.get_file_metadata(file_id)
        if file is None:
            raise NotFoundError("file_not_found")
        return file

    def download(self, file_id: int, actor: ActorContext = SYSTEM_ACTOR) -> Outcome[FileRecord]:
        file = self._require_file(file_id)
        entry = self.recorder.record(Action.DOWNLOAD, file.id, file.name, actor, details="File downloaded")
        return Outcome(file, logged=entry is not None)

    def delete(self, file_id: int, actor: ActorContext = SYSTEM_ACTOR) -> Outcome[FileRecord]:
        file = self._require_file(file_id, with_data=False)
        if not self.store.delete_file(file_id):
            # deleted concurrently
            raise NotFoundError("file_not_found")
        logger.info(f"Deleted file {file_id} and its share tokens")
        entry = self.recorder.record(Action.DELETE, file.id, file.name, actor, details="File deleted")
        return Outcome(file.metadata(), logged=entry is not None)

    # ─── Sharing ──────────────────────────────────────────────────────────────

    def share(
        self,
        file_id: int,
        duration,
        password: Optional[str] = None,
        recipient_email: Optional[str] = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Outcome[ShareTokenRecord]:
        duration = ShareDuration.parse(duration)
        file = self._require_file(file_id, with_data=False)
        share = self.issuer.issue(
            file_id, duration, password=password, recipient_email=recipient_email, file=file,
        )

        details = f"Shared with {recipient_email}" if recipient_email else "Shared via link"
        entry = self.recorder.record(Action.SHARE, file.id, file.name, actor, details=details)
        return Outcome(share, logged=entry is not None)

    def revoke_share(self, share_id: int, actor: ActorContext = SYSTEM_ACTOR) -> Outcome[ShareTokenRecord]:
        share = self.store.get_share_token(share_id)
        if share is None or not self.store.delete_share_token(share_id):
            raise NotFoundError("share_not_found")
        file = self.store.get_file_metadata(share.file_id)
        entry = self.recorder.record(
            Action.SHARE, share.file_id, file.name if file else UNKNOWN, actor, details="Share link revoked"
        )
        return Outcome(share, logged=entry is not None)

    def redeem(
        self,
        token: str,
        password: Optional[str] = None,
        actor: ActorContext = SYSTEM_ACTOR,
        download: bool = False,
    ) -> Grant:
        return self.gate.redeem(token, password=password, actor=actor, download=download)

    # ─── Activity & stats ─────────────────────────────────────────────────────

    def logs(self, file_id: Optional[int] = None) -> List[LogRecord]:
        return self.store.list_logs(file_id)

    def stats(self) -> dict:
        now = self.clock()
        soon = now + timedelta(days=self.expiring_soon_days)
        files = self.store.list_files()
        active = [s for s in self.store.list_share_tokens() if not s.is_expired(now)]
        used = sum(f.size for f in files)
        return {
            "used_bytes": used,
            "max_bytes": self.quota_bytes,
            "used_percentage": round(used / self.quota_bytes * 100, 2) if self.quota_bytes else 0.0,
            "total_files": len(files),
            "shared_files": sum(1 for f in files if f.shared),
            "active_links": len(active),
            "expiring_soon": sum(1 for s in active if s.expires_at is not None and s.expires_at <= soon),
        }
