"""
records.py — Plain records returned by every ShareStore implementation.

Stores hand these out instead of live ORM rows, so callers never depend on an
open session.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileRecord:
    id: int
    name: str
    size: int
    encryption_key: str
    password_hash: Optional[str]
    shared: bool
    created_at: datetime
    expires_at: Optional[datetime] = None
    # None when loaded through a metadata-only listing
    ciphertext: Optional[bytes] = None

    def metadata(self) -> "FileRecord":
        return replace(self, ciphertext=None)


@dataclass(frozen=True)
class ShareTokenRecord:
    id: int
    file_id: int
    token: str
    password_hash: Optional[str]
    recipient_email: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    access_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


@dataclass(frozen=True)
class LogRecord:
    id: int
    file_id: Optional[int]
    file_name: str
    action: str
    ip_address: str
    user_agent: str
    details: Optional[str]
    timestamp: datetime
