"""
share_store.py — Durable record of files, share tokens and activity logs.

``ShareStore`` is the contract every component receives at construction;
``SqlShareStore`` implements it on SQLAlchemy. Driver errors never escape:
they surface as ``StoreError`` (or ``DuplicateTokenError`` for a token clash,
so TokenIssuer can retry).
"""

import logging
from abc import ABC, abstractmethod
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import defer, sessionmaker
from sqlalchemy.pool import StaticPool

import models
from errors import DuplicateTokenError, StoreError
from records import FileRecord, LogRecord, ShareTokenRecord

logger = logging.getLogger(__name__)


class ShareStore(ABC):

    # ── files ──────────────────────────────────────────────
    @abstractmethod
    def create_file(self, name: str, size: int, encryption_key: str, ciphertext: bytes,
                    created_at: datetime, password_hash: Optional[str] = None,
                    expires_at: Optional[datetime] = None) -> FileRecord: ...

    @abstractmethod
    def get_file(self, file_id: int) -> Optional[FileRecord]:
        """Full record, ciphertext included."""

    @abstractmethod
    def get_file_metadata(self, file_id: int) -> Optional[FileRecord]:
        """Same record without the ciphertext (``ciphertext`` is None)."""

    @abstractmethod
    def list_files(self) -> List[FileRecord]:
        """Metadata only (``ciphertext`` is None)."""

    @abstractmethod
    def list_shared_files(self) -> List[FileRecord]: ...

    @abstractmethod
    def set_shared(self, file_id: int, shared: bool = True) -> None: ...

    @abstractmethod
    def delete_file(self, file_id: int) -> bool:
        """Remove the file and every share token referencing it, all-or-nothing.

        Log entries are kept. Returns False if the file does not exist.
        """

    # ── share tokens ───────────────────────────────────────
    @abstractmethod
    def create_share_token(self, file_id: int, token: str, created_at: datetime,
                           expires_at: Optional[datetime] = None,
                           password_hash: Optional[str] = None,
                           recipient_email: Optional[str] = None) -> ShareTokenRecord:
        """Raises DuplicateTokenError if ``token`` is already taken."""

    @abstractmethod
    def get_share_token(self, share_id: int) -> Optional[ShareTokenRecord]: ...

    @abstractmethod
    def get_share_token_by_value(self, token: str) -> Optional[ShareTokenRecord]: ...

    @abstractmethod
    def list_share_tokens(self, file_id: Optional[int] = None) -> List[ShareTokenRecord]: ...

    @abstractmethod
    def delete_share_token(self, share_id: int) -> bool: ...

    @abstractmethod
    def increment_access_count(self, share_id: int) -> Optional[int]:
        """Atomically add one to ``access_count``; returns the new value or None if gone."""

    # ── logs ───────────────────────────────────────────────
    @abstractmethod
    def append_log(self, file_id: Optional[int], file_name: str, action: str,
                   ip_address: str, user_agent: str, details: Optional[str],
                   timestamp: datetime) -> LogRecord: ...

    @abstractmethod
    def list_logs(self, file_id: Optional[int] = None) -> List[LogRecord]:
        """Newest first."""


def _to_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc)


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _file_record(row: models.File, with_data: bool = True) -> FileRecord:
    return FileRecord(
        id=row.id,
        name=row.name,
        size=row.size,
        encryption_key=row.encryption_key,
        password_hash=row.password_hash,
        shared=bool(row.shared),
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
        ciphertext=bytes(row.ciphertext) if with_data else None,
    )


def _share_record(row: models.ShareToken) -> ShareTokenRecord:
    return ShareTokenRecord(
        id=row.id,
        file_id=row.file_id,
        token=row.token,
        password_hash=row.password_hash,
        recipient_email=row.recipient_email,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
        access_count=row.access_count or 0,
    )


def _log_record(row: models.LogEntry) -> LogRecord:
    return LogRecord(
        id=row.id,
        file_id=row.file_id,
        file_name=row.file_name,
        action=row.action,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        details=row.details,
        timestamp=_as_utc(row.timestamp),
    )


class SqlShareStore(ShareStore):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        bind = session_factory.kw.get("bind")
        # one shared DBAPI connection (in-memory SQLite): sessions must take turns
        if isinstance(getattr(bind, "pool", None), StaticPool):
            self._lock = threading.RLock()
        else:
            self._lock = nullcontext()

    @contextmanager
    def _session(self):
        """Yields a session, rolls back on any driver error and always closes it."""
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Store operation failed: {type(e).__name__}: {e}")
                raise StoreError(detail=str(e)) from e
            finally:
                session.close()

    # ── files ──────────────────────────────────────────────
    def create_file(self, name, size, encryption_key, ciphertext, created_at,
                    password_hash=None, expires_at=None):
        with self._session() as session:
            row = models.File(
                name=name,
                size=size,
                encryption_key=encryption_key,
                ciphertext=ciphertext,
                password_hash=password_hash,
                shared=False,
                created_at=_to_db(created_at),
                expires_at=_to_db(expires_at),
            )
            session.add(row)
            session.commit()
            return _file_record(row)

    def get_file(self, file_id):
        with self._session() as session:
            row = session.get(models.File, file_id)
            return _file_record(row) if row else None

    def get_file_metadata(self, file_id):
        with self._session() as session:
            row = session.scalars(
                select(models.File).options(defer(models.File.ciphertext)).where(models.File.id == file_id)
            ).first()
            return _file_record(row, with_data=False) if row else None

    def _list(self, *criteria):
        with self._session() as session:
            stmt = (
                select(models.File)
                .options(defer(models.File.ciphertext))
                .where(*criteria)
                .order_by(models.File.created_at.desc(), models.File.id.desc())
            )
            return [_file_record(r, with_data=False) for r in session.scalars(stmt)]

    def list_files(self):
        return self._list()

    def list_shared_files(self):
        return self._list(models.File.shared.is_(True))

    def set_shared(self, file_id, shared=True):
        with self._session() as session:
            session.execute(
                update(models.File).where(models.File.id == file_id).values(shared=shared)
            )
            session.commit()

    def delete_file(self, file_id):
        with self._session() as session:
            if session.get(models.File, file_id) is None:
                return False
            # Tokens first, then the file, in one transaction
            session.execute(delete(models.ShareToken).where(models.ShareToken.file_id == file_id))
            session.execute(delete(models.File).where(models.File.id == file_id))
            session.commit()
            return True

    # ── share tokens ───────────────────────────────────────
    def create_share_token(self, file_id, token, created_at, expires_at=None,
                           password_hash=None, recipient_email=None):
        with self._session() as session:
            row = models.ShareToken(
                file_id=file_id,
                token=token,
                password_hash=password_hash,
                recipient_email=recipient_email,
                created_at=_to_db(created_at),
                expires_at=_to_db(expires_at),
                access_count=0,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                taken = session.scalar(
                    select(models.ShareToken.id).where(models.ShareToken.token == token)
                )
                if taken is not None:
                    raise DuplicateTokenError(detail="share token already exists") from e
                raise
            return _share_record(row)

    def get_share_token(self, share_id):
        with self._session() as session:
            row = session.get(models.ShareToken, share_id)
            return _share_record(row) if row else None

    def get_share_token_by_value(self, token):
        with self._session() as session:
            row = session.scalars(
                select(models.ShareToken).where(models.ShareToken.token == token)
            ).first()
            return _share_record(row) if row else None

    def list_share_tokens(self, file_id=None):
        with self._session() as session:
            stmt = select(models.ShareToken).order_by(models.ShareToken.id)
            if file_id is not None:
                stmt = stmt.where(models.ShareToken.file_id == file_id)
            return [_share_record(r) for r in session.scalars(stmt)]

    def delete_share_token(self, share_id):
        with self._session() as session:
            result = session.execute(
                delete(models.ShareToken).where(models.ShareToken.id == share_id)
            )
            session.commit()
            return result.rowcount > 0

    def increment_access_count(self, share_id):
        with self._session() as session:
            new_count = session.execute(
                update(models.ShareToken)
                .where(models.ShareToken.id == share_id)
                .values(access_count=models.ShareToken.access_count + 1)
                .returning(models.ShareToken.access_count)
            ).scalar()
            session.commit()
            return new_count

    # ── logs ───────────────────────────────────────────────
    def append_log(self, file_id, file_name, action, ip_address, user_agent, details, timestamp):
        with self._session() as session:
            row = models.LogEntry(
                file_id=file_id,
                file_name=file_name,
                action=action,
                ip_address=ip_address,
                user_agent=user_agent,
                details=details,
                timestamp=_to_db(timestamp),
            )
            session.add(row)
            session.commit()
            return _log_record(row)

    def list_logs(self, file_id=None):
        with self._session() as session:
            stmt = select(models.LogEntry).order_by(
                models.LogEntry.timestamp.desc(), models.LogEntry.id.desc()
            )
            if file_id is not None:
                stmt = stmt.where(models.LogEntry.file_id == file_id)
            return [_log_record(r) for r in session.scalars(stmt)]
