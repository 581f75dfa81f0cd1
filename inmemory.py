"""In-memory ShareStore for tests and local development.

Satisfies the ShareStore contract but keeps everything in dicts (no
persistence across restarts). A single lock serialises every mutation, which
makes cascade deletes all-or-nothing and access-count increments atomic.
"""

import itertools
import threading
from dataclasses import replace

from errors import DuplicateTokenError
from records import FileRecord, LogRecord, ShareTokenRecord
from share_store import ShareStore


class InMemoryShareStore(ShareStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._files: dict[int, FileRecord] = {}
        self._shares: dict[int, ShareTokenRecord] = {}
        self._by_token: dict[str, int] = {}
        self._logs: list[LogRecord] = []
        self._file_ids = itertools.count(1)
        self._share_ids = itertools.count(1)
        self._log_ids = itertools.count(1)

    def create_file(self, name, size, encryption_key, ciphertext, created_at,
                    password_hash=None, expires_at=None):
        with self._lock:
            record = FileRecord(
                id=next(self._file_ids),
                name=name,
                size=size,
                encryption_key=encryption_key,
                password_hash=password_hash,
                shared=False,
                created_at=created_at,
                expires_at=expires_at,
                ciphertext=bytes(ciphertext),
            )
            self._files[record.id] = record
            return record

    def get_file(self, file_id):
        return self._files.get(file_id)

    def get_file_metadata(self, file_id):
        file = self._files.get(file_id)
        return file.metadata() if file else None

    def list_files(self):
        with self._lock:
            files = [f.metadata() for f in self._files.values()]
        return sorted(files, key=lambda f: (f.created_at, f.id), reverse=True)

    def list_shared_files(self):
        return [f for f in self.list_files() if f.shared]

    def set_shared(self, file_id, shared=True):
        with self._lock:
            if file_id in self._files:
                self._files[file_id] = replace(self._files[file_id], shared=shared)

    def delete_file(self, file_id):
        with self._lock:
            if file_id not in self._files:
                return False
            for share in [s for s in self._shares.values() if s.file_id == file_id]:
                del self._by_token[share.token]
                del self._shares[share.id]
            del self._files[file_id]
            return True

    def create_share_token(self, file_id, token, created_at, expires_at=None,
                           password_hash=None, recipient_email=None):
        with self._lock:
            if token in self._by_token:
                raise DuplicateTokenError(detail="share token already exists")
            record = ShareTokenRecord(
                id=next(self._share_ids),
                file_id=file_id,
                token=token,
                password_hash=password_hash,
                recipient_email=recipient_email,
                created_at=created_at,
                expires_at=expires_at,
                access_count=0,
            )
            self._shares[record.id] = record
            self._by_token[token] = record.id
            return record

    def get_share_token(self, share_id):
        return self._shares.get(share_id)

    def get_share_token_by_value(self, token):
        with self._lock:
            share_id = self._by_token.get(token)
            return self._shares.get(share_id) if share_id is not None else None

    def list_share_tokens(self, file_id=None):
        with self._lock:
            shares = list(self._shares.values())
        return [s for s in shares if file_id is None or s.file_id == file_id]

    def delete_share_token(self, share_id):
        with self._lock:
            share = self._shares.pop(share_id, None)
            if share is None:
                return False
            del self._by_token[share.token]
            return True

    def increment_access_count(self, share_id):
        with self._lock:
            share = self._shares.get(share_id)
            if share is None:
                return None
            share = replace(share, access_count=share.access_count + 1)
            self._shares[share_id] = share
            return share.access_count

    def append_log(self, file_id, file_name, action, ip_address, user_agent, details, timestamp):
        with self._lock:
            entry = LogRecord(
                id=next(self._log_ids),
                file_id=file_id,
                file_name=file_name,
                action=action,
                ip_address=ip_address,
                user_agent=user_agent,
                details=details,
                timestamp=timestamp,
            )
            self._logs.append(entry)
            return entry

    def list_logs(self, file_id=None):
        with self._lock:
            logs = [l for l in self._logs if file_id is None or l.file_id == file_id]
        return sorted(logs, key=lambda l: (l.timestamp, l.id), reverse=True)
