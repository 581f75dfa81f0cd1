# secure_share.py

import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

import config
from encryption import CryptoBox
from errors import DuplicateTokenError, IssuanceError, NotFoundError, ValidationError
from records import FileRecord, ShareTokenRecord, utcnow
from share_store import ShareStore

logger = logging.getLogger(__name__)


# ─── SYMBOLIC DURATIONS ─────────────────────────────────────

class ShareDuration(str, Enum):
    ONE_DAY = "1day"
    THREE_DAYS = "3days"
    SEVEN_DAYS = "7days"
    FOURTEEN_DAYS = "14days"
    THIRTY_DAYS = "30days"
    NEVER = "never"

    @classmethod
    def parse(cls, symbol) -> "ShareDuration":
        """Unknown symbols are rejected, never mapped to "never"."""
        if isinstance(symbol, cls):
            return symbol
        try:
            return cls(symbol)
        except ValueError:
            raise ValidationError("invalid_duration", detail=f"unknown duration {symbol!r}")

    @property
    def delta(self) -> Optional[timedelta]:
        return _DELTAS[self]

    def expires_at(self, now: datetime) -> Optional[datetime]:
        delta = self.delta
        return now + delta if delta is not None else None


_DELTAS = {
    ShareDuration.ONE_DAY: timedelta(days=1),
    ShareDuration.THREE_DAYS: timedelta(days=3),
    ShareDuration.SEVEN_DAYS: timedelta(days=7),
    ShareDuration.FOURTEEN_DAYS: timedelta(days=14),
    ShareDuration.THIRTY_DAYS: timedelta(days=30),
    ShareDuration.NEVER: None,
}


# ─── TOKEN GENERATOR ─────────────────────────────────────

def generate_share_token(nbytes: int = config.SHARE_TOKEN_BYTES) -> str:
    """URL-safe token from the OS CSPRNG; independent of ids and time."""
    return secrets.token_urlsafe(max(16, nbytes))


# ─── ISSUER ─────────────────────────────────────

class TokenIssuer:

    def __init__(
        self,
        store: ShareStore,
        crypto: CryptoBox,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = generate_share_token,
        max_attempts: int = config.TOKEN_ISSUE_ATTEMPTS,
    ):
        self._store = store
        self._crypto = crypto
        self._clock = clock
        self._token_factory = token_factory
        self._max_attempts = max(1, max_attempts)

    def issue(
        self,
        file_id: int,
        duration,
        password: Optional[str] = None,
        recipient_email: Optional[str] = None,
        file: Optional[FileRecord] = None,
    ) -> ShareTokenRecord:
        """Mint a share token for ``file_id`` and mark the file shared.

        Callers that already hold the file record pass it as ``file`` and the
        existence lookup is skipped.
        """
        duration = ShareDuration.parse(duration)
        if file is None:
            file = self._store.get_file_metadata(file_id)
        if file is None or file.id != file_id:
            raise NotFoundError("file_not_found")

        now = self._clock()
        expires_at = duration.expires_at(now)
        password_hash = self._crypto.hash_password(password) if password else None

        for attempt in range(1, self._max_attempts + 1):
            try:
                share = self._store.create_share_token(
                    file_id=file_id,
                    token=self._token_factory(),
                    created_at=now,
                    expires_at=expires_at,
                    password_hash=password_hash,
                    recipient_email=recipient_email or None,
                )
                break
            except DuplicateTokenError:
                logger.warning(f"Share token collision for file {file_id} (attempt {attempt})")
        else:
            raise IssuanceError(detail=f"token collisions exhausted {self._max_attempts} attempts")

        self._store.set_shared(file_id, True)
        return share
