"""
access_gate.py — Redemption of share tokens.

A request starts in REQUESTED and ends in exactly one terminal state. The
checks run in a fixed order: lookup, expiry, password presence, password
match. Expired links never reach the password check. ``now`` is read once per
request so the expiry decision and the grant see the same instant. The
ciphertext is only loaded for a granted download.

Every terminal state, failures included, writes exactly one activity entry
tagged ``access`` (metadata) or ``download`` (content).
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from audit import Action, ActivityRecorder, ActorContext, SYSTEM_ACTOR, UNKNOWN
from encryption import CryptoBox
from errors import ExpiredError, NotFoundError, PasswordInvalidError, PasswordRequiredError
from records import FileRecord, ShareTokenRecord, utcnow
from share_store import ShareStore

logger = logging.getLogger(__name__)


class AccessState(str, Enum):
    REQUESTED = "requested"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_INVALID = "password_invalid"
    GRANTED = "granted"


@dataclass(frozen=True)
class Grant:
    file: FileRecord
    share: ShareTokenRecord
    logged: bool
    state: AccessState = AccessState.GRANTED


def _token_ref(token: str) -> str:
    # enough to correlate log lines without writing a usable token
    return f"{token[:8]}..."


class AccessGate:

    def __init__(
        self,
        store: ShareStore,
        crypto: CryptoBox,
        recorder: ActivityRecorder,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._crypto = crypto
        self._recorder = recorder
        self._clock = clock

    def redeem(
        self,
        token: str,
        password: Optional[str] = None,
        actor: ActorContext = SYSTEM_ACTOR,
        download: bool = False,
    ) -> Grant:
        """Validate ``token`` and release the file, or raise the terminal error."""
        action = Action.DOWNLOAD if download else Action.ACCESS
        now = self._clock()

        share = self._store.get_share_token_by_value(token) if token else None
        if share is None:
            self._deny(action, None, UNKNOWN, actor, AccessState.NOT_FOUND, "Share link not found")
            raise NotFoundError("share_not_found")

        file = self._store.get_file_metadata(share.file_id)
        file_name = file.name if file else UNKNOWN

        if share.is_expired(now):
            self._deny(action, share.file_id, file_name, actor, AccessState.EXPIRED,
                       f"Share link {_token_ref(token)} expired")
            raise ExpiredError("share_expired")

        if share.password_hash:
            if not password:
                self._deny(action, share.file_id, file_name, actor, AccessState.PASSWORD_REQUIRED,
                           f"Password required for share link {_token_ref(token)}")
                raise PasswordRequiredError("password_required")
            if not self._crypto.verify_password(share.password_hash, password):
                self._deny(action, share.file_id, file_name, actor, AccessState.PASSWORD_INVALID,
                           f"Invalid password for share link {_token_ref(token)}")
                raise PasswordInvalidError("password_invalid")

        if download and file is not None:
            file = self._store.get_file(share.file_id)
        if file is None:
            self._deny(action, share.file_id, file_name, actor, AccessState.NOT_FOUND, "Shared file not found")
            raise NotFoundError("share_not_found")

        count = self._store.increment_access_count(share.id)
        if count is None:
            # revoked between lookup and grant
            self._deny(action, file.id, file.name, actor, AccessState.NOT_FOUND, "Share link revoked")
            raise NotFoundError("share_not_found")

        verb = "Downloaded" if download else "Accessed"
        entry = self._recorder.record(
            action, file.id, file.name, actor,
            details=f"{verb} via share link {_token_ref(token)}",
        )
        return Grant(file=file, share=replace(share, access_count=count), logged=entry is not None)

    def _deny(self, action, file_id, file_name, actor, state: AccessState, details: str) -> None:
        logger.info(f"Share redemption denied: {state.value} ({details})")
        self._recorder.record(action, file_id, file_name, actor, details=details)
