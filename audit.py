import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from errors import StoreError
from records import LogRecord, utcnow
from share_store import ShareStore

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# Order matters: Edge and Opera also claim Chrome, Chrome also claims Safari
BROWSER_TOKENS = [
    ("Edg", "Edge"),
    ("OPR", "Opera"),
    ("Opera", "Opera"),
    ("FxiOS", "Firefox"),
    ("Firefox", "Firefox"),
    ("CriOS", "Chrome"),
    ("Chrome", "Chrome"),
    ("Safari", "Safari"),
    ("Trident", "Internet Explorer"),
    ("MSIE", "Internet Explorer"),
    ("curl", "curl"),
    ("python-httpx", "httpx"),
    ("python-requests", "Requests"),
]

# Android also claims Linux, iOS also claims Mac OS X
OS_TOKENS = [
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("CrOS", "Chrome OS"),
    ("Mac OS X", "macOS"),
    ("Macintosh", "macOS"),
    ("Linux", "Linux"),
]


def _first_match(user_agent: str, table) -> str:
    for token, name in table:
        if token in user_agent:
            return name
    return UNKNOWN


def summarize_user_agent(user_agent: Optional[str]) -> str:
    """Human-readable "<Browser> on <OS>" from a raw User-Agent header."""
    ua = user_agent or ""
    return f"{_first_match(ua, BROWSER_TOKENS)} on {_first_match(ua, OS_TOKENS)}"


class Action(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    SHARE = "share"
    ACCESS = "access"
    DELETE = "delete"


@dataclass(frozen=True)
class ActorContext:
    """Who performed an action: client IP plus a user-agent summary."""
    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN

    @classmethod
    def from_headers(cls, ip_address: Optional[str], raw_user_agent: Optional[str]) -> "ActorContext":
        return cls(ip_address=ip_address or UNKNOWN, user_agent=summarize_user_agent(raw_user_agent))


SYSTEM_ACTOR = ActorContext()


class ActivityRecorder:
    """Appends one immutable log entry per action.

    The append is synchronous. A failed append is reported on the operational
    log and returns None; it never undoes the action it describes.
    """

    def __init__(self, store: ShareStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    def record(
        self,
        action: Action,
        file_id: Optional[int],
        file_name: str,
        actor: ActorContext = SYSTEM_ACTOR,
        details: Optional[str] = None,
    ) -> Optional[LogRecord]:
        action = Action(action)
        try:
            return self._store.append_log(
                file_id=file_id,
                file_name=file_name,
                action=action.value,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                details=details,
                timestamp=self._clock(),
            )
        except StoreError:
            logger.exception(f"Unlogged {action.value} on file {file_id} ({file_name!r}) from {actor.ip_address}")
            return None
