import os
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from versevision.specs.common.enums import NotificationVariant
from versevision.specs.common.errors import SessionNotFoundError
from versevision.specs.common.image import ImageReference
from versevision.specs.http.poem_session import Notification, PoemSessionView
from versevision.shared.logging_utils import info as log_info


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PoemSession(BaseModel):
    """Mutable state of one interactive session.

    ``poem`` is the committed text and the only one used for export;
    ``editedPoem`` is the working draft while ``isEditing`` is set.
    """

    sessionId: str = Field(default_factory=lambda: uuid.uuid4().hex)
    image: Optional[ImageReference] = None
    poem: str = ""
    editedPoem: str = ""
    isGenerating: bool = False
    isEditing: bool = False
    isProcessing: bool = False
    notifications: List[Notification] = Field(default_factory=list)
    lastUpdateUtc: str = Field(default_factory=_utc_now)

    def notify(
        self,
        title: str,
        description: str,
        variant: NotificationVariant = NotificationVariant.DESTRUCTIVE,
    ) -> Notification:
        note = Notification(title=title, description=description, variant=variant)
        self.notifications.append(note)
        return note

    def drain_notifications(self) -> List[Notification]:
        notes, self.notifications = self.notifications, []
        return notes

    def touch(self) -> None:
        self.lastUpdateUtc = _utc_now()

    def last_update(self) -> datetime:
        return datetime.fromisoformat(self.lastUpdateUtc)

    def is_busy(self) -> bool:
        return self.isGenerating or self.isProcessing

    def to_view(self, *, drain: bool = True) -> PoemSessionView:
        notes = self.drain_notifications() if drain else list(self.notifications)
        return PoemSessionView(
            sessionId=self.sessionId,
            hasImage=self.image is not None,
            imageMimeType=self.image.mimeType if self.image else None,
            poem=self.poem,
            editedPoem=self.editedPoem,
            isGenerating=self.isGenerating,
            isEditing=self.isEditing,
            isProcessing=self.isProcessing,
            notifications=notes,
        )


class _MemorySessionStore:
    """Process-local session container. Nothing is persisted.

    Sessions idle for longer than ``ttl_seconds`` are dropped, and the oldest
    idle sessions are evicted once ``max_sessions`` is reached. Both run on
    ``create``. Sessions with an operation in flight are never evicted.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, max_sessions: Optional[int] = None) -> None:
        self._sessions: Dict[str, PoemSession] = {}
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else float(
            os.getenv("VERSEVISION_SESSION_TTL_SECONDS", "3600")
        )
        self.max_sessions = max_sessions if max_sessions is not None else int(
            os.getenv("VERSEVISION_MAX_SESSIONS", "256")
        )

    def create(self) -> PoemSession:
        self.prune()
        session = PoemSession()
        self._sessions[session.sessionId] = session
        log_info(session.sessionId, "session:created", active=len(self._sessions))
        return session

    def get(self, session_id: str) -> PoemSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def discard(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        log_info(session_id, "session:discarded")
        return True

    def prune(self, now: Optional[datetime] = None) -> List[str]:
        """Drop expired sessions and make room for one more. Returns the ids removed."""
        now = now or datetime.now(timezone.utc)
        idle = sorted(
            (s for s in self._sessions.values() if not s.is_busy()),
            key=lambda s: s.last_update(),
        )
        removed = [s.sessionId for s in idle if (now - s.last_update()).total_seconds() > self.ttl_seconds]
        overflow = len(self._sessions) - len(removed) - (self.max_sessions - 1)
        if overflow > 0:
            survivors = [s.sessionId for s in idle if s.sessionId not in removed]
            removed += survivors[:overflow]
        for session_id in removed:
            self._sessions.pop(session_id, None)
        if removed:
            log_info(None, "session:pruned", count=len(removed), active=len(self._sessions))
        return removed

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


SessionStore = _MemorySessionStore()
