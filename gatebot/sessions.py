"""In-memory verification sessions.

Each user moves ``ISSUED -> CONFIRMED -> COMPLETED``. Running ``/verify``
again always restarts at ``ISSUED``. A session that outlives its TTL is
treated as if it never existed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum

from .errors import SessionStateError

log = logging.getLogger("gatebot")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionPhase(str, Enum):
    ISSUED = "issued"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class VerificationSession:
    user_id: str
    phase: SessionPhase
    token: str
    issued_at: datetime
    updated_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionRegistry:
    def __init__(self, ttl: timedelta) -> None:
        self._ttl = ttl
        self._sessions: dict[str, VerificationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(
        self, user_id: str, now: datetime | None = None
    ) -> VerificationSession | None:
        session = self._sessions.get(user_id)
        if session is None:
            return None
        if session.is_expired(now or utcnow()):
            return None
        return session

    def phase(self, user_id: str, now: datetime | None = None) -> SessionPhase | None:
        session = self.get(user_id, now)
        return session.phase if session else None

    def issue(
        self, user_id: str, token: str, now: datetime | None = None
    ) -> VerificationSession:
        now = now or utcnow()
        session = VerificationSession(
            user_id=user_id,
            phase=SessionPhase.ISSUED,
            token=token,
            issued_at=now,
            updated_at=now,
            expires_at=now + self._ttl,
        )
        self._sessions[user_id] = session
        return session

    def confirm(self, user_id: str, now: datetime | None = None) -> VerificationSession:
        return self._advance(
            user_id,
            SessionPhase.CONFIRMED,
            allowed=(SessionPhase.ISSUED, SessionPhase.CONFIRMED),
            now=now,
        )

    def complete(
        self, user_id: str, now: datetime | None = None
    ) -> VerificationSession:
        return self._advance(
            user_id,
            SessionPhase.COMPLETED,
            allowed=(SessionPhase.CONFIRMED, SessionPhase.COMPLETED),
            now=now,
        )

    def record_confirmed(self, user_id: str, now: datetime | None = None) -> None:
        """Best-effort transition used when sessions are not enforced."""
        now = now or utcnow()
        if self.phase(user_id, now) in (None, SessionPhase.COMPLETED):
            self.issue(user_id, "", now)
        self.confirm(user_id, now)

    def record_completed(self, user_id: str, now: datetime | None = None) -> None:
        now = now or utcnow()
        if self.phase(user_id, now) not in (
            SessionPhase.CONFIRMED,
            SessionPhase.COMPLETED,
        ):
            self.record_confirmed(user_id, now)
        self.complete(user_id, now)

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        expired = [uid for uid, s in self._sessions.items() if s.is_expired(now)]
        for user_id in expired:
            del self._sessions[user_id]
        if expired:
            log.info("Purged %d expired verification sessions", len(expired))
        return len(expired)

    def _advance(
        self,
        user_id: str,
        target: SessionPhase,
        *,
        allowed: tuple[SessionPhase, ...],
        now: datetime | None,
    ) -> VerificationSession:
        now = now or utcnow()
        session = self.get(user_id, now)
        if session is None:
            raise SessionStateError(user_id, f"No active session for user {user_id}")
        if session.phase not in allowed:
            raise SessionStateError(
                user_id,
                f"Cannot move session for {user_id} from {session.phase.value} "
                f"to {target.value}",
            )
        updated = replace(session, phase=target, updated_at=now)
        self._sessions[user_id] = updated
        return updated
