"""In-memory session store.

One ``SessionStore`` is built per application and kept on ``app.state``.
Sessions are keyed by an opaque random token and live until they expire,
are refreshed, or are revoked. A user has at most one live session: creating
a new one drops the previous one, and changes for one user run one at a time,
so two parallel sign-ins cannot leave two sessions behind.

The session dict has its own lock, which is never held while a pointer is
written to the database. Lookups and sweeps do not wait on database I/O.

Expired sessions are dropped lazily on lookup and by ``sweep``, which the
application runs on a fixed interval. Nothing here survives a restart; the
user's persisted session pointer only records what was handed out last.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from scoresheet.models import User
from scoresheet.security import new_session_token
from scoresheet.store import DocumentStore
from scoresheet.utils import KeyedLocks, utcnow

log = logging.getLogger(__name__)

PointerWriter = Callable[[int, dict[str, Any]], None]


@dataclass(frozen=True)
class AuthSession:
    session_id: str
    user_id: int
    expires_at: datetime
    remember_me: bool
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SessionStore:
    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(hours=1),
        remember_me_ttl: timedelta = timedelta(days=7),
        pointer_writer: Optional[PointerWriter] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = ttl
        self.remember_me_ttl = remember_me_ttl
        self._pointer_writer = pointer_writer
        self._clock = clock
        self._sessions: dict[str, AuthSession] = {}
        # Guards the dict only; never held while a pointer is written
        self._lock = threading.RLock()
        # Orders pointer writes and swaps per user. Always taken before _lock.
        self._user_locks = KeyedLocks()

    def __len__(self) -> int:
        return len(self._sessions)

    def window(self, remember_me: bool) -> timedelta:
        return self.remember_me_ttl if remember_me else self.ttl

    def create(self, user_id: int, remember_me: bool = False) -> AuthSession:
        """
        Starts a new session for the user and drops any previous one. The
        pointer is written first: if that fails the old session stays live
        and the error propagates.
        """
        with self._user_locks.hold(user_id):
            now = self._clock()
            session = AuthSession(
                session_id=new_session_token(),
                user_id=user_id,
                expires_at=now + self.window(remember_me),
                remember_me=remember_me,
                created_at=now,
            )
            self._persist(
                user_id,
                {
                    "current_session_id": session.session_id,
                    "session_expires_at": session.expires_at,
                    "last_login_at": now,
                },
            )
            with self._lock:
                self._drop_user(user_id)
                self._sessions[session.session_id] = session
        log.info("Session created for user %s (remember_me=%s)", user_id, remember_me)
        return session

    def lookup(self, session_id: str) -> Optional[AuthSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                log.debug("Session for user %s expired", session.user_id)
                return None
            return session

    def lookup_by_user(self, user_id: int) -> Optional[AuthSession]:
        with self._lock:
            for session in list(self._sessions.values()):
                if session.user_id == user_id:
                    return self.lookup(session.session_id)
        return None

    def refresh(self, session_id: str) -> Optional[AuthSession]:
        """Extend a live session by the window of its own remember-me choice."""
        current = self.lookup(session_id)
        if current is None:
            return None
        with self._user_locks.hold(current.user_id):
            with self._lock:
                session = self.lookup(session_id)
                if session is None:
                    return None
                session = replace(session, expires_at=self._clock() + self.window(session.remember_me))
                self._sessions[session_id] = session
            self._persist(session.user_id, {"session_expires_at": session.expires_at})
        return session

    def revoke(self, session_id: Optional[str] = None, user_id: Optional[int] = None) -> None:
        if session_id is None and user_id is None:
            raise ValueError("revoke() needs a session id or a user id")
        owners = set()
        if user_id is not None:
            owners.add(user_id)
        if session_id is not None:
            with self._lock:
                found = self._sessions.get(session_id)
            if found is not None:
                owners.add(found.user_id)

        revoked = []
        for owner in sorted(owners):
            with self._user_locks.hold(owner):
                with self._lock:
                    removed = owner == user_id
                    found = self._sessions.get(session_id) if session_id is not None else None
                    if found is not None and found.user_id == owner:
                        del self._sessions[session_id]
                        removed = True
                    if owner == user_id:
                        self._drop_user(owner)
                # A concurrent sign-in may already have replaced the session
                if removed:
                    self._persist(owner, {"current_session_id": None, "session_expires_at": None})
                    revoked.append(owner)
        if revoked:
            log.info("Session revoked (users: %s)", revoked)

    def sweep(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def _drop_user(self, user_id: int) -> None:
        for sid in [sid for sid, s in self._sessions.items() if s.user_id == user_id]:
            del self._sessions[sid]

    def _persist(self, user_id: int, fields: dict[str, Any]) -> None:
        if self._pointer_writer is not None:
            self._pointer_writer(user_id, fields)


class UserSessionPointer:
    """Writes session pointer fields onto the user row, in its own transaction."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def __call__(self, user_id: int, fields: dict[str, Any]) -> None:
        with Session(self.engine) as session:
            DocumentStore(session, User).update_by_id(user_id, fields)


async def run_sweeper(store: SessionStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        # sweep() takes a thread lock; keep it off the event loop
        removed = await run_in_threadpool(store.sweep)
        if removed:
            log.info("Removed %d expired sessions", removed)
