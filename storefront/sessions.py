# storefront/sessions.py
"""Server-side sessions.

The cookie only carries a signed session id; the record itself
(``user_id``, ``email`` and the cart) lives behind a ``SessionRepository``.
"""

import asyncio
import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Protocol

from storefront.db.schemas import SessionData


class SessionRepository(Protocol):
    async def load(self, sid: str) -> Optional[SessionData]: ...

    async def save(self, session: SessionData) -> None: ...

    async def destroy(self, sid: str) -> None: ...


def new_session() -> SessionData:
    return SessionData(sid=secrets.token_urlsafe(24), is_new=True)


async def rotate_session(session: SessionData, repository: SessionRepository) -> SessionData:
    """Move the session data to a fresh sid and drop the old record.

    Called when the session changes hands (login, registration); the cart
    carries over.
    """
    if not session.is_new:
        await repository.destroy(session.sid)
    return SessionData(
        sid=new_session().sid,
        user_id=session.user_id,
        email=session.email,
        cart=session.cart,
        is_new=True,
    )


async def refresh_session(session: SessionData, repository: SessionRepository) -> SessionData:
    """Replace the in-request copy of the session with what is currently stored.

    Two requests of the same session each load the record when they start;
    re-reading under the session lock keeps the later one from overwriting
    the earlier one's changes.
    """
    stored = await repository.load(session.sid)
    if stored is not None:
        session.user_id = stored.user_id
        session.email = stored.email
        session.cart = stored.cart
    return session


class SessionLocks:
    """Per-session ``asyncio.Lock`` registry for a single process."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, sid: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(sid, asyncio.Lock())
        self._holders[sid] = self._holders.get(sid, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[sid] -= 1
            if not self._holders[sid]:
                del self._holders[sid]
                del self._locks[sid]

    def __len__(self) -> int:
        return len(self._locks)
