"""
Projection d'état par session navigateur.

Un cookie opaque (sf_state) relie les routes auth (dialogue, politique) et les routes state
(/me, /stream) au même StateService: la validité de connexion fixée par open_login()/apply_policy()
est celle que lit la projection. Une session inactive depuis STATE_SESSION_TTL secondes est libérée.
"""
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Depends, Request, Response

from storefront.config import COOKIE_SECURE, STATE_SESSION_TTL
from storefront.customers.repository import CustomerProfiles
from storefront.dependencies import get_profiles
from .service import StateService

logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "sf_state"
_MAX_SESSION_ID_LENGTH = 64


@dataclass
class _Entry:
    state: StateService
    touched: float = field(default_factory=time.monotonic)


class SessionStates:
    def __init__(self, ttl: float = STATE_SESSION_TTL):
        self.ttl = ttl
        self._items: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._items)

    def get(self, session_id: str, profiles: CustomerProfiles) -> StateService:
        self.sweep()
        entry = self._items.get(session_id)
        if entry is None:
            entry = _Entry(StateService(profiles))
            self._items[session_id] = entry
        entry.touched = time.monotonic()
        return entry.state

    def sweep(self, now: Optional[float] = None) -> int:
        now = time.monotonic() if now is None else now
        expired = [sid for sid, entry in self._items.items() if now - entry.touched > self.ttl]
        for sid in expired:
            del self._items[sid]
        if expired:
            logger.info("state.sessions expired count=%s", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._items.clear()


sessions = SessionStates()


def get_sessions() -> SessionStates:
    return sessions


def get_session_state(
    request: Request,
    response: Response,
    profiles: CustomerProfiles = Depends(get_profiles),
    states: SessionStates = Depends(get_sessions),
) -> StateService:
    session_id = request.cookies.get(STATE_COOKIE_NAME)
    if not session_id or len(session_id) > _MAX_SESSION_ID_LENGTH:
        session_id = secrets.token_urlsafe(24)
        response.set_cookie(
            key=STATE_COOKIE_NAME,
            value=session_id,
            httponly=True,
            secure=COOKIE_SECURE,
            samesite="Lax",
            path="/",
        )
    return states.get(session_id, profiles)
