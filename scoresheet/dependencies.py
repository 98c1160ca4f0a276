from typing import Optional
from fastapi import Depends, Request
from sqlmodel import Session
from .config import Settings
from .db import get_session
from .errors import SessionNotFoundError
from .models import User
from .services.sessions import AuthSession, SessionStore
from .utils import KeyedLocks


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    """The application's single session store."""
    return request.app.state.sessions


def get_group_locks(request: Request) -> KeyedLocks:
    return request.app.state.group_locks


def get_session_token(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def require_session(
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
) -> AuthSession:
    if not token:
        raise SessionNotFoundError("No session found")
    auth_session = store.lookup(token)
    if auth_session is None:
        raise SessionNotFoundError("Invalid or expired session")
    return auth_session


def require_user(
    auth_session: AuthSession = Depends(require_session),
    db: Session = Depends(get_session),
) -> User:
    """Dependency for protected routes: a live session whose user still exists."""
    user = db.get(User, auth_session.user_id)
    if not user:
        raise SessionNotFoundError("User not found")
    return user


def get_optional_user(
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
    db: Session = Depends(get_session),
) -> Optional[User]:
    if not token:
        return None
    auth_session = store.lookup(token)
    if auth_session is None:
        return None
    return db.get(User, auth_session.user_id)
