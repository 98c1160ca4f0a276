import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from scoresheet.config import Settings
from scoresheet.db import get_session
from scoresheet.dependencies import (
    get_optional_user,
    get_session_store,
    get_session_token,
    get_settings,
    require_session,
    require_user,
)
from scoresheet.errors import AuthFailure, ValidationError
from scoresheet.models import User
from scoresheet.schemas.auth import AuthUser, SignInRequest, SignUpRequest
from scoresheet.services.sessions import AuthSession, SessionStore
from scoresheet.store import DocumentStore

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _public(user: User) -> dict:
    return AuthUser.model_validate(user).model_dump()


def set_session_cookie(response: Response, settings: Settings, store: SessionStore, auth_session: AuthSession):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=auth_session.session_id,
        httponly=True,
        max_age=int(store.window(auth_session.remember_me).total_seconds()),
        samesite=settings.SESSION_COOKIE_SAMESITE,
        secure=settings.cookie_secure,
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def sign_up(
    body: SignUpRequest,
    response: Response,
    db: Session = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """Creates the account and signs the new user in with a short session."""
    username = (body.username or "").strip()
    if not username or not body.password or not body.confirm_password:
        raise ValidationError("All fields are required")
    if body.password != body.confirm_password:
        raise ValidationError("Passwords do not match")
    if len(body.password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")

    users = DocumentStore(db, User)
    if users.find_one(username=username):
        raise ValidationError("Username already exists")

    user = User(username=username)
    user.set_password(body.password)
    user = users.insert(user)

    auth_session = store.create(user.id, remember_me=False)
    set_session_cookie(response, settings, store, auth_session)
    log.info("User %s signed up", user.id)
    return {"message": "User created successfully", "user": _public(user)}


@router.post("/signin")
def sign_in(
    body: SignInRequest,
    response: Response,
    db: Session = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """Checks the credentials and replaces any session the user already had."""
    username = (body.username or "").strip()
    if not username or not body.password:
        raise ValidationError("Username and password are required")

    user = DocumentStore(db, User).find_one(username=username)
    if not user or not user.check_password(body.password):
        raise AuthFailure("Invalid credentials")
    if db.is_modified(user):
        # check_password upgraded a deprecated hash
        db.commit()

    auth_session = store.create(user.id, remember_me=body.remember_me)
    set_session_cookie(response, settings, store, auth_session)
    return {"message": "Sign in successful", "user": _public(user)}


@router.post("/signout")
def sign_out(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    if token:
        store.revoke(session_id=token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Sign out successful"}


@router.get("/me")
def me(current_user: User = Depends(require_user)):
    return {"user": _public(current_user)}


@router.post("/refresh")
def refresh(
    response: Response,
    auth_session: AuthSession = Depends(require_session),
    current_user: User = Depends(require_user),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """Extends the current session and the cookie that carries it."""
    refreshed = store.refresh(auth_session.session_id)
    if refreshed is not None:
        set_session_cookie(response, settings, store, refreshed)
    return {"message": "Session refreshed successfully", "expiresAt": refreshed.expires_at if refreshed else None}


@router.get("/check")
def check(current_user: Optional[User] = Depends(get_optional_user)):
    if not current_user:
        return {"authenticated": False}
    return {"authenticated": True, "user": _public(current_user)}
