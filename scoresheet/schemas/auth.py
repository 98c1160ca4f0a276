from datetime import datetime
from typing import Optional
from .base import ApiModel


class SignUpRequest(ApiModel):
    # Optional so missing fields get the API's own 400 message
    username: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class SignInRequest(ApiModel):
    username: Optional[str] = None
    password: Optional[str] = None
    remember_me: bool = False


class UserRead(ApiModel):
    id: int
    username: str
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AuthUser(ApiModel):
    id: int
    username: str
