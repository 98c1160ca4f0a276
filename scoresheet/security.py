import secrets

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hashes a plain-text password."""
    return pwd_context.hash(password)


def verify_and_update_password(password: str, hashed_password: str) -> tuple[bool, str | None]:
    """
    Verifies a plain-text password against a hash and returns whether it's valid
    and a new hash if it needs to be updated (e.g., migration from bcrypt to argon2).
    """
    return pwd_context.verify_and_update(password, hashed_password)


def new_session_token() -> str:
    """Opaque session id: 32 random bytes, hex encoded."""
    return secrets.token_hex(32)
