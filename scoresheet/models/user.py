from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from scoresheet.security import hash_password, verify_and_update_password
from scoresheet.utils import utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    password_hash: str

    # Pointer to the last session handed out, kept for auditing. Sessions
    # themselves live in memory and do not survive a restart.
    current_session_id: Optional[str] = Field(default=None, index=True)
    session_expires_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def set_password(self, password: str):
        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        """Verifies the password and upgrades a deprecated hash in place."""
        verified, new_hash = verify_and_update_password(password, self.password_hash)
        if verified and new_hash:
            self.password_hash = new_hash
        return verified

    def __repr__(self):
        return f"<User id={self.id} {self.username}>"
