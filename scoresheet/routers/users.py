from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import User
from scoresheet.schemas.auth import UserRead
from scoresheet.store import DocumentStore

router = APIRouter(prefix="/user", tags=["users"], dependencies=[Depends(require_user)])


@router.get("/", response_model=List[UserRead])
def list_users(db: Session = Depends(get_session)):
    return DocumentStore(db, User).find()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_session)):
    user = DocumentStore(db, User).find_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user
