from fastapi import APIRouter, Depends

from scoresheet.dependencies import require_user
from scoresheet.models import User
from scoresheet.schemas.auth import AuthUser
from scoresheet.utils import utcnow

router = APIRouter(prefix="/protected", tags=["protected"])


@router.get("/profile")
def profile(current_user: User = Depends(require_user)):
    return {
        "message": "This is a protected route",
        "user": AuthUser.model_validate(current_user).model_dump(),
    }


@router.get("/dashboard")
def dashboard(current_user: User = Depends(require_user)):
    return {
        "message": "Welcome to your dashboard",
        "user": AuthUser.model_validate(current_user).model_dump(),
        "timestamp": utcnow().isoformat(),
    }
