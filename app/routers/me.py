from fastapi import APIRouter, Depends
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.auth import MeOut, UserOut

router = APIRouter(prefix="/auth", tags=["me"])


@router.get("/me", response_model=MeOut)
def me(user: User = Depends(get_current_user)):
    return MeOut(user=UserOut.from_user(user))
