# app/routers/users_routes.py

from fastapi import APIRouter, Depends

from app.models import User
from app.schemas import UserPublic
from app.auth import get_current_user

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)):
    return current_user
