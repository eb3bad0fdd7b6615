# app/routers/auth_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from app.db import get_session
from app.models import User
from app.schemas import Token, UserCreate, UserPublic
from app.auth import authenticate, create_access_token, find_user_by_email, hash_password
from app.rate_limiter import auth_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(auth_rate_limiter)],
)


@router.post("/register", status_code=201, response_model=UserPublic)
def register(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    if find_user_by_email(session, user.email) is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    db_user = User(
        name=user.name,
        email=user.email,
        password_hash=hash_password(user.password),
        role=user.role.value,
        timezone=user.timezone,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)

    logger.info("User %s registered as %s", db_user.id, db_user.role)
    return db_user


@router.post("/login", response_model=Token)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    client_ip = request.client.host if request.client else "unknown"
    user = authenticate(session, form_data.username, form_data.password)

    if user is None:
        logger.info("Login failed for %s from %s", form_data.username, client_ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info("User %s logged in from %s", user.id, client_ip)
    token = create_access_token({"sub": user.email})
    return {"access_token": token, "token_type": "bearer"}
