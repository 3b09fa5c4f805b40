# File: civicvoice/routers/auth.py

import logging
import jwt
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from civicvoice.db.session import get_db, commit_or_rollback
from civicvoice.models.user import User, UserRole
from civicvoice.schemas.auth import RegisterIn, LoginIn, RefreshIn, TokenPair, ProfileIn, ProfileOut
from civicvoice.core.security import hash_password, verify_password, make_tokens, decode_token, get_current_user
from civicvoice.services.profiles import profiles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=TokenPair)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=email,
        name=body.name,
        hashed_password=hash_password(body.password),
        role=UserRole.citizen,
        is_active=True,
    )
    db.add(user)
    commit_or_rollback(db, "register")
    db.refresh(user)
    logger.info(f"Registered user {user.id}")

    # registering opens a session straight away
    return make_tokens(user)

@router.post("/login", response_model=TokenPair)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not verify_password(body.password, user.hashed_password):
        logger.info("Rejected login attempt")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Your account has been deactivated. Please contact support.")
    user.last_login = datetime.now(timezone.utc)
    commit_or_rollback(db, "login")
    # session established: start from a fresh profile
    profiles.invalidate(user.id)
    return make_tokens(user)

@router.post("/refresh", response_model=TokenPair)
def refresh(body: RefreshIn, db: Session = Depends(get_db)):
    try:
        user_id = decode_token(body.refresh_token, kind="refresh")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return make_tokens(user)

@router.post("/logout")
def logout(current: User = Depends(get_current_user)):
    # tokens are stateless; signing out tears down what was derived from the session
    profiles.invalidate(current.id)
    return {"ok": True}

@router.get("/me", response_model=ProfileOut)
def me(current: User = Depends(get_current_user)):
    return profiles.get_for(current)

@router.put("/profile", response_model=ProfileOut)
def update_profile(
    body: ProfileIn,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    name = body.name.strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Name too short")
    current.name = name
    commit_or_rollback(db, "profile update")
    profiles.invalidate(current.id)
    logger.info(f"User {current.id} updated their profile")
    return profiles.get_for(current)
