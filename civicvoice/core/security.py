# File: civicvoice/core/security.py
from dataclasses import dataclass
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import time, jwt
from sqlalchemy.orm import Session
from civicvoice.core.config import settings
from civicvoice.core.errors import NotAuthenticated
from passlib.hash import bcrypt_sha256
from civicvoice.db.session import get_db
from civicvoice.models.user import User, UserRole

ALGO = "HS256"
ACCESS_TTL = 15 * 60
REFRESH_TTL = 7 * 24 * 3600
bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, passed explicitly to every ownership check."""
    user_id: Optional[int] = None
    role: Optional[UserRole] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user(self) -> int:
        if self.user_id is None:
            raise NotAuthenticated()
        return self.user_id

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles


ANONYMOUS = AuthContext()


def hash_password(raw: str) -> str:
    return bcrypt_sha256.hash(raw)

def verify_password(raw: str, hashed: str) -> bool:
    return bcrypt_sha256.verify(raw, hashed)

def _issue_token(user: User, kind: str, ttl: int) -> str:
    now = int(time.time())
    payload = {"sub": str(user.id), "role": user.role.value, "typ": kind, "iat": now, "exp": now + ttl}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)

def make_tokens(user: User) -> dict:
    return {
        "access_token": _issue_token(user, "access", ACCESS_TTL),
        "refresh_token": _issue_token(user, "refresh", REFRESH_TTL),
        "token_type": "bearer",
        "expires_in": ACCESS_TTL,
        "user_id": user.id,
        "role": user.role.value,
    }

def decode_token(token: str, kind: str = "access") -> int:
    """Return the user id carried by a token of the given kind; raises jwt.PyJWTError otherwise."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGO], options={"require": ["exp", "sub"]})
    if payload.get("typ") != kind:
        raise jwt.InvalidTokenError(f"expected a {kind} token")
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise jwt.InvalidTokenError("malformed subject")

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     db: Session = Depends(get_db)) -> User:
    if not creds:
        raise _unauthorized("Not authenticated")
    try:
        user_id = decode_token(creds.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.PyJWTError:
        raise _unauthorized("Invalid token")
    user = db.get(User, user_id)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="user_inactive")
    return user

def get_optional_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                      db: Session = Depends(get_db)) -> Optional[User]:
    if not creds:
        return None
    try:
        user_id = decode_token(creds.credentials)
    except jwt.PyJWTError:
        return None
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user

def get_auth_context(user: Optional[User] = Depends(get_optional_user)) -> AuthContext:
    # absence of a user is "unauthenticated", not an error; owner-scoped
    # operations reject it themselves
    if user is None:
        return ANONYMOUS
    return AuthContext(user_id=user.id, role=user.role)

def require_role(*roles: UserRole):
    def _dep(user: User = Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
        return user
    return _dep
