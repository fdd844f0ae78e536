# Authentication Dependencies for Collab Marketplace
# Resolves the calling user's profile from a bearer JWT (sub = user id)

from fastapi import Depends, HTTPException, Query, WebSocket, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import BaseModel

from config.app_config import JWT_ALGORITHM, JWT_SECRET_KEY
from database.config import get_db
from database.models import UserProfile


security = HTTPBearer()


class TokenData(BaseModel):
    user_id: Optional[str] = None


def create_access_token(user_id: str, expires_minutes: int = 60 * 24) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": user_id, "exp": expire}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Decode and validate JWT token."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id)


def _load_profile(db: Session, token: str) -> Optional[UserProfile]:
    token_data = decode_access_token(token)
    if token_data is None:
        return None
    profile = db.get(UserProfile, token_data.user_id)
    if profile is None or profile.is_blocked:
        return None
    return profile


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> UserProfile:
    """
    Validate JWT token and return the caller's profile.
    This is the core authentication dependency.
    """
    profile = _load_profile(db, credentials.credentials)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile


security_optional = HTTPBearer(auto_error=False)


async def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    db: Session = Depends(get_db)
) -> Optional[UserProfile]:
    """Return the profile if authenticated, else None."""
    if not credentials:
        return None
    return _load_profile(db, credentials.credentials)


async def get_websocket_user(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db)
) -> Optional[UserProfile]:
    """Browsers cannot set headers on a WebSocket, so the token comes as ?token=."""
    if not token:
        return None
    return _load_profile(db, token)
