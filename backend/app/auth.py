"""
Candidate Vetting Engine - Authentication Utilities
JWT verification and auth dependencies

Tokens are issued by the organization's identity provider:
    sub  = member id
    role = member's highest organization role
"""
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .services.vetting.permissions import VettingContext, load_vetting_context

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "candidate-vetting-secret-key-change-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = 24

# Bearer token security; missing credentials are answered with 401 below
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as asserted by the token."""
    member_id: str
    role: str = "member"


def create_access_token(member_id: str, role: str = "member", expires_in: Optional[timedelta] = None) -> str:
    """Create a JWT access token with role claim (scripts and tests)."""
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = {
        "sub": member_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token (signature and expiry)."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Dependency to get the authenticated caller.
    Validates the JWT; no database lookup.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    member_id: str = payload.get("sub")
    if member_id is None:
        raise credentials_exception

    return Actor(member_id=member_id, role=payload.get("role") or "member")


async def get_vetting_context(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> VettingContext:
    """Dependency: actor plus active committee membership."""
    return load_vetting_context(db, actor.member_id, actor.role)


def forbidden(detail: str = "Forbidden") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
