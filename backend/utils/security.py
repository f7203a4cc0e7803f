import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from core import config
from models.user import Actor, UserRole
from services.capabilities import ensure_role

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: uuid.UUID, role: UserRole, username: str = "", expires_minutes: Optional[int] = None
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or config.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user_id), "role": UserRole(role).value, "username": username, "exp": expire}
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
        return Actor(
            id=uuid.UUID(claims["sub"]),
            role=UserRole(claims["role"]),
            username=claims.get("username") or "",
        )
    except (JWTError, KeyError, ValueError):
        raise credentials_exception


# Get the acting user from the bearer token issued by the auth service
def get_current_actor(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Actor:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(credentials.credentials)


def role_required(*roles: UserRole):
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        ensure_role(actor, *roles)
        return actor

    return dependency


arbiter_required = role_required(UserRole.arbiter)
fixer_required = role_required(UserRole.fixer)
