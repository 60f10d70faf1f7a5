"""
sciencefair/rbac.py
Role-based access control for the results API.

Tokens are issued by the portal's auth service; this module only decodes
them. The token subject is the user's email.
"""
import os
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt

from sciencefair.database import get_db
from sciencefair.orm.user import User, UserRole
from sciencefair.errors import ErrorCode

logger = logging.getLogger(__name__)

# ================= CONFIG =================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# ================= TOKEN UTILS =================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token (used by tests and tooling)"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "exp": expire,
        "type": "access"
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ================= AUTH DEPENDENCIES =================

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT access token.
    Returns 401 if token is invalid or expired.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "success": False,
            "error": "Unauthorized",
            "message": "Invalid or expired token",
            "code": ErrorCode.AUTH_INVALID
        },
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise credentials_exception

    email = payload.get("sub")
    if not email:
        raise credentials_exception

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise credentials_exception

    return user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory: the user's current role must be one of allowed_roles.
    Usage: current_user: User = Depends(require_role(ADMIN_ROLES))
    """
    allowed = [r.value for r in allowed_roles]

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.current_role not in allowed:
            logger.warning(
                f"Access denied: User {current_user.id} acting as {current_user.current_role} "
                f"attempted to access resource requiring {allowed}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "success": False,
                    "error": "Forbidden",
                    "message": f"This action requires one of: {allowed}",
                    "code": ErrorCode.FORBIDDEN,
                    "current_role": current_user.current_role
                }
            )
        return current_user

    return dependency
