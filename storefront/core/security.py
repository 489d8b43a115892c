"""
Security utilities for authentication and authorization
Handles JWT tokens and role checks
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import uuid
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import settings
from .exceptions import UnauthorizedException, ForbiddenException

# Security scheme; missing credentials are reported as AuthRequired below
security = HTTPBearer(auto_error=False)

class SecurityUtils:
    """Security utility functions"""

    @staticmethod
    def create_access_token(data: Dict[str, Any]) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """Decode and validate JWT token"""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise UnauthorizedException("Invalid token")

# Dependency to get current user from token
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Dict[str, Any]:
    """Extract and validate user from JWT token"""
    if credentials is None:
        raise UnauthorizedException()

    payload = SecurityUtils.decode_token(credentials.credentials)

    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthorizedException("Invalid token type")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise UnauthorizedException("Invalid token")

    return {
        "id": user_id,
        "role": payload.get("role"),
        "email": payload.get("email"),
    }

# Role-based access control
def require_role(allowed_roles: list[str]):
    """Dependency factory checking the user's role"""
    async def role_checker(current_user: dict = Depends(get_current_user)):
        if current_user.get("role") not in allowed_roles:
            raise ForbiddenException("Access denied. Admins only.")
        return current_user
    return role_checker

require_admin = require_role(["admin"])
