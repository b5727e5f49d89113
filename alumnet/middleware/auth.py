"""JWT authentication dependencies for FastAPI."""
from fastapi import Depends, Request
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import BaseModel
from typing import Any, Dict, Optional
import logging
import os

from dotenv import load_dotenv

from alumnet.errors import AuthenticationError, Forbidden

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET = os.environ.get("JWT_SECRET", "change-me-for-dev")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")


class CurrentUser(BaseModel):
    """User information extracted from JWT."""
    user_id: str
    role: str = "student"
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify an identity token and return its claims.

    Raises:
        AuthenticationError: If the token is missing, malformed or expired
    """
    if not token:
        raise AuthenticationError("No token provided")

    if token.startswith("Bearer "):
        token = token[7:]

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT decode error: {str(e)}")
        raise AuthenticationError("Invalid token")


def user_from_claims(payload: Dict[str, Any]) -> CurrentUser:
    """Build a CurrentUser from decoded claims (``sub`` or legacy ``id``)."""
    user_id = payload.get("sub") or payload.get("id") or payload.get("_id")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user ID")

    return CurrentUser(
        user_id=str(user_id),
        role=payload.get("role") or "student",
        email=payload.get("email"),
    )


async def get_current_user(request: Request) -> CurrentUser:
    """
    Validate the bearer token from the Authorization header.

    Returns:
        CurrentUser with user_id, role and email from the token

    Raises:
        AuthenticationError: If the header is missing or the token is invalid
    """
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Access denied. No token provided.")

    payload = decode_access_token(auth_header[7:])
    return user_from_claims(payload)


async def get_current_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Same as get_current_user, but only admins pass."""
    if not current_user.is_admin:
        raise Forbidden("Access denied. Admin privileges required.")
    return current_user
