"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Getting the authenticated principal (caller identity) from a bearer token
- Verifying that a request's declared caller matches that principal
"""
from dataclasses import dataclass
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from core.exceptions import ForbiddenError, UnauthorizedError
from core.security import decode_access_token

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The verified caller. Profiles live with an external collaborator, so only the id is kept."""
    user_id: str


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """
    Get the current authenticated principal from JWT token.

    Raises UnauthorizedError if token is missing or invalid.
    """
    # Check if credentials are missing (return 401, not 403)
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise UnauthorizedError("Invalid token payload")

    return Principal(user_id=user_id)


def require_same_caller(declared_user_id: Optional[str], principal: Principal) -> None:
    """
    Reject requests whose declared caller identity differs from the token subject.

    Runs before any processing of the request body.
    """
    if not declared_user_id or declared_user_id != principal.user_id:
        raise ForbiddenError("User ID does not match authenticated user.")
