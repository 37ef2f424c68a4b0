"""Authentication utilities."""
from typing import Optional
from fastapi import Depends, Header, HTTPException
import logging

from config import ROLE_ADMIN, TOKEN_USERS
from monitoring import auth_failures_counter, auth_attempts_counter

logger = logging.getLogger(__name__)


def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Verify authentication token.

    Args:
        authorization: Authorization header value

    Returns:
        Valid token

    Raises:
        HTTPException: If token is invalid or missing
    """
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise HTTPException(status_code=401, detail="Please sign in")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = parts[1]
    if token not in TOKEN_USERS:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise HTTPException(status_code=401, detail="Invalid token")

    logger.debug("Authentication successful", extra={
        "user_id": get_user_id_from_token(token)
    })
    return token


def get_user_id_from_token(token: str) -> str:
    """
    Extract user ID from token.

    Args:
        token: Authentication token

    Returns:
        User ID
    """
    return TOKEN_USERS[token][0]


def get_current_user_id(token: str = Depends(verify_token)) -> str:
    """Dependency returning the authenticated user's id."""
    return get_user_id_from_token(token)


def require_admin(token: str = Depends(verify_token)) -> str:
    """
    Dependency that only lets administrators through.

    Returns:
        Admin user ID

    Raises:
        HTTPException: 403 if the caller is not an administrator
    """
    user_id, role = TOKEN_USERS[token]
    if role != ROLE_ADMIN:
        auth_failures_counter.add(1, {"reason": "forbidden"})
        logger.warning("Authorization failed: admin role required", extra={
            "user_id": user_id
        })
        raise HTTPException(status_code=403, detail="Administrator access required")
    return user_id
