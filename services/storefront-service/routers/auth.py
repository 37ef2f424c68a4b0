"""Authentication API router."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
import logging

from config import TOKEN_USERS, USER_CREDENTIALS
from monitoring import auth_attempts_counter, auth_failures_counter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


class LoginRequest(BaseModel):
    """Login request model."""
    username: str
    password: str


class LoginResponse(BaseModel):
    """Login response model."""
    token: str
    token_type: str = "bearer"
    user_id: str
    role: str


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Authenticate user and return token.

    Demo credentials:
    - username: user123, password: password123
    - username: test, password: test123
    - username: admin, password: admin123 (administrator)
    """
    auth_attempts_counter.add(1, {"type": "login"})

    credentials = USER_CREDENTIALS.get(request.username)
    if credentials is None or request.password != credentials[0]:
        auth_failures_counter.add(1, {"reason": "invalid_credentials"})
        logger.warning("Login failed: Invalid username or password", extra={
            "username": request.username
        })
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = credentials[1]
    user_id, role = TOKEN_USERS[token]

    logger.info("User logged in successfully", extra={
        "username": request.username,
        "user_id": user_id
    })

    return LoginResponse(token=token, user_id=user_id, role=role)
