"""
Authentication Routes

POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
POST /auth/forgot-password - Issue a password reset token
POST /auth/reset-password - Set a new password with a reset token
POST /auth/change-password - Change password (logged in)
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from placement_portal.db.database import get_db_session
from placement_portal.core.auth import (
    hash_password, verify_password, create_access_token, create_reset_token,
    decode_token, get_current_user, RESET_TOKEN_PURPOSE
)
from placement_portal.core.config import get_settings
from placement_portal.schemas.schemas import (
    LoginRequest, TokenResponse, UserResponse, MessageResponse,
    ForgotPasswordRequest, ForgotPasswordResponse, ResetPasswordRequest, ChangePasswordRequest
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)
settings = get_settings()


def authenticate(email: str, password: str, role: str = None) -> dict:
    """Check credentials, update last_login and return the user row."""
    with get_db_session() as db:
        result = db.execute(
            text("""
                SELECT user_id, password_hash, role, is_active, name, university_id
                FROM users WHERE LOWER(email) = LOWER(:email)
            """),
            {"email": email}
        )
        user = result.fetchone()

        if not user or not verify_password(password, user[1]):
            logger.warning(f"Failed login for {email}")
            raise HTTPException(status_code=401, detail="Invalid email or password")

        user_id, _, user_role, is_active, name, university_id = user

        if role and role != user_role:
            logger.warning(f"Login for {email} rejected: requested role {role}, account is {user_role}")
            raise HTTPException(status_code=401, detail="Invalid email or password")

        if not is_active:
            raise HTTPException(status_code=403, detail="Account deactivated")

        db.execute(
            text("UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE user_id = :id"),
            {"id": user_id}
        )

    return {"user_id": user_id, "role": user_role, "name": name, "university_id": university_id}


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    user = authenticate(request.email, request.password, request.role.value if request.role else None)
    token = create_access_token(data={"sub": str(user["user_id"]), "role": user["role"]})
    logger.info(f"User {user['user_id']} ({user['role']}) logged in")

    return TokenResponse(access_token=token, **user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        result = db.execute(
            text("""
                SELECT user_id, email, name, role, university_id, phone, designation,
                       is_active, last_login, created_at
                FROM users WHERE user_id = :id
            """),
            {"id": user["user_id"]}
        )
        row = result.mappings().fetchone()

    return UserResponse(**row)


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
async def forgot_password(request: ForgotPasswordRequest):
    """
    Start a password reset.

    Always answers with the same message so account existence isn't leaked.
    The token is only echoed back in debug mode; delivery is out of band.
    """
    message = "If an account exists for this email, password reset instructions have been sent"

    with get_db_session() as db:
        result = db.execute(
            text("SELECT user_id, password_hash, is_active FROM users WHERE LOWER(email) = LOWER(:email)"),
            {"email": request.email}
        )
        user = result.fetchone()

    if not user or not user[2]:
        return ForgotPasswordResponse(message=message)

    token = create_reset_token(user[0], user[1])
    logger.info(f"Password reset token issued for user {user[0]}")
    return ForgotPasswordResponse(message=message, reset_token=token if settings.debug else None)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest):
    invalid = HTTPException(status_code=400, detail="Invalid or expired reset token")

    payload = decode_token(request.token)
    if not payload or payload.get("purpose") != RESET_TOKEN_PURPOSE or not payload.get("sub"):
        raise invalid

    with get_db_session() as db:
        result = db.execute(
            text("SELECT user_id, password_hash FROM users WHERE user_id = :id"),
            {"id": int(payload["sub"])}
        )
        user = result.fetchone()

        # Token is bound to the password it was issued for
        if not user or user[1][-10:] != payload.get("pwd"):
            raise invalid

        db.execute(
            text("UPDATE users SET password_hash = :hash, updated_at = CURRENT_TIMESTAMP WHERE user_id = :id"),
            {"hash": hash_password(request.new_password), "id": user[0]}
        )

    logger.info(f"Password reset for user {user[0]}")
    return MessageResponse(message="Password has been reset. Please login.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(request: ChangePasswordRequest, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        result = db.execute(
            text("SELECT password_hash FROM users WHERE user_id = :id"),
            {"id": user["user_id"]}
        )
        password_hash = result.fetchone()[0]

        if not verify_password(request.current_password, password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")

        db.execute(
            text("UPDATE users SET password_hash = :hash, updated_at = CURRENT_TIMESTAMP WHERE user_id = :id"),
            {"hash": hash_password(request.new_password), "id": user["user_id"]}
        )

    logger.info(f"User {user['user_id']} changed password")
    return MessageResponse(message="Password changed successfully")
