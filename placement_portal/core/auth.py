"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification (access and password-reset tokens)
- FastAPI dependencies for protected routes and role checks
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import text

from placement_portal.core.config import get_settings
from placement_portal.db.database import get_db_session

settings = get_settings()
logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"
RESET_TOKEN_PURPOSE = "password_reset"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor; HTML pages send the token as a cookie instead
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def generate_temporary_password(length: int = 12) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_reset_token(user_id: int, password_hash: str) -> str:
    """
    Short-lived token for the forgot-password flow.

    Carries a fragment of the current password hash so the token stops
    working once the password has been changed.
    """
    return create_access_token(
        data={"sub": str(user_id), "purpose": RESET_TOKEN_PURPOSE, "pwd": password_hash[-10:]},
        expires_delta=timedelta(minutes=settings.reset_token_expire_minutes),
    )


def load_user(user_id: int) -> Optional[dict]:
    with get_db_session() as db:
        result = db.execute(
            text("""
                SELECT user_id, email, name, role, university_id, is_active
                FROM users WHERE user_id = :id
            """),
            {"id": user_id}
        )
        row = result.fetchone()

    if not row:
        return None
    return {
        "user_id": row[0], "email": row[1], "name": row[2], "role": row[3],
        "university_id": row[4], "is_active": bool(row[5]),
    }


def user_from_token(token: Optional[str]) -> Optional[dict]:
    """Resolve an access token to an active user dict, or None."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("purpose"):
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    user = load_user(int(user_id))
    if not user or not user["is_active"]:
        return None
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @app.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise credentials_exception

    payload = decode_token(token)
    if not payload or payload.get("purpose"):
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    user = load_user(int(user_id))
    if not user:
        raise credentials_exception

    if not user["is_active"]:
        raise HTTPException(status_code=403, detail="Account deactivated")

    return user


def require_roles(*roles: str):
    """
    Dependency factory - allow only the given roles.

    Usage:
        @router.post("", dependencies=[Depends(require_roles("SUPER_ADMIN"))])
    """
    allowed = {r.value if hasattr(r, "value") else r for r in roles}

    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in allowed:
            logger.warning(f"User {user['user_id']} ({user['role']}) denied; requires {sorted(allowed)}")
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return user

    return checker


async def get_current_student(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require student role and get student_id."""
    if user["role"] != "STUDENT":
        raise HTTPException(status_code=403, detail="Students only")

    with get_db_session() as db:
        result = db.execute(
            text("SELECT student_id, university_id, department_id, cgpa FROM students WHERE user_id = :id"),
            {"id": user["user_id"]}
        )
        row = result.fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Student profile not found")

    user["student_id"] = row[0]
    user["university_id"] = row[1]
    user["department_id"] = row[2]
    user["cgpa"] = float(row[3]) if row[3] is not None else 0.0
    return user


async def get_university_admin(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require a university admin attached to a university."""
    if user["role"] != "UNIVERSITY_ADMIN":
        raise HTTPException(status_code=403, detail="University admins only")
    if not user["university_id"]:
        raise HTTPException(status_code=404, detail="University not found")
    return user
