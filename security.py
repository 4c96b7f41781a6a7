import os
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jwt import InvalidTokenError
from loguru import logger
from passlib.context import CryptContext

from activity import LOGIN_COLLECTION, last_logins, record_login, summary_by_user
from database import (
    create_document,
    delete_document,
    delete_documents,
    find_document,
    get_documents,
    update_document,
)
from errors import AuthError, ForbiddenError, NotFoundError, ValidationError
from schemas import User as UserSchema

# ----------------------
# Auth / Security Setup
# ----------------------
SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "change-me-admin")

USER_COLLECTION = "user"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

_admin_seeded = False
_admin_lock = threading.Lock()


# ----------------------
# Utility Functions
# ----------------------

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def token_for(user: dict) -> str:
    return create_access_token({"sub": str(user["_id"]), "role": user.get("role", "user")})


def get_user_by_email(email: str) -> Optional[dict]:
    return find_document(USER_COLLECTION, {"email": email})


def get_user_by_id(user_id: str) -> Optional[dict]:
    try:
        return find_document(USER_COLLECTION, {"_id": ObjectId(user_id)})
    except InvalidId:
        return None


def ensure_admin_user() -> None:
    """Seed the default admin account once per process."""
    global _admin_seeded

    if _admin_seeded:
        return
    with _admin_lock:
        if _admin_seeded:
            return
        if get_user_by_email(ADMIN_EMAIL) is None:
            admin = UserSchema(
                email=ADMIN_EMAIL,
                password_hash=get_password_hash(ADMIN_PASSWORD),
                name="Admin",
                username=ADMIN_EMAIL.split("@")[0],
                role="admin",
            )
            create_document(USER_COLLECTION, admin)
            logger.info("Admin user created: {}", ADMIN_EMAIL)
        _admin_seeded = True


# ----------------------
# Register / Login
# ----------------------

def register(email: str, password: str, name: Optional[str] = None) -> Tuple[dict, str]:
    email = email.strip()
    if get_user_by_email(email):
        raise ValidationError("Email already registered")

    user_doc = UserSchema(
        email=email,
        password_hash=get_password_hash(password),
        name=name or "User",
        username=email.split("@")[0],
    )
    create_document(USER_COLLECTION, user_doc)
    user = get_user_by_email(email)
    return user, token_for(user)


def login(email: str, password: str) -> Tuple[dict, str]:
    user = get_user_by_email(email.strip())
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthError("Invalid credentials")
    if not user.get("is_active", True):
        raise AuthError("Account disabled")

    record_login(user)
    logger.info("User {} logged in", user["email"])
    return user, token_for(user)


# ----------------------
# Dependencies
# ----------------------

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AuthError("Missing or invalid auth header")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except InvalidTokenError:
        raise AuthError("Invalid token")

    user_id = payload.get("sub")
    user = get_user_by_id(user_id) if user_id else None
    if user is None:
        raise AuthError("User not found")
    if not user.get("is_active", True):
        raise AuthError("Account disabled")
    return user


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user.get("role") != "admin":
        raise ForbiddenError("Admin access required")
    return current_user


# ----------------------
# Admin user management
# ----------------------

def list_users() -> List[dict]:
    """Users with their activity totals and last login."""
    totals = {row["username"]: row for row in summary_by_user()}
    logins = last_logins()

    users = []
    for user in get_documents(USER_COLLECTION, sort=[("_id", -1)]):
        sums = totals.get(user.get("username"), {})
        users.append({
            "id": str(user["_id"]),
            "email": user.get("email"),
            "name": user.get("name"),
            "username": user.get("username"),
            "role": user.get("role", "user"),
            "is_active": user.get("is_active", True),
            "total_deposit": sums.get("total_deposit", 0.0),
            "total_redeem": sums.get("total_redeem", 0.0),
            "total_freeplay": sums.get("total_freeplay", 0.0),
            "last_login_at": logins.get(user.get("email")),
        })
    return users


def set_user_active(user_id: str, active: bool) -> dict:
    """Approve (active=True) or block a user; blocked users cannot log in."""
    try:
        user = update_document(USER_COLLECTION, {"_id": ObjectId(user_id)}, {"is_active": active})
    except InvalidId:
        user = None
    if user is None:
        raise NotFoundError("User not found")

    logger.info("User {} {}", user.get("email"), "approved" if active else "blocked")
    return user


def delete_user(user_id: str) -> dict:
    try:
        removed = delete_document(USER_COLLECTION, {"_id": ObjectId(user_id)})
    except InvalidId:
        removed = None
    if removed is None:
        raise NotFoundError("User not found")

    delete_documents(LOGIN_COLLECTION, {"user_id": user_id})
    logger.info("Deleted user {}", removed.get("email"))
    return removed
