# Access control: password hashing, JWT issue/verify, role gating

import asyncio
import logging
from datetime import timedelta
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from . import config
from .database import executor, get_db
from .errors import Forbidden, Unauthenticated, ValidationFailed
from .models import UserResponse, UserRole
from .utils import ensure_utc, new_id, now_utc

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

_token_blacklist: set = set()


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > 72:
        raise ValidationFailed("Password cannot exceed 72 bytes")
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(hours=config.JWT_EXPIRE_HOURS)
    to_encode["iat"] = now_utc()
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

def decode_token(token: str) -> str:
    """Return the user id a token was issued for."""
    if token in _token_blacklist:
        raise Unauthenticated("Token has been revoked")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Your token has expired. Please log in again.")
    except JWTError:
        raise Unauthenticated("Invalid token. Please log in again.")
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token. Please log in again.")
    return user_id

def revoke_token(token: str) -> None:
    _token_blacklist.add(token)
    # Expired tokens fail verification anyway
    if len(_token_blacklist) > 10000:
        _token_blacklist.clear()


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------
def check_credentials(db, email: str, password: str) -> dict:
    user = db.users.find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user["hashed_password"]):
        raise Unauthenticated("Invalid email or password")
    db.users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now_utc()}})
    return user


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    if token is None:
        raise Unauthenticated("You are not logged in. Please log in to get access")
    user_id = decode_token(token)
    loop = asyncio.get_event_loop()
    user = await loop.run_in_executor(executor, db.users.find_one, {"_id": user_id})
    if user is None:
        raise Unauthenticated("The user belonging to this token no longer exists")
    return user

async def get_optional_user(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    if token is None:
        return None
    try:
        user_id = decode_token(token)
    except Unauthenticated:
        return None
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, db.users.find_one, {"_id": user_id})

def authorize(user: dict, roles) -> dict:
    if user["role"] not in roles:
        logger.warning("Unauthorized role access attempt: user=%s role=%s", user["_id"], user["role"])
        raise Forbidden()
    return user

def require_role(*roles):
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}
    async def role_checker(user=Depends(get_current_user)):
        return authorize(user, allowed)
    return role_checker

def user_to_response(user: dict) -> UserResponse:
    return UserResponse(
        id=str(user["_id"]), name=user["name"], email=user["email"], role=user["role"],
        phone=user.get("phone"), address=user.get("address"), bio=user.get("bio"),
        department=user.get("department"), created_at=ensure_utc(user["created_at"]))

def new_user_doc(name: str, email: str, password: str, role: UserRole,
                 phone: Optional[str] = None, department: Optional[str] = None) -> dict:
    now = now_utc()
    return {
        "_id": new_id(), "name": name, "email": email.strip().lower(),
        "hashed_password": hash_password(password),
        "role": UserRole(role).value, "phone": phone, "address": None, "bio": None,
        "department": department, "created_at": now, "updated_at": now,
    }
