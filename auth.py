import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from bson.errors import InvalidId
from fastapi import Depends, Header
from pydantic import BaseModel

from database import get_db, to_object_id
from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))


class Principal(BaseModel):
    """The authenticated identity acting on a request."""

    id: str
    name: str
    email: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def create_token(user_doc: dict) -> str:
    payload = {
        "sub": str(user_doc.get("_id") or user_doc.get("id")),
        "role": user_doc.get("role", "user"),
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)) -> Optional[Principal]:
    if not authorization:
        return None
    try:
        scheme, token = authorization.split(" ")
    except ValueError:
        return None
    if scheme.lower() != "bearer":
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
        user = db["user"].find_one({"_id": to_object_id(payload["sub"])})
    except (jwt.PyJWTError, InvalidId, KeyError) as exc:
        logger.debug("Rejected token: %s", exc)
        return None
    if not user:
        return None
    return Principal(id=str(user["_id"]), name=user["name"], email=user["email"], role=user.get("role", "user"))


def protect(user: Optional[Principal] = Depends(get_current_user)) -> Principal:
    if user is None:
        raise Unauthorized("Not authorized to access this route")
    return user


def authorize(*roles: str):
    """Dependency that requires an authenticated principal holding one of `roles`."""

    def dependency(user: Principal = Depends(protect)) -> Principal:
        if user.role not in roles:
            raise Forbidden(f"User role {user.role} is not authorized to access this route")
        return user

    return dependency
