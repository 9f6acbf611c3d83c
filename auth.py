"""Bearer-token auth: bcrypt password hashes and signed JWTs."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

import config

bearer = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes and refuses anything longer
MAX_PASSWORD_BYTES = 72


class TokenUser(BaseModel):
    id: str
    username: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


def sign_token(user: TokenUser) -> str:
    payload = user.model_dump()
    payload["exp"] = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRES_DAYS)
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> TokenUser:
    payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    return TokenUser(**payload)


def current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> TokenUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Token missing")
    try:
        return decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def require_admin(user: TokenUser = Depends(current_user)) -> TokenUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
