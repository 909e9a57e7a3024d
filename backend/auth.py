from datetime import datetime, timedelta, timezone
from typing import List, Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import bcrypt
import hashlib
import os
import re
import secrets
from dotenv import load_dotenv
from pathlib import Path
from database import get_db
from models import User

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

ACCESS_COOKIE_NAME = "accessToken"
REFRESH_COOKIE_NAME = "refreshToken"

WEAK_SECRETS = {
    'default_secret_key',
    'changeme',
    'change_me',
    'secret',
    'jwt_secret',
    'password',
    'admin123',
}


def _load_secret(name: str) -> str:
    secret = os.environ.get(name)
    if not secret:
        raise RuntimeError(f'{name} is required and must be set in environment')
    if len(secret) < 32 or secret.strip().lower() in WEAK_SECRETS:
        raise RuntimeError(f'{name} is too weak; use a random secret with at least 32 characters')
    return secret


ACCESS_TOKEN_SECRET = _load_secret('ACCESS_TOKEN_SECRET')
REFRESH_TOKEN_SECRET = _load_secret('REFRESH_TOKEN_SECRET')
ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', 15))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.environ.get('REFRESH_TOKEN_EXPIRE_DAYS', 15))

optional_bearer = HTTPBearer(auto_error=False)

PASSWORD_SPECIAL_CHARS = "@$!%*?&"


def password_problems(password: str) -> List[str]:
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not any(ch in PASSWORD_SPECIAL_CHARS for ch in password):
        problems.append(f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})")
    return problems


def verify_password(plain_password: str, hashed_password: str) -> bool:
    digest = hashlib.sha256(plain_password.encode('utf-8')).digest()
    try:
        return bcrypt.checkpw(digest, hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    # Pre-hash with SHA-256 so passwords longer than bcrypt's 72 byte limit still count
    digest = hashlib.sha256(password.encode('utf-8')).digest()
    hashed = bcrypt.hashpw(digest, bcrypt.gensalt())
    return hashed.decode('utf-8')


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, ACCESS_TOKEN_SECRET, algorithm=ALGORITHM)


def create_refresh_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "sub": str(user.id),
        "exp": expire,
        "type": "refresh",
        # Two refreshes inside the same second must still yield distinct tokens
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(to_encode, REFRESH_TOKEN_SECRET, algorithm=ALGORITHM)


def decode_token(token: str, secret: str = ACCESS_TOKEN_SECRET) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, REFRESH_TOKEN_SECRET)


def _user_id_from_payload(payload: dict) -> Optional[int]:
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
    db: Session = Depends(get_db)
) -> User:
    token = request.cookies.get(ACCESS_COOKIE_NAME)
    if not token and credentials:
        token = credentials.credentials
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized request",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = _user_id_from_payload(payload)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token"
        )

    return user
