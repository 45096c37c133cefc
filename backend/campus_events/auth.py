from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from . import schemas, models
from .config import settings
from .database import get_db


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def create_access_token(user_id: int, role: models.UserRole, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {"id": user_id, "role": models.UserRole(role).value, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Accept both ``Bearer <token>`` and a bare token."""
    if not authorization:
        return None
    value = authorization.strip()
    if value[:7].lower() == "bearer ":
        value = value[7:].strip()
    return value or None


def decode_access_token(token: str) -> schemas.TokenData:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm], options={"require_exp": True})
    except JWTError:
        # Expired, tampered and malformed tokens all get the same answer.
        raise credentials_exception
    user_id = payload.get("id")
    role = payload.get("role")
    if user_id is None or role is None:
        raise credentials_exception
    try:
        return schemas.TokenData(user_id=int(user_id), role=role)
    except (TypeError, ValueError):
        raise credentials_exception


def get_current_identity(authorization: Optional[str] = Header(default=None)) -> schemas.TokenData:
    token = extract_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(token)


def require_roles(*roles: models.UserRole):
    allowed = {models.UserRole(role) for role in roles}

    def _require(identity: schemas.TokenData = Depends(get_current_identity)) -> schemas.TokenData:
        if identity.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied for this role.")
        return identity

    return _require


require_student = require_roles(models.UserRole.student)
require_organizer = require_roles(models.UserRole.organizer)


def get_current_user(
    identity: schemas.TokenData = Depends(get_current_identity), db: Session = Depends(get_db)
) -> models.User:
    user = db.query(models.User).filter(models.User.id == identity.user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def get_current_student(
    identity: schemas.TokenData = Depends(require_student), db: Session = Depends(get_db)
) -> models.User:
    return get_current_user(identity, db)
