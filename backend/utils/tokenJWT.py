# utils/tokenJWT.py
from jose import jwt, JWTError, ExpiredSignatureError
from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.users import User
from utils.errors import AuthError, AuthorizationError

# auto_error=False so a missing header is reported as our 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)

# Generate a new JWT access token
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# Retrieve the currently authenticated user based on the JWT token
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError:
        raise AuthError("Invalid token")

    email = payload.get("sub")
    if email is None:
        raise AuthError("Invalid token")

    user = db.query(User).filter(User.email == email).first()
    # Deactivated accounts lose access immediately, whatever the token says
    if user is None or not user.is_active:
        raise AuthError("Invalid token or user not found")
    return user

# Dependency factory for Role-Based Access Control, evaluated per request
def role_required(*allowed_roles):
    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if allowed_roles and current_user.role not in allowed_roles:
            raise AuthorizationError("Admin privileges required" if allowed_roles == ("admin",) else "Forbidden")
        return current_user
    return _checker

require_admin = role_required("admin")
