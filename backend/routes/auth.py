# backend/routes/auth.py
import logging

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from config import settings
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, get_current_user
from utils.audit import write_log, client_ip
from utils.errors import ValidationError, AuthError
from models import users as models
from schemas import user as schemas
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _issue(user: models.User) -> dict:
    token = create_access_token(data={"sub": user.email, "role": user.role})
    return {"token": token, "token_type": "bearer", "user": schemas.UserResponse.model_validate(user)}


# Register a new user
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    # Check for existing user
    existing = db.query(models.User).filter(
        or_(func.lower(models.User.email) == user.email, models.User.username == user.username)
    ).first()
    if existing:
        field = "email" if existing.email == user.email else "username"
        write_log(
            db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
            ip=client_ip(request), meta={"email": user.email, "reason": f"{field} exists"},
        )
        raise ValidationError("User already exists", [f"{field}: already in use"])

    role = user.role if settings.ALLOW_ADMIN_REGISTRATION else "user"
    new_user = models.User(
        username=user.username,
        email=user.email,
        password_hash=get_password_hash(user.password),
        role=role,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    # Log successful registration event
    write_log(
        db, user_id=new_user.id, action="REGISTER", resource="auth", status="SUCCESS",
        ip=client_ip(request), meta={"email": new_user.email},
    )
    return {
        "success": True,
        "message": "Registration successful",
        "data": schemas.AuthResult(**_issue(new_user)),
    }


# Authenticate user and issue JWT token
@router.post("/login")
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.email == payload.email).first()

    # Validate credentials and log failure on error
    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"email": payload.email})
        raise AuthError("Invalid email or password")

    if not db_user.is_active:
        write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"email": payload.email, "reason": "inactive"})
        raise AuthError("Account is deactivated")

    # Log successful login event
    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"email": db_user.email})

    return {
        "success": True,
        "message": "Login successful",
        "data": schemas.AuthResult(**_issue(db_user)),
    }


# Retrieve current authenticated user details
@router.get("/profile")
def profile(current_user: models.User = Depends(get_current_user)):
    return {"success": True, "data": schemas.UserResponse.model_validate(current_user)}


@router.get("/verify")
def verify(current_user: models.User = Depends(get_current_user)):
    return {
        "success": True,
        "message": "Token is valid",
        "data": {"valid": True, "user": schemas.UserResponse.model_validate(current_user)},
    }


# Tokens are stateless; the client just drops its copy
@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    write_log(db, user_id=current_user.id, action="LOGOUT", resource="auth",
              status="SUCCESS", ip=client_ip(request))
    return {"success": True, "message": "Logged out"}
