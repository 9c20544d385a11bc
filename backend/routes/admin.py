# backend/routes/admin.py
from typing import Optional, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from utils.tokenJWT import require_admin
from utils.audit import write_log, client_ip
from utils.errors import ValidationError, NotFoundError
from schemas.user import RoleUpdate, StatusUpdate, UserResponse
from services.pagination import page_meta

router = APIRouter(tags=["Admin"])


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("/users")
def get_all_users(
    q: Optional[str] = Query(None, description="Search by email or username"),
    role: Optional[str] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["id", "email", "username", "role", "createdAt"] = Query("id", alias="sortBy"),
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(User)

    # Filter by email or username
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(User.email.ilike(like) | User.username.ilike(like))

    # Filter by role
    if role:
        query = query.filter(User.role == role.lower())

    sort_map = {
        "id": User.id,
        "email": User.email,
        "username": User.username,
        "role": User.role,
        "createdAt": User.created_at,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc(), User.id.asc())

    total = query.count()
    users = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "success": True,
        "data": [UserResponse.model_validate(u) for u in users],
        "pagination": page_meta(total, page, limit),
    }


# Update user role (Admin only)
@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    new_role: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    user.role = new_role.role
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_ROLE", resource="users",
              ip=client_ip(request), resource_id=user.id, meta={"role": user.role})
    return {
        "success": True,
        "message": f"User {user.email} role updated to {user.role}",
        "data": UserResponse.model_validate(user),
    }


# Activate or deactivate a user account (Admin only); records are never deleted
@router.patch("/users/{user_id}/status")
def update_user_status(
    user_id: int,
    payload: StatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = _get_user(db, user_id)

    # Prevent self-deactivation
    if user.id == current_user.id and not payload.is_active:
        raise ValidationError("You cannot deactivate your own account")

    user.is_active = payload.is_active
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_STATUS", resource="users",
              ip=client_ip(request), resource_id=user.id, meta={"is_active": user.is_active})
    state = "activated" if user.is_active else "deactivated"
    return {
        "success": True,
        "message": f"User {user.email} has been {state}",
        "data": UserResponse.model_validate(user),
    }
