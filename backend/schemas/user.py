from datetime import datetime
from typing import Optional, Literal

from pydantic import EmailStr, Field, field_validator

from schemas.product import APIModel, RequestModel

Role = Literal["user", "admin"]

# Shared properties for user models
class UserBase(RequestModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str = Field(..., min_length=1)

# Schema for user registration requests
class UserCreate(UserBase):
    username: str = Field(..., min_length=3, max_length=30)
    password: str = Field(..., min_length=6)
    role: Role = "user"

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

# Output schema for user profile details; the hash never leaves the server
class UserResponse(APIModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

# Registration/login payload: token plus the user it was issued for
class AuthResult(APIModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse

# Schema for administrative role updates
class RoleUpdate(RequestModel):
    role: Role

class StatusUpdate(RequestModel):
    is_active: bool
