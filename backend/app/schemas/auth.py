from datetime import datetime
from uuid import UUID
from pydantic import BaseModel


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdateRequest(BaseModel):
    name: str


class UserResponse(BaseModel):
    id: UUID
    name: str
    email: str
    profile_pic: str = ""
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse
