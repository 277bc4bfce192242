"""User schemas."""
from typing import List
from pydantic import BaseModel


class UserResponse(BaseModel):
    user_id: int
    username: str
    email: str | None = None
    full_name: str
    status: str
    role: str

    class Config:
        from_attributes = True


class CurrentUserResponse(UserResponse):
    roles: List[str] = []


class Token(BaseModel):
    access_token: str
    token_type: str


class LoginRequest(BaseModel):
    username: str
    password: str
