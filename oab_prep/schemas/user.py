"""
Pydantic schemas for user profiles, authentication and preferences
"""
from pydantic import BaseModel, Field
from typing import Literal
from datetime import datetime

UserRole = Literal["student", "mentor"]
Theme = Literal["light", "dark"]


class UserProfile(BaseModel):
    """Stored identity record (password kept in plain text locally)"""
    id: str
    name: str
    email: str
    password: str
    role: UserRole
    created_at: datetime


class UserPublic(BaseModel):
    """Profile as returned by the API"""
    id: str
    name: str
    email: str
    role: UserRole
    created_at: datetime

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserPublic":
        return cls(**profile.model_dump(exclude={"password"}))


class RegisterRequest(BaseModel):
    """Registration form"""
    name: str = ""
    email: str = ""
    password: str = ""
    role: UserRole = "student"


class LoginRequest(BaseModel):
    """Login form"""
    email: str = ""
    password: str = ""


class ThemePreference(BaseModel):
    """Persisted theme flag"""
    theme: Theme = Field("light")
