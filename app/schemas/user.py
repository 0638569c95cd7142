"""
User schemas
Pydantic models for authentication and profile requests/responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class UserPreferences(BaseModel):
    favorite_topics: List[str] = []
    preferred_difficulty: str = "Medium"


class SignupRequest(BaseModel):
    """
    Schema for creating an account
    """
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """
    Schema for user profile response; the password hash is never exposed
    """
    id: str
    name: str
    email: str
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"extra": "ignore"}


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    message: str


class PreferencesUpdate(BaseModel):
    """
    Partial update of user preferences
    """
    favorite_topics: Optional[List[str]] = None
    preferred_difficulty: Optional[str] = None
