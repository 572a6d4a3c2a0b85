# studio_auth/schemas/users/user.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import re

class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

class UserEnvelope(BaseModel):
    user: UserResponse

class UpdateProfileRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=1, max_length=100, description="New username")
    email: Optional[str] = Field(None, max_length=255, description="New email address")

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not re.match(r'^[a-zA-Z0-9_.\-]+$', v):
            raise ValueError('Username can only contain letters, digits, dots, hyphens and underscores')
        return v
