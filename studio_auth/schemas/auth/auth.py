# studio_auth/schemas/auth/auth.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from ..users.user import UserResponse

class RequestOTPRequest(BaseModel):
    email: str = Field(..., max_length=255, description="Email address to send the code to")

class VerifyOTPRequest(BaseModel):
    email: str = Field(..., max_length=255, description="Email address the code was sent to")
    code: str = Field(..., min_length=1, max_length=16, description="One-time code from the email")

class LoginResponse(BaseModel):
    user: UserResponse
    token: str

class AuthCheckResponse(BaseModel):
    is_authenticated: bool
    user: Optional[Dict[str, Any]] = None
