# Schemas package (re-export feature modules for stable imports)
from .auth.auth import RequestOTPRequest, VerifyOTPRequest, LoginResponse, AuthCheckResponse
from .users.user import UserResponse, UserEnvelope, UpdateProfileRequest
from .common.common import ErrorResponse, MessageResponse

__all__ = [
    "RequestOTPRequest",
    "VerifyOTPRequest",
    "LoginResponse",
    "AuthCheckResponse",
    "UserResponse",
    "UserEnvelope",
    "UpdateProfileRequest",
    "ErrorResponse",
    "MessageResponse",
]
