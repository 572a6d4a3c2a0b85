# Application services (re-export for stable imports)
from .otp_issuer import OTPIssuer
from .verifier import Verifier, RedeemResult
from .token_issuer import TokenIssuer, TokenClaims
from .cleaner import OTPCleaner
from .profile_service import ProfileService

__all__ = [
    "OTPIssuer",
    "Verifier",
    "RedeemResult",
    "TokenIssuer",
    "TokenClaims",
    "OTPCleaner",
    "ProfileService",
]
