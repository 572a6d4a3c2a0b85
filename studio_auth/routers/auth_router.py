# studio_auth/routers/auth_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..application.services import OTPIssuer, Verifier, TokenIssuer, TokenClaims, ProfileService
from ..dependencies import (
    get_current_user,
    get_optional_user,
    get_otp_issuer,
    get_profile_service,
    get_token_issuer,
    get_verifier,
)
from ..exceptions import AccountDeactivatedError
from ..schemas import (
    RequestOTPRequest,
    VerifyOTPRequest,
    LoginResponse,
    AuthCheckResponse,
    UserEnvelope,
    UpdateProfileRequest,
    MessageResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


@router.post("/otp/request", response_model=MessageResponse)
async def request_otp(body: RequestOTPRequest, issuer: OTPIssuer = Depends(get_otp_issuer)):
    return await issuer.request_code(body.email)


@router.post("/otp/verify", response_model=LoginResponse)
def verify_otp(body: VerifyOTPRequest, verifier: Verifier = Depends(get_verifier)):
    result = verifier.redeem(body.email, body.code)
    return {"user": result.user.public_profile(), "token": result.token}


@router.get("/profile", response_model=UserEnvelope)
def get_profile(
    current_user: TokenClaims = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = profiles.get_profile(current_user.id)
    return {"user": user.public_profile()}


@router.put("/profile", response_model=UserEnvelope)
def update_profile(
    body: UpdateProfileRequest,
    current_user: TokenClaims = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = profiles.update_profile(current_user.id, username=body.username, email=body.email)
    return {"user": user.public_profile()}


@router.post("/deactivate", response_model=MessageResponse)
def deactivate_account(
    current_user: TokenClaims = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return profiles.deactivate(current_user.id)


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: Optional[TokenClaims] = Depends(get_optional_user)):
    # Tokens are stateless; the client simply discards its copy
    if current_user:
        logger.info(f"User logged out: id={current_user.id}")
    return {"message": "Logout successful"}


@router.get("/check", response_model=AuthCheckResponse)
def check_auth(current_user: Optional[TokenClaims] = Depends(get_optional_user)):
    return {
        "is_authenticated": current_user is not None,
        "user": current_user.as_user() if current_user else None,
    }


@router.post("/refresh", response_model=LoginResponse)
def refresh_token(
    current_user: TokenClaims = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    user = profiles.get_profile(current_user.id)
    if not user.is_active:
        raise AccountDeactivatedError()
    return {"user": user.public_profile(), "token": token_issuer.issue(user)}
