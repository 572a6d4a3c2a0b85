import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from .config import settings
from .database import get_session
from .exceptions import AuthenticationError
from .application.ports.notifier import Notifier
from .application.ports.code_generator import CodeGenerator
from .application.ports.audit_logger import AuditLogger
from .application.services import (
    OTPIssuer,
    Verifier,
    TokenIssuer,
    TokenClaims,
    ProfileService,
)
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.notifier.email_notifier import EmailNotifier
from .infrastructure.otp.code_generator import SecretsCodeGenerator
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from .infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOTPRepository

logger = logging.getLogger(__name__)

# Auth scheme
oauth2_scheme = HTTPBearer(auto_error=False)


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )

@lru_cache()
def get_notifier() -> Notifier:
    return EmailNotifier()

@lru_cache()
def get_code_generator() -> CodeGenerator:
    return SecretsCodeGenerator(length=settings.OTP_LENGTH)

@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_user_repo(session: Session = Depends(get_session)) -> SqlUserRepository:
    return SqlUserRepository(session)

def get_otp_repo(session: Session = Depends(get_session)) -> SqlOTPRepository:
    return SqlOTPRepository(session)


def get_otp_issuer(
    user_repo: SqlUserRepository = Depends(get_user_repo),
    otp_repo: SqlOTPRepository = Depends(get_otp_repo),
    notifier: Notifier = Depends(get_notifier),
    code_generator: CodeGenerator = Depends(get_code_generator),
    audit: AuditLogger = Depends(get_audit_logger),
) -> OTPIssuer:
    return OTPIssuer(
        user_repo=user_repo,
        otp_repo=otp_repo,
        notifier=notifier,
        code_generator=code_generator,
        ttl_minutes=settings.OTP_EXPIRE_MINUTES,
        audit=audit,
    )

def get_verifier(
    user_repo: SqlUserRepository = Depends(get_user_repo),
    otp_repo: SqlOTPRepository = Depends(get_otp_repo),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    audit: AuditLogger = Depends(get_audit_logger),
) -> Verifier:
    return Verifier(user_repo=user_repo, otp_repo=otp_repo, token_issuer=token_issuer, audit=audit)

def get_profile_service(
    user_repo: SqlUserRepository = Depends(get_user_repo),
    otp_repo: SqlOTPRepository = Depends(get_otp_repo),
    audit: AuditLogger = Depends(get_audit_logger),
) -> ProfileService:
    return ProfileService(user_repo=user_repo, otp_repo=otp_repo, audit=audit)


# Dependency to get current user from JWT
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token is required")
    claims = token_issuer.decode(credentials.credentials)
    logger.debug(f"Authenticated user ID: {claims.id}")
    return claims

def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> Optional[TokenClaims]:
    if not credentials or not credentials.credentials:
        return None
    try:
        return token_issuer.decode(credentials.credentials)
    except AuthenticationError:
        return None
