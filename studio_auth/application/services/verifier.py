import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..ports.user_repo import UserRepository, UserDto
from ..ports.otp_repo import OTPRepository
from ..ports.audit_logger import AuditLogger
from .token_issuer import TokenIssuer
from ...exceptions import AccountDeactivatedError, AuthenticationError, NotFoundError
from ...utils import normalize_email, utcnow

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid or expired code"


@dataclass
class RedeemResult:
    user: UserDto
    token: str


@dataclass
class Verifier:
    user_repo: UserRepository
    otp_repo: OTPRepository
    token_issuer: TokenIssuer
    audit: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = utcnow

    def redeem(self, email: str, code: str) -> RedeemResult:
        email = normalize_email(email)
        user = self.user_repo.get_by_email(email)
        if not user:
            raise NotFoundError("User not found")

        if not user.is_active:
            self._audit(email, user.id, success=False, reason="deactivated")
            raise AccountDeactivatedError()

        code = (code or "").strip()
        # Lookup and mark-used happen in one conditional write
        if not code or not self.otp_repo.consume(user.id, code, self.clock()):
            self._audit(email, user.id, success=False, reason="invalid_code")
            raise AuthenticationError(INVALID_CODE_MESSAGE)

        token = self.token_issuer.issue(user)
        logger.info(f"User logged in successfully: id={user.id}")
        self._audit(email, user.id, success=True)
        return RedeemResult(user=user, token=token)

    def _audit(self, email: str, user_id: int, success: bool, reason: Optional[str] = None) -> None:
        if self.audit:
            self.audit.log("otp_verify", email, user_id=user_id, success=success,
                           details={"reason": reason} if reason else None)
