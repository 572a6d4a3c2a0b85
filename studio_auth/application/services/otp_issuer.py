import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..ports.user_repo import UserRepository, UserDto
from ..ports.otp_repo import OTPRepository
from ..ports.notifier import Notifier
from ..ports.code_generator import CodeGenerator
from ..ports.audit_logger import AuditLogger
from ...exceptions import (
    AccountDeactivatedError,
    ConflictError,
    NotificationError,
    ValidationError,
)
from ...utils import extract_name_from_email, is_valid_email, normalize_email, utcnow

logger = logging.getLogger(__name__)

OTP_SENT_MESSAGE = "OTP sent successfully to your email"


def generate_unique_username(user_repo: UserRepository, base_username: str) -> str:
    """Ensure username uniqueness by appending a counter."""
    username = base_username
    counter = 1
    while user_repo.username_taken(username):
        username = f"{base_username}_{counter}"
        counter += 1
    return username


@dataclass
class OTPIssuer:
    user_repo: UserRepository
    otp_repo: OTPRepository
    notifier: Notifier
    code_generator: CodeGenerator
    ttl_minutes: int = 10
    audit: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = utcnow

    async def request_code(self, email: str) -> dict:
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")

        user = self._resolve_user(email)
        if not user.is_active:
            self._audit("otp_request", email, user.id, success=False, details={"reason": "deactivated"})
            raise AccountDeactivatedError()

        code = self.code_generator.next()
        expires_at = self.clock() + timedelta(minutes=self.ttl_minutes)
        # Persist before delivery; the replace drops any earlier code for this user
        self.otp_repo.replace_for_user(user.id, code, expires_at)

        try:
            await self.notifier.send(email, code, user.username)
        except NotificationError:
            self._revoke_undelivered(user.id, code)
            self._audit("otp_request", email, user.id, success=False, details={"reason": "delivery_failed"})
            raise
        except Exception as e:
            logger.error(f"Notifier raised unexpectedly for user {user.id}: {e}")
            self._revoke_undelivered(user.id, code)
            self._audit("otp_request", email, user.id, success=False, details={"reason": "delivery_failed"})
            raise NotificationError("Failed to send OTP email") from e

        logger.info(f"OTP sent to user {user.id}")
        self._audit("otp_request", email, user.id)
        return {"message": OTP_SENT_MESSAGE}

    def _resolve_user(self, email: str) -> UserDto:
        user = self.user_repo.get_by_email(email)
        if user:
            return user

        username = generate_unique_username(self.user_repo, extract_name_from_email(email))
        try:
            user = self.user_repo.create(username=username, email=email)
        except ConflictError:
            # Lost a creation race against a concurrent request for the same email
            user = self.user_repo.get_by_email(email)
            if not user:
                raise
            return user

        logger.info(f"New user created: id={user.id} username={user.username}")
        return user

    def _revoke_undelivered(self, user_id: int, code: str) -> None:
        removed = self.otp_repo.delete_code(user_id, code)
        logger.warning(f"Delivery failed for user {user_id}; revoked {removed} undelivered code(s)")

    def _audit(self, action: str, email: str, user_id: Optional[int], success: bool = True, details: Optional[dict] = None) -> None:
        if self.audit:
            self.audit.log(action, email, user_id=user_id, success=success, details=details)
