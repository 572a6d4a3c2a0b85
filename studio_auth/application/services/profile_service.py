import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.user_repo import UserRepository, UserDto
from ..ports.otp_repo import OTPRepository
from ..ports.audit_logger import AuditLogger
from ...exceptions import ConflictError, NotFoundError, ValidationError
from ...utils import is_valid_email, normalize_email

logger = logging.getLogger(__name__)


@dataclass
class ProfileService:
    user_repo: UserRepository
    otp_repo: OTPRepository
    audit: Optional[AuditLogger] = None

    def get_profile(self, user_id: int) -> UserDto:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, user_id: int, username: Optional[str] = None, email: Optional[str] = None) -> UserDto:
        self.get_profile(user_id)

        if email is not None:
            email = normalize_email(email)
            if not is_valid_email(email):
                raise ValidationError("Invalid email format")
        if username is not None:
            username = username.strip()
            if not username:
                raise ValidationError("Username cannot be empty")

        # Every check runs before the single write so a rejection leaves the row untouched
        if email is not None and self.user_repo.email_taken(email, exclude_user_id=user_id):
            raise ConflictError("Email is already taken")
        if username is not None and self.user_repo.username_taken(username, exclude_user_id=user_id):
            raise ConflictError("Username is already taken")

        updated = self.user_repo.update_profile_fields(user_id, username, email)
        if not updated:
            raise NotFoundError("User not found")
        logger.info(f"User profile updated: id={user_id}")
        return updated

    def deactivate(self, user_id: int) -> dict:
        user = self.user_repo.get_by_id(user_id)
        if not user or not self.user_repo.set_active(user_id, False):
            raise NotFoundError("User not found")

        # Inactive before the codes go; redeem rejects inactive users
        removed = self.otp_repo.delete_for_user(user_id)
        logger.info(f"User account deactivated: id={user_id}, removed {removed} OTP(s)")
        if self.audit:
            self.audit.log("deactivate", user.email, user_id=user_id)
        return {"message": "Account deactivated successfully"}
