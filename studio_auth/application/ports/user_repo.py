from typing import Protocol, Optional
from datetime import datetime

class UserDto:
    def __init__(self, id: int, username: str, email: str, is_active: bool,
                 created_at: datetime, updated_at: datetime):
        self.id = id
        self.username = username
        self.email = email
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    def public_profile(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

class UserRepository(Protocol):
    def get_by_email(self, email: str) -> Optional[UserDto]:
        ...

    def get_by_id(self, user_id: int) -> Optional[UserDto]:
        ...

    def create(self, username: str, email: str) -> UserDto:
        """Insert an active user; raises ConflictError on a uniqueness violation."""
        ...

    def email_taken(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        ...

    def username_taken(self, username: str, exclude_user_id: Optional[int] = None) -> bool:
        ...

    def update_profile_fields(self, user_id: int, username: Optional[str], email: Optional[str]) -> Optional[UserDto]:
        ...

    def set_active(self, user_id: int, is_active: bool) -> bool:
        ...
