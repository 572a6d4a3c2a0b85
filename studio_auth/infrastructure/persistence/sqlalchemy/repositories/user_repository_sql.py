import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto
from .....exceptions import ConflictError
from .....utils import as_utc, utcnow

logger = logging.getLogger(__name__)

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            username=user.username,
            email=user.email,
            is_active=bool(user.is_active),
            created_at=as_utc(user.created_at),
            updated_at=as_utc(user.updated_at),
        )

    def _get(self, user_id: int) -> Optional[User]:
        return self.session.exec(select(User).where(User.id == user_id)).first()

    def get_by_email(self, email: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.email == email)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: int) -> Optional[UserDto]:
        user = self._get(user_id)
        return self._to_dto(user) if user else None

    def create(self, username: str, email: str) -> UserDto:
        user = User(username=username, email=email, is_active=True)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"User create rejected by unique constraint: {e.orig}")
            raise ConflictError("Email or username is already taken")
        self.session.refresh(user)
        return self._to_dto(user)

    def email_taken(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.session.exec(stmt).first() is not None

    def username_taken(self, username: str, exclude_user_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(User.username == username)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.session.exec(stmt).first() is not None

    def update_profile_fields(self, user_id: int, username: Optional[str], email: Optional[str]) -> Optional[UserDto]:
        user = self._get(user_id)
        if not user:
            return None
        if username is not None:
            user.username = username
        if email is not None:
            user.email = email
        user.updated_at = utcnow()
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            # A concurrent writer claimed the value after our uniqueness check
            self.session.rollback()
            logger.warning(f"Profile update rejected by unique constraint: {e.orig}")
            raise ConflictError("Email or username is already taken")
        self.session.refresh(user)
        return self._to_dto(user)

    def set_active(self, user_id: int, is_active: bool) -> bool:
        user = self._get(user_id)
        if not user:
            return False
        user.is_active = is_active
        user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()
        return True
