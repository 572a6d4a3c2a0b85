import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import OneTimeCode
from .....application.ports.otp_repo import OTPRepository, OTPRecord
from .....utils import as_utc

logger = logging.getLogger(__name__)


class SqlOTPRepository(OTPRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, rec: OneTimeCode) -> OTPRecord:
        return OTPRecord(
            id=rec.id,
            user_id=rec.user_id,
            code=rec.code,
            expires_at=as_utc(rec.expires_at),
            is_used=bool(rec.is_used),
            created_at=as_utc(rec.created_at),
        )

    def _delete_where(self, *criteria) -> int:
        try:
            result = self.session.execute(
                delete(OneTimeCode).where(*criteria).execution_options(synchronize_session=False)
            )
            self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting OTP codes: {e}")
            self.session.rollback()
            raise

    def replace_for_user(self, user_id: int, code: str, expires_at: datetime) -> OTPRecord:
        try:
            self.session.execute(
                delete(OneTimeCode)
                .where(OneTimeCode.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            rec = OneTimeCode(user_id=user_id, code=code, expires_at=expires_at, is_used=False)
            self.session.add(rec)
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error storing OTP code: {e}")
            self.session.rollback()
            raise
        self.session.refresh(rec)
        return self._to_record(rec)

    def consume(self, user_id: int, code: str, now: datetime) -> bool:
        # Single conditional UPDATE: only one concurrent caller can see rowcount == 1
        try:
            result = self.session.execute(
                update(OneTimeCode)
                .where(
                    OneTimeCode.user_id == user_id,
                    OneTimeCode.code == code,
                    OneTimeCode.is_used == False,  # noqa: E712
                    OneTimeCode.expires_at > now,
                )
                .values(is_used=True)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error consuming OTP code: {e}")
            self.session.rollback()
            raise
        return result.rowcount == 1

    def get_for_user(self, user_id: int) -> Optional[OTPRecord]:
        rec = self.session.exec(
            select(OneTimeCode)
            .where(OneTimeCode.user_id == user_id)
            .order_by(OneTimeCode.created_at.desc())
        ).first()
        return self._to_record(rec) if rec else None

    def delete_code(self, user_id: int, code: str) -> int:
        return self._delete_where(OneTimeCode.user_id == user_id, OneTimeCode.code == code)

    def delete_for_user(self, user_id: int) -> int:
        return self._delete_where(OneTimeCode.user_id == user_id)

    def delete_expired(self, now: datetime) -> int:
        return self._delete_where(OneTimeCode.expires_at < now)
