# studio_auth/db/models/auth/otp.py
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime
from datetime import datetime
from typing import Optional

from ....utils import utcnow

class OneTimeCode(SQLModel, table=True):
    __tablename__ = "one_time_codes"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    code: str = Field(max_length=16)
    is_used: bool = Field(default=False)
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))

    # Relationships
    user: Optional["User"] = Relationship(back_populates="one_time_codes")
