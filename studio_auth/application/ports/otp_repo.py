from typing import Optional, Protocol
from dataclasses import dataclass
from datetime import datetime


@dataclass
class OTPRecord:
    id: int
    user_id: int
    code: str
    expires_at: datetime
    is_used: bool
    created_at: datetime


class OTPRepository(Protocol):
    def replace_for_user(self, user_id: int, code: str, expires_at: datetime) -> OTPRecord:
        """Delete every code held by the user and store the new one, in one transaction."""
        ...

    def consume(self, user_id: int, code: str, now: datetime) -> bool:
        """Atomically flip a live matching code to used.

        Returns True only for the single caller whose write changed the row.
        """
        ...

    def get_for_user(self, user_id: int) -> Optional[OTPRecord]:
        ...

    def delete_code(self, user_id: int, code: str) -> int:
        ...

    def delete_for_user(self, user_id: int) -> int:
        ...

    def delete_expired(self, now: datetime) -> int:
        ...
