import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from studio_auth.application.ports.user_repo import UserDto
from studio_auth.application.ports.otp_repo import OTPRecord
from studio_auth.application.services import (
    OTPIssuer,
    Verifier,
    TokenIssuer,
    ProfileService,
    OTPCleaner,
)
from studio_auth.exceptions import ConflictError, NotificationError


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeUserRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.users: Dict[int, UserDto] = {}
        self._id = 1

    def get_by_email(self, email: str) -> Optional[UserDto]:
        return next((u for u in self.users.values() if u.email == email), None)

    def get_by_id(self, user_id: int) -> Optional[UserDto]:
        return self.users.get(user_id)

    def create(self, username: str, email: str) -> UserDto:
        if self.email_taken(email) or self.username_taken(username):
            raise ConflictError("Email or username is already taken")
        now = self.clock()
        user = UserDto(id=self._id, username=username, email=email, is_active=True,
                       created_at=now, updated_at=now)
        self.users[user.id] = user
        self._id += 1
        return user

    def email_taken(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        return any(u.email == email and u.id != exclude_user_id for u in self.users.values())

    def username_taken(self, username: str, exclude_user_id: Optional[int] = None) -> bool:
        return any(u.username == username and u.id != exclude_user_id for u in self.users.values())

    def update_profile_fields(self, user_id: int, username: Optional[str], email: Optional[str]) -> Optional[UserDto]:
        user = self.users.get(user_id)
        if not user:
            return None
        if username is not None:
            user.username = username
        if email is not None:
            user.email = email
        user.updated_at = self.clock()
        return user

    def set_active(self, user_id: int, is_active: bool) -> bool:
        user = self.users.get(user_id)
        if not user:
            return False
        user.is_active = is_active
        return True


class FakeOTPRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: List[OTPRecord] = []
        self._id = 1
        self._lock = threading.Lock()

    def replace_for_user(self, user_id: int, code: str, expires_at: datetime) -> OTPRecord:
        with self._lock:
            self.rows = [r for r in self.rows if r.user_id != user_id]
            rec = OTPRecord(self._id, user_id, code, expires_at, False, self.clock())
            self.rows.append(rec)
            self._id += 1
            return rec

    def consume(self, user_id: int, code: str, now: datetime) -> bool:
        # Mirrors the conditional UPDATE: check and set under one lock
        with self._lock:
            for r in self.rows:
                if r.user_id == user_id and r.code == code and not r.is_used and r.expires_at > now:
                    r.is_used = True
                    return True
            return False

    def get_for_user(self, user_id: int) -> Optional[OTPRecord]:
        return next((r for r in self.rows if r.user_id == user_id), None)

    def _delete(self, predicate) -> int:
        with self._lock:
            before = len(self.rows)
            self.rows = [r for r in self.rows if not predicate(r)]
            return before - len(self.rows)

    def delete_code(self, user_id: int, code: str) -> int:
        return self._delete(lambda r: r.user_id == user_id and r.code == code)

    def delete_for_user(self, user_id: int) -> int:
        return self._delete(lambda r: r.user_id == user_id)

    def delete_expired(self, now: datetime) -> int:
        return self._delete(lambda r: r.expires_at < now)


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail_with: Optional[Exception] = None

    async def send(self, email: str, code: str, username: Optional[str] = None) -> None:
        if self.fail_with:
            raise self.fail_with
        self.sent.append((email, code, username))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class SequenceCodes:
    def __init__(self):
        self._n = 0

    def next(self) -> str:
        self._n += 1
        return f"{self._n:06d}"


class RecordingAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, email, user_id=None, success=True, details=None):
        self.entries.append((action, user_id, success, details))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users(clock):
    return FakeUserRepo(clock)


@pytest.fixture
def otps(clock):
    return FakeOTPRepo(clock)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret_key="test-secret", expire_minutes=60)


@pytest.fixture
def issuer(users, otps, notifier, clock, audit):
    return OTPIssuer(
        user_repo=users,
        otp_repo=otps,
        notifier=notifier,
        code_generator=SequenceCodes(),
        ttl_minutes=10,
        audit=audit,
        clock=clock,
    )


@pytest.fixture
def verifier(users, otps, token_issuer, clock, audit):
    return Verifier(user_repo=users, otp_repo=otps, token_issuer=token_issuer, audit=audit, clock=clock)


@pytest.fixture
def profiles(users, otps):
    return ProfileService(user_repo=users, otp_repo=otps)


@pytest.fixture
def cleaner(otps, clock):
    return OTPCleaner(otp_repo=otps, clock=clock)


@pytest.fixture
def delivery_failure():
    return NotificationError("Failed to send OTP email")
