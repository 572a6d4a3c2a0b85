import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt

from ..ports.user_repo import UserDto
from ...exceptions import AuthenticationError
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class TokenClaims:
    id: int
    username: str
    email: str
    issued_at: datetime
    expires_at: datetime

    def as_user(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass
class TokenIssuer:
    """Mints and checks stateless HS256 session tokens.

    A token is valid when its signature matches ``secret_key`` and its ``exp``
    claim is in the future; nothing is looked up in the store.
    """

    secret_key: str
    algorithm: str = "HS256"
    expire_minutes: int = 7 * 24 * 60
    clock: Callable[[], datetime] = utcnow

    def issue(self, user: UserDto) -> str:
        issued_at = self.clock()
        to_encode = {
            "sub": str(user.id),
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            raise AuthenticationError("Invalid or expired token")
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT error: {e}")
            raise AuthenticationError("Invalid or expired token")

        try:
            return TokenClaims(
                id=int(payload["id"]),
                username=payload["username"],
                email=payload["email"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Token is missing required claims")
            raise AuthenticationError("Invalid or expired token")
